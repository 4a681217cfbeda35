"""Workflow settings.

Loaded from environment variables with the RETAIL_ prefix, or built
explicitly in tests and the demo script.

Example:
    >>> settings = WorkflowSettings(loyalty_points_per_unit=Decimal("2"))
    >>> settings.reservation_ttl is None
    True
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkflowSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RETAIL_",
        extra="ignore",
    )

    loyalty_points_per_unit: Decimal = Field(
        default=Decimal("1"),
        ge=0,
        description="Points credited per currency unit on settlement",
    )
    reservation_ttl_seconds: Optional[int] = Field(
        default=None,
        gt=0,
        description="Age after which unpaid reservations may be released; None disables expiry",
    )
    currency_quantum: Decimal = Field(
        default=Decimal("0.01"),
        gt=0,
        description="Fixed-point precision of order totals",
    )

    @property
    def reservation_ttl(self) -> Optional[timedelta]:
        if self.reservation_ttl_seconds is None:
            return None
        return timedelta(seconds=self.reservation_ttl_seconds)
