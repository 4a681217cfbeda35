"""Tests for WorkflowSettings."""
from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from retail_demo.config import WorkflowSettings


def test_defaults(monkeypatch):
    monkeypatch.delenv("RETAIL_LOYALTY_POINTS_PER_UNIT", raising=False)
    monkeypatch.delenv("RETAIL_RESERVATION_TTL_SECONDS", raising=False)
    settings = WorkflowSettings()
    assert settings.loyalty_points_per_unit == Decimal("1")
    assert settings.reservation_ttl is None
    assert settings.currency_quantum == Decimal("0.01")


def test_loaded_from_environment(monkeypatch):
    monkeypatch.setenv("RETAIL_LOYALTY_POINTS_PER_UNIT", "2.5")
    monkeypatch.setenv("RETAIL_RESERVATION_TTL_SECONDS", "900")
    settings = WorkflowSettings()
    assert settings.loyalty_points_per_unit == Decimal("2.5")
    assert settings.reservation_ttl == timedelta(minutes=15)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"loyalty_points_per_unit": Decimal("-1")},
        {"reservation_ttl_seconds": 0},
        {"currency_quantum": Decimal("0")},
    ],
)
def test_invalid_values_are_rejected(kwargs):
    with pytest.raises(ValidationError):
        WorkflowSettings(**kwargs)
