from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from retail_demo.order import Order


class OutcomeKind(Enum):
    SUCCESS = "success"
    STOCK_UNAVAILABLE = "stock_unavailable"
    PAYMENT_FAILED = "payment_failed"
    INVALID_TRANSITION = "invalid_transition"
    INVALID_INPUT = "invalid_input"


class ShopError(Exception):
    kind: OutcomeKind = OutcomeKind.INVALID_INPUT


class StockUnavailable(ShopError):
    """A reservation could not be satisfied. Recoverable."""

    kind = OutcomeKind.STOCK_UNAVAILABLE

    def __init__(self, warehouse_id: str, product_id: str, qty: int):
        super().__init__(f"Insufficient stock for {product_id} in {warehouse_id}: need={qty}")
        self.warehouse_id = warehouse_id
        self.product_id = product_id
        self.qty = qty


class PaymentFailed(ShopError):
    """Gateway declined. Recoverable with a new payment on a new order."""

    kind = OutcomeKind.PAYMENT_FAILED


class InvalidTransition(ShopError):
    kind = OutcomeKind.INVALID_TRANSITION


class InvalidInput(ShopError):
    kind = OutcomeKind.INVALID_INPUT


@dataclass(slots=True)
class Outcome:
    """
    Result of a workflow operation.

    Failures of the error taxonomy are carried in `error` instead of being
    raised, so callers can branch on `kind` without try/except.
    """

    kind: OutcomeKind
    order: Optional["Order"] = None
    error: Optional[ShopError] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @classmethod
    def success(cls, order: Optional["Order"] = None) -> "Outcome":
        return cls(kind=OutcomeKind.SUCCESS, order=order)

    @classmethod
    def failure(cls, error: ShopError, order: Optional["Order"] = None) -> "Outcome":
        return cls(kind=error.kind, order=order, error=error)
