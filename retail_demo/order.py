from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from retail_demo.errors import InvalidInput, InvalidTransition
from retail_demo.models import OrderItem, OrderStatus, Product, new_id, utcnow

# Forward-only lifecycle; CANCELLED is reached through cancel() only.
NEXT_STATUS: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.CREATED: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.IN_DELIVERY,
    OrderStatus.IN_DELIVERY: OrderStatus.DELIVERED,
}

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


@dataclass(slots=True)
class Reservation:
    warehouse_id: str
    product_id: str
    qty: int


@dataclass(slots=True)
class Order:
    """
    Order aggregate: line items, derived total and lifecycle status.

    Items can change only while the order is CREATED and nothing is reserved
    for it. Unit prices are snapshotted when an item is added.
    """

    client_id: str
    id: str = field(default_factory=new_id)
    items: List[OrderItem] = field(default_factory=list)
    total_amount: Decimal = Decimal("0.00")
    status: OrderStatus = OrderStatus.CREATED
    shipment_id: Optional[str] = None
    payment_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    quantum: Decimal = Decimal("0.01")

    reservations: List[Reservation] = field(default_factory=list)
    reserved_at: Optional[datetime] = None

    @property
    def holds_stock(self) -> bool:
        return bool(self.reservations)

    def _ensure_editable(self) -> None:
        if self.status is not OrderStatus.CREATED:
            raise InvalidTransition(f"Order {self.id} is {self.status.value}, items are frozen")
        if self.holds_stock:
            raise InvalidTransition(f"Order {self.id} is checked out, items are frozen")

    def add_item(self, product: Product, qty: int) -> OrderItem:
        if qty <= 0:
            raise InvalidInput(f"qty must be > 0, got {qty}")
        self._ensure_editable()
        for item in self.items:
            if item.product_id == product.id:
                item.quantity += qty
                break
        else:
            item = OrderItem(product_id=product.id, quantity=qty, unit_price=product.price)
            self.items.append(item)
        self.recalc_total()
        return item

    def remove_item(self, product_id: str) -> None:
        self._ensure_editable()
        remaining = [i for i in self.items if i.product_id != product_id]
        if len(remaining) == len(self.items):
            raise InvalidInput(f"Product {product_id} is not in order {self.id}")
        self.items = remaining
        self.recalc_total()

    def recalc_total(self) -> Decimal:
        total = sum((i.line_total for i in self.items), Decimal("0"))
        self.total_amount = total.quantize(self.quantum)
        return self.total_amount

    def cancel(self) -> None:
        if self.status in TERMINAL_STATUSES:
            raise InvalidTransition(f"Order {self.id} is {self.status.value} and cannot be cancelled")
        self.status = OrderStatus.CANCELLED

    def advance_to(self, status: OrderStatus) -> None:
        if NEXT_STATUS.get(self.status) is not status:
            raise InvalidTransition(f"Order {self.id}: {self.status.value} -> {status.value} is not allowed")
        self.status = status
