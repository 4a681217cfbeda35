from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, Mapping, Optional

from retail_demo.errors import InvalidInput, InvalidTransition


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(Enum):
    CLIENT = "client"
    ADMIN = "admin"


@dataclass(slots=True)
class Address:
    street: str
    city: str
    postal_code: str
    country: str

    def format(self) -> str:
        return f"{self.street}, {self.postal_code} {self.city}, {self.country}"


@dataclass(slots=True)
class Account:
    """
    Client or administrator account.

    Roles are a closed set; role-specific data hangs off the same record
    (clients own a loyalty account and a list of order ids, admins own nothing extra).
    """

    id: str
    name: str
    email: str
    phone: str
    address: Address
    role: Role
    order_ids: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def update_details(self, name: str, phone: str, address: Address) -> None:
        self.name = name
        self.phone = phone
        self.address = address


@dataclass(slots=True)
class Category:
    id: str
    name: str


class ProductKind(Enum):
    PHYSICAL = "physical"
    DIGITAL = "digital"


@dataclass(slots=True)
class Product:
    id: str
    name: str
    description: str
    price: Decimal
    category_id: Optional[str] = None
    kind: ProductKind = ProductKind.PHYSICAL
    download_url: Optional[str] = None

    def update_price(self, price: Decimal) -> None:
        if price < 0:
            raise InvalidInput(f"Price must be >= 0, got {price}")
        self.price = price


class OrderStatus(Enum):
    CREATED = "created"
    PROCESSING = "processing"
    IN_DELIVERY = "in_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class OrderItem:
    product_id: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class PaymentType(Enum):
    CARD = "card"
    E_WALLET = "e_wallet"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass(slots=True)
class Payment:
    type: PaymentType
    amount: Decimal
    id: str = field(default_factory=new_id)
    status: PaymentStatus = PaymentStatus.PENDING
    timestamp: datetime = field(default_factory=utcnow)

    def refund(self) -> None:
        if self.status is not PaymentStatus.COMPLETED:
            raise InvalidTransition(f"Payment {self.id} is {self.status.value}, only completed payments can be refunded")
        self.status = PaymentStatus.REFUNDED


class ShipmentStatus(Enum):
    READY = "ready"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


@dataclass(slots=True)
class Shipment:
    order_id: str
    to_address: Address
    id: str = field(default_factory=new_id)
    status: ShipmentStatus = ShipmentStatus.READY
    courier_id: Optional[str] = None


@dataclass(slots=True)
class LoyaltyAccount:
    client_id: str
    points: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add_points(self, points: int) -> None:
        if points < 0:
            raise InvalidInput(f"points must be >= 0, got {points}")
        with self._lock:
            self.points += points

    def use_points(self, points: int) -> bool:
        if points <= 0:
            raise InvalidInput(f"points must be > 0, got {points}")
        with self._lock:
            if self.points < points:
                return False
            self.points -= points
            return True


@dataclass(slots=True)
class PromoCode:
    code: str
    percent_off: Decimal
    expires_at: datetime

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) < self.expires_at


@dataclass(slots=True)
class Cart:
    client_id: str
    quantities: Dict[str, int] = field(default_factory=dict)
    promo: Optional[PromoCode] = None

    def add(self, product_id: str, qty: int) -> None:
        if qty <= 0:
            raise InvalidInput("qty must be > 0")
        self.quantities[product_id] = self.quantities.get(product_id, 0) + qty

    def remove(self, product_id: str) -> None:
        self.quantities.pop(product_id, None)

    def apply_promo(self, promo: PromoCode) -> None:
        self.promo = promo

    def estimate_total(self, products: Mapping[str, Product], now: Optional[datetime] = None) -> Decimal:
        missing = [pid for pid in self.quantities if pid not in products]
        if missing:
            raise InvalidInput(f"Unknown products in cart: {', '.join(missing)}")
        subtotal = sum(
            (products[pid].price * qty for pid, qty in self.quantities.items()),
            Decimal("0"),
        )
        if self.promo and self.promo.is_valid(now):
            subtotal -= subtotal * self.promo.percent_off / Decimal(100)
        return subtotal.quantize(Decimal("0.01"))
