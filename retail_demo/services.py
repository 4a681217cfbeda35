from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal
from typing import Optional, Protocol

from retail_demo.errors import InvalidInput
from retail_demo.models import (
    Account,
    Address,
    LoyaltyAccount,
    Role,
    Shipment,
    ShipmentStatus,
    new_id,
    utcnow,
)
from retail_demo.order import Order
from retail_demo.store import Store

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, store: Store):
        self.store = store

    def _register(self, name: str, email: str, phone: str, address: Address, role: Role) -> Account:
        if any(a.email == email for a in self.store.accounts.values()):
            raise InvalidInput(f"Email {email} is already registered")
        account = Account(id=new_id(), name=name, email=email, phone=phone, address=address, role=role)
        self.store.accounts[account.id] = account
        self.store.log(f"[account={account.id}] {role.value} registered: {email}")
        return account

    def register_client(self, name: str, email: str, phone: str, address: Address) -> Account:
        account = self._register(name, email, phone, address, Role.CLIENT)
        self.store.loyalty[account.id] = LoyaltyAccount(client_id=account.id)
        return account

    def register_admin(self, name: str, email: str, phone: str, address: Address) -> Account:
        return self._register(name, email, phone, address, Role.ADMIN)

    def login(self, email: str) -> Optional[Account]:
        # Credentials are checked upstream; this only resolves the account.
        return next((a for a in self.store.accounts.values() if a.email == email), None)

    def update_details(self, account_id: str, name: str, phone: str, address: Address) -> Account:
        account = self.get(account_id)
        account.update_details(name, phone, address)
        self.store.log(f"[account={account_id}] details updated")
        return account

    def get(self, account_id: str) -> Account:
        account = self.store.accounts.get(account_id)
        if account is None:
            raise InvalidInput(f"Account {account_id} not found")
        return account

    def perform_admin_action(self, admin: Account, action: str, action_logger: AdminActionLogger) -> None:
        if not admin.is_admin:
            raise InvalidInput(f"Account {admin.id} is not an administrator")
        try:
            action_logger.log(admin, action)
        except Exception:
            logger.warning("Admin action logger failed for %s", admin.email, exc_info=True)


class AdminActionLogger(Protocol):
    def log(self, admin: Account, action: str) -> None: ...


class SimpleAdminLogger:
    def __init__(self, store: Store):
        self.store = store

    def log(self, admin: Account, action: str) -> None:
        self.store.log(f"{utcnow().isoformat()} - ADMIN[{admin.email}] : {action}")


class CourierAPI(Protocol):
    def create_shipment(self, shipment: Shipment) -> None: ...

    def track_shipment(self, shipment_id: str) -> None: ...


class DummyCourier:
    def __init__(self) -> None:
        self.created: list[str] = []
        self.tracked: list[str] = []

    def create_shipment(self, shipment: Shipment) -> None:
        self.created.append(shipment.id)
        logger.info("Created shipment: %s", shipment.id)

    def track_shipment(self, shipment_id: str) -> None:
        self.tracked.append(shipment_id)
        logger.info("Tracking shipment: %s", shipment_id)


class ShippingService:
    """Courier calls are best-effort: failures are logged, never raised."""

    def __init__(self, store: Store, courier: CourierAPI):
        self.store = store
        self.courier = courier

    def dispatch(self, order: Order) -> Shipment:
        client = self.store.accounts.get(order.client_id)
        address = client.address if client else Address("", "", "", "")
        shipment = Shipment(order_id=order.id, to_address=address)
        self.store.shipments[shipment.id] = shipment
        try:
            self.courier.create_shipment(shipment)
        except Exception:
            logger.warning("Courier failed to create shipment for order %s", order.id, exc_info=True)
            self.store.log(f"[order={order.id}] shipment {shipment.id} courier create failed")
            return shipment
        shipment.status = ShipmentStatus.SHIPPED
        self.store.log(f"[order={order.id}] shipment created: {shipment.id} to {address.format()}")
        return shipment

    def track(self, shipment: Shipment, status: ShipmentStatus) -> None:
        shipment.status = status
        try:
            self.courier.track_shipment(shipment.id)
        except Exception:
            logger.warning("Courier failed to track shipment %s", shipment.id, exc_info=True)
            self.store.log(f"[order={shipment.order_id}] shipment {shipment.id} courier tracking failed")
            return
        self.store.log(f"[order={shipment.order_id}] shipment {shipment.id} {status.value}")


class LoyaltyService:
    def __init__(self, store: Store, points_per_unit: Decimal = Decimal("1")):
        self.store = store
        self.points_per_unit = points_per_unit

    def points_for(self, amount: Decimal) -> int:
        return int((amount * self.points_per_unit).to_integral_value(rounding=ROUND_FLOOR))

    def credit(self, order_id: str, client_id: str, amount: Decimal) -> int:
        account = self.store.get_loyalty(client_id)
        points = self.points_for(amount)
        account.add_points(points)
        self.store.log(f"[order={order_id}] loyalty credited: client={client_id} points={points} (balance={account.points})")
        return points

    def redeem(self, client_id: str, points: int) -> None:
        account = self.store.get_loyalty(client_id)
        if not account.use_points(points):
            raise InvalidInput(f"Client {client_id} has {account.points} points, cannot redeem {points}")
        self.store.log(f"[client={client_id}] loyalty redeemed: points={points} (balance={account.points})")
