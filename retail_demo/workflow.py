from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional

from retail_demo.config import WorkflowSettings
from retail_demo.errors import InvalidInput, InvalidTransition, Outcome, PaymentFailed, ShopError, StockUnavailable
from retail_demo.models import Cart, OrderStatus, Payment, PaymentStatus, Role, ShipmentStatus, utcnow
from retail_demo.order import Order, Reservation
from retail_demo.payments import PaymentGateway, PaymentProcessor
from retail_demo.services import CourierAPI, LoyaltyService, ShippingService
from retail_demo.store import Store

logger = logging.getLogger(__name__)

SHIPMENT_STATUS_FOR: Dict[OrderStatus, ShipmentStatus] = {
    OrderStatus.IN_DELIVERY: ShipmentStatus.IN_TRANSIT,
    OrderStatus.DELIVERED: ShipmentStatus.DELIVERED,
}


class Step(ABC):
    def __init__(self, store: Store, order_id: str):
        self.store = store
        self.order_id = order_id

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def execute(self) -> None: ...

    @abstractmethod
    def compensate(self) -> None: ...

    def run(self) -> None:
        self.store.log(f"[order={self.order_id}] STEP {self.name()}")
        self.execute()
        self.store.log(f"[order={self.order_id}] STEP {self.name()} OK")

    def run_compensation(self) -> None:
        self.store.log(f"[order={self.order_id}] COMPENSATE {self.name()}")
        self.compensate()
        self.store.log(f"[order={self.order_id}] COMPENSATE {self.name()} OK")


class ReserveStock(Step):
    def __init__(self, store: Store, order_id: str, warehouse_id: str, product_id: str, qty: int):
        super().__init__(store, order_id)
        self.warehouse_id = warehouse_id
        self.product_id = product_id
        self.qty = qty

    def name(self) -> str:
        return f"ReserveStock({self.product_id} x{self.qty})"

    def execute(self) -> None:
        if not self.store.ledger.reserve(self.warehouse_id, self.product_id, self.qty):
            raise StockUnavailable(self.warehouse_id, self.product_id, self.qty)

    def compensate(self) -> None:
        self.store.ledger.release(self.warehouse_id, self.product_id, self.qty)

    def reservation(self) -> Reservation:
        return Reservation(warehouse_id=self.warehouse_id, product_id=self.product_id, qty=self.qty)


class OrderWorkflow:
    """
    Drives orders from creation to settlement, delivery or cancellation.

    Stock is reserved in short per-product critical sections before the
    gateway is called; no ledger lock is held while waiting on payment.
    Operations on one order are serialized by a per-order lock. Every public
    operation returns an Outcome instead of raising.
    """

    def __init__(
        self,
        store: Store,
        gateway: Optional[PaymentGateway] = None,
        courier: Optional[CourierAPI] = None,
        settings: Optional[WorkflowSettings] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.settings = settings or WorkflowSettings()
        self.loyalty = LoyaltyService(store, self.settings.loyalty_points_per_unit)
        self.shipping = ShippingService(store, courier) if courier is not None else None

        self._order_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._payment_lock = threading.Lock()

    def _lock_for(self, order_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._order_locks.get(order_id)
            if lock is None:
                lock = self._order_locks[order_id] = threading.Lock()
            return lock

    def _attempt(self, label: str, order_id: Optional[str], action: Callable[[], Optional[Order]]) -> Outcome:
        try:
            return Outcome.success(action())
        except ShopError as e:
            order = self.store.orders.get(order_id) if order_id else None
            prefix = f"[order={order_id}] " if order_id else ""
            self.store.log(f"{prefix}{label} FAILED: {e}")
            return Outcome.failure(e, order)

    # Order editing
    def create_order(self, client_id: str) -> Outcome:
        return self._attempt("CREATE", None, lambda: self._create_order(client_id))

    def _create_order(self, client_id: str) -> Order:
        client = self.store.accounts.get(client_id)
        if client is None or client.role is not Role.CLIENT:
            raise InvalidInput(f"Client {client_id} not found")
        order = Order(client_id=client_id, quantum=self.settings.currency_quantum)
        self.store.orders[order.id] = order
        client.order_ids.append(order.id)
        self.store.log(f"[order={order.id}] created for client={client_id}")
        return order

    def _check_owner(self, order: Order, client_id: Optional[str]) -> None:
        if client_id is not None and client_id != order.client_id:
            raise InvalidInput(f"Order {order.id} does not belong to client {client_id}")

    def add_item(self, order_id: str, product_id: str, qty: int, client_id: Optional[str] = None) -> Outcome:
        def action() -> Order:
            order = self.store.get_order(order_id)
            self._check_owner(order, client_id)
            product = self.store.get_product(product_id)
            with self._lock_for(order_id):
                order.add_item(product, qty)
            self.store.log(f"[order={order_id}] item added: {product_id} qty={qty} (total={order.total_amount})")
            return order

        return self._attempt("ADD ITEM", order_id, action)

    def remove_item(self, order_id: str, product_id: str, client_id: Optional[str] = None) -> Outcome:
        def action() -> Order:
            order = self.store.get_order(order_id)
            self._check_owner(order, client_id)
            with self._lock_for(order_id):
                order.remove_item(product_id)
            self.store.log(f"[order={order_id}] item removed: {product_id} (total={order.total_amount})")
            return order

        return self._attempt("REMOVE ITEM", order_id, action)

    def order_from_cart(self, cart: Cart) -> Outcome:
        def action() -> Order:
            if not cart.quantities:
                raise InvalidInput("Cart is empty")
            products = [self.store.get_product(pid) for pid in cart.quantities]
            order = self._create_order(cart.client_id)
            for product in products:
                order.add_item(product, cart.quantities[product.id])
            self.store.log(f"[order={order.id}] built from cart: {len(order.items)} lines (total={order.total_amount})")
            return order

        return self._attempt("CART", None, action)

    # Checkout: all-or-nothing reservation
    def checkout(self, order_id: str, warehouse_id: str) -> Outcome:
        return self._attempt("CHECKOUT", order_id, lambda: self._checkout(order_id, warehouse_id))

    def _checkout(self, order_id: str, warehouse_id: str) -> Order:
        order = self.store.get_order(order_id)
        if warehouse_id not in self.store.warehouses:
            raise InvalidInput(f"Warehouse {warehouse_id} not found")

        with self._lock_for(order_id):
            if order.status is not OrderStatus.CREATED:
                raise InvalidTransition(f"Order {order_id} is {order.status.value}, cannot check out")
            if order.holds_stock:
                raise InvalidTransition(f"Order {order_id} is already checked out")
            if not order.items:
                raise InvalidInput(f"Order {order_id} has no items")

            self.store.log(f"[order={order_id}] CHECKOUT START warehouse={warehouse_id} total={order.total_amount}")
            steps = [ReserveStock(self.store, order_id, warehouse_id, i.product_id, i.quantity) for i in order.items]

            completed: List[ReserveStock] = []
            try:
                for step in steps:
                    step.run()
                    completed.append(step)
            except ShopError:
                for step in reversed(completed):
                    try:
                        step.run_compensation()
                    except Exception as comp_exc:
                        self.store.log(f"[order={order_id}] COMPENSATION FAILED at {step.name()}: {comp_exc}")
                raise

            order.reservations = [step.reservation() for step in completed]
            order.reserved_at = utcnow()
            self.store.log(f"[order={order_id}] CHECKOUT OK")
        return order

    # Settlement
    def pay(self, order_id: str, payment: Payment, gateway: Optional[PaymentGateway] = None) -> Outcome:
        return self._attempt("PAY", order_id, lambda: self._pay(order_id, payment, gateway or self.gateway))

    def _pay(self, order_id: str, payment: Payment, gateway: Optional[PaymentGateway]) -> Order:
        order = self.store.get_order(order_id)
        if gateway is None:
            raise InvalidInput("No payment gateway configured")

        with self._lock_for(order_id):
            if order.status is not OrderStatus.CREATED or not order.holds_stock:
                raise InvalidTransition(f"Order {order_id} holds no reservations, check out before paying")
            if payment.amount != order.total_amount:
                raise InvalidInput(f"Payment amount {payment.amount} does not match order total {order.total_amount}")
            # Loyalty account must exist before any money moves.
            self.store.get_loyalty(order.client_id)
            self._claim_payment(payment)

            order.payment_id = payment.id
            self.store.log(f"[order={order_id}] PAY START payment={payment.id} type={payment.type.value} amount={payment.amount}")

            try:
                PaymentProcessor(gateway).process(payment)
            except PaymentFailed:
                self._release_reservations(order)
                order.cancel()
                self.store.log(f"[order={order_id}] payment failed, order cancelled")
                raise

            for r in order.reservations:
                self.store.ledger.consume(r.warehouse_id, r.product_id, r.qty)
            order.reservations = []
            order.advance_to(OrderStatus.PROCESSING)
            self.store.log(f"[order={order_id}] PAYMENT COMPLETED status={order.status.value}")
            self.loyalty.credit(order_id, order.client_id, payment.amount)

            if self.shipping is not None:
                order.shipment_id = self.shipping.dispatch(order).id
        return order

    def _claim_payment(self, payment: Payment) -> None:
        """Bind a payment to exactly one order; a second claim is rejected."""
        with self._payment_lock:
            if payment.status is not PaymentStatus.PENDING or payment.id in self.store.payments:
                raise InvalidTransition(f"Payment {payment.id} is already used, use a new payment")
            self.store.payments[payment.id] = payment

    def _release_reservations(self, order: Order) -> None:
        for r in reversed(order.reservations):
            self.store.ledger.release(r.warehouse_id, r.product_id, r.qty)
            self.store.log(f"[order={order.id}] stock released: {r.product_id} qty={r.qty}")
        order.reservations = []
        order.reserved_at = None

    # Cancellation and delivery
    def cancel(self, order_id: str, client_id: Optional[str] = None) -> Outcome:
        """Cancel on behalf of the owning client, or as admin when client_id is None."""
        return self._attempt("CANCEL", order_id, lambda: self._cancel(order_id, client_id))

    def _cancel(self, order_id: str, client_id: Optional[str]) -> Order:
        order = self.store.get_order(order_id)
        self._check_owner(order, client_id)
        with self._lock_for(order_id):
            order.cancel()
            self._release_reservations(order)
            payment = self.store.payments.get(order.payment_id) if order.payment_id else None
            if payment is not None and payment.status is PaymentStatus.COMPLETED:
                payment.refund()
                self.store.log(f"[order={order_id}] payment {payment.id} refunded")
            self.store.log(f"[order={order_id}] cancelled")
        return order

    def advance_shipment(self, order_id: str, new_status: OrderStatus) -> Outcome:
        return self._attempt("ADVANCE", order_id, lambda: self._advance_shipment(order_id, new_status))

    def _advance_shipment(self, order_id: str, new_status: OrderStatus) -> Order:
        order = self.store.get_order(order_id)
        if new_status not in SHIPMENT_STATUS_FOR:
            raise InvalidTransition(f"{new_status.value} is not a shipment status")
        with self._lock_for(order_id):
            order.advance_to(new_status)
            self.store.log(f"[order={order_id}] status -> {new_status.value}")
            shipment = self.store.shipments.get(order.shipment_id) if order.shipment_id else None
            if shipment is not None and self.shipping is not None:
                self.shipping.track(shipment, SHIPMENT_STATUS_FOR[new_status])
        return order

    # Loyalty
    def redeem_points(self, client_id: str, points: int) -> Outcome:
        def action() -> None:
            self.loyalty.redeem(client_id, points)

        return self._attempt("REDEEM", None, action)

    # Abandoned reservations
    def release_expired_reservations(self, now: Optional[datetime] = None) -> List[str]:
        """Cancel unpaid orders whose reservations outlived the configured TTL."""
        ttl = self.settings.reservation_ttl
        if ttl is None:
            return []
        now = now or utcnow()
        expired: List[str] = []
        for order in list(self.store.orders.values()):
            if order.reserved_at is None or order.reserved_at + ttl > now:
                continue
            with self._lock_for(order.id):
                # Re-check under the lock; payment may have settled meanwhile.
                if not order.holds_stock or order.status is not OrderStatus.CREATED:
                    continue
                self._release_reservations(order)
                order.cancel()
                self.store.log(f"[order={order.id}] reservation expired, order cancelled")
                expired.append(order.id)
        return expired
