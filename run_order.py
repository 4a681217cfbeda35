from __future__ import annotations

import argparse
import logging
from decimal import Decimal

from retail_demo.config import WorkflowSettings
from retail_demo.models import Address, Payment, PaymentType
from retail_demo.payments import DecliningGateway, StripeGateway
from retail_demo.services import AccountService, DummyCourier
from retail_demo.store import Store
from retail_demo.workflow import OrderWorkflow


def seed(store: Store) -> str:
    accounts = AccountService(store)
    client = accounts.register_client(
        "Ada", "ada@example.com", "+100000000", Address("1 Main St", "Springfield", "12345", "US")
    )

    store.add_warehouse("Main", warehouse_id="WH1")
    store.add_product("Keyboard", price=Decimal("100.00"), product_id="ITEM001")
    store.add_product("Mouse", price=Decimal("25.50"), product_id="ITEM002")
    store.set_stock("WH1", "ITEM001", 10)
    store.set_stock("WH1", "ITEM002", 5)
    return client.id


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    p = argparse.ArgumentParser(description="Run one order through checkout and payment and print logs.")
    p.add_argument("--sku", type=str, default="ITEM001")
    p.add_argument("--qty", type=int, default=1)
    p.add_argument("--decline", action="store_true", help="Use a gateway that declines every payment")
    p.add_argument("--cancel", action="store_true", help="Cancel the order after checkout instead of paying")
    args = p.parse_args()

    store = Store()
    client_id = seed(store)
    gateway = DecliningGateway() if args.decline else StripeGateway()
    workflow = OrderWorkflow(store, gateway=gateway, courier=DummyCourier(), settings=WorkflowSettings())

    outcome = workflow.create_order(client_id)
    order = outcome.order
    outcome = workflow.add_item(order.id, args.sku, args.qty)
    if outcome.ok:
        outcome = workflow.checkout(order.id, "WH1")
    if outcome.ok:
        if args.cancel:
            outcome = workflow.cancel(order.id)
        else:
            outcome = workflow.pay(order.id, Payment(PaymentType.CARD, order.total_amount))

    print("\n=== RESULT ===")
    print("outcome:", outcome.kind.value, outcome.error or "")
    print("order:", order.status.value, order.total_amount)
    print("stock:", {pid: store.ledger.get_stock("WH1", pid) for pid in store.products})
    print("points:", store.loyalty[client_id].points)


if __name__ == "__main__":
    main()
