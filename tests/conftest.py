"""Pytest fixtures for the order workflow demo."""

from decimal import Decimal

import pytest

from retail_demo.config import WorkflowSettings
from retail_demo.models import Address
from retail_demo.payments import StripeGateway
from retail_demo.services import AccountService, DummyCourier
from retail_demo.store import Store
from retail_demo.workflow import OrderWorkflow


@pytest.fixture
def store() -> Store:
    store = Store()

    accounts = AccountService(store)
    accounts.register_client("Ada", "ada@example.com", "+1000", Address("1 Main St", "Springfield", "12345", "US"))
    accounts.register_client("Bob", "bob@example.com", "+2000", Address("2 Side St", "Shelbyville", "54321", "US"))
    accounts.register_admin("Root", "root@example.com", "+3000", Address("3 HQ Rd", "Capital", "00001", "US"))

    store.add_warehouse("Main", warehouse_id="WH1")
    store.add_warehouse("Overflow", warehouse_id="WH2")

    store.add_product("Keyboard", price=Decimal("100.00"), product_id="ITEM001")
    store.add_product("Mouse", price=Decimal("25.50"), product_id="ITEM002")
    store.add_product("Cable", price=Decimal("50.00"), product_id="ITEM003")

    store.set_stock("WH1", "ITEM001", 10)
    store.set_stock("WH1", "ITEM002", 5)
    store.set_stock("WH1", "ITEM003", 0)  # Out of stock

    return store


@pytest.fixture
def ada(store) -> str:
    return AccountService(store).login("ada@example.com").id


@pytest.fixture
def bob(store) -> str:
    return AccountService(store).login("bob@example.com").id


@pytest.fixture
def courier() -> DummyCourier:
    return DummyCourier()


@pytest.fixture
def workflow(store, courier) -> OrderWorkflow:
    return OrderWorkflow(store, gateway=StripeGateway(), courier=courier, settings=WorkflowSettings())
