from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from retail_demo.errors import InvalidInput
from retail_demo.ledger import StockLedger
from retail_demo.models import (
    Account,
    Category,
    LoyaltyAccount,
    Payment,
    Product,
    ProductKind,
    Shipment,
    new_id,
)
from retail_demo.order import Order

logger = logging.getLogger(__name__)


class Store:
    """
    In-memory storage for the demo and the tests.

    Holds the catalog, accounts, orders, payments and shipments, the stock
    ledger, and an append-only list of business log lines. Persistence is
    left to whatever application wraps the workflow.
    """

    def __init__(self) -> None:
        self.accounts: Dict[str, Account] = {}
        self.loyalty: Dict[str, LoyaltyAccount] = {}
        self.categories: Dict[str, Category] = {}
        self.products: Dict[str, Product] = {}
        self.orders: Dict[str, Order] = {}
        self.payments: Dict[str, Payment] = {}
        self.shipments: Dict[str, Shipment] = {}
        self.warehouses: Dict[str, str] = {}

        self.ledger = StockLedger()
        self.logs: List[str] = []

    def log(self, message: str) -> None:
        self.logs.append(message)
        logger.info(message)

    def get_product(self, product_id: str) -> Product:
        product = self.products.get(product_id)
        if product is None:
            raise InvalidInput(f"Product {product_id} not found")
        return product

    def get_order(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise InvalidInput(f"Order {order_id} not found")
        return order

    def get_loyalty(self, client_id: str) -> LoyaltyAccount:
        account = self.loyalty.get(client_id)
        if account is None:
            raise InvalidInput(f"No loyalty account for client {client_id}")
        return account

    # Seed helpers
    def add_category(self, name: str, category_id: Optional[str] = None) -> Category:
        category = Category(id=category_id or new_id(), name=name)
        self.categories[category.id] = category
        return category

    def add_product(
        self,
        name: str,
        price: Decimal,
        product_id: Optional[str] = None,
        description: str = "",
        category_id: Optional[str] = None,
        kind: ProductKind = ProductKind.PHYSICAL,
        download_url: Optional[str] = None,
    ) -> Product:
        if price < 0:
            raise InvalidInput(f"Price must be >= 0, got {price}")
        if category_id is not None and category_id not in self.categories:
            raise InvalidInput(f"Category {category_id} not found")
        product = Product(
            id=product_id or new_id(),
            name=name,
            description=description,
            price=price,
            category_id=category_id,
            kind=kind,
            download_url=download_url if kind is ProductKind.DIGITAL else None,
        )
        self.products[product.id] = product
        return product

    def update_product_price(self, product_id: str, price: Decimal) -> Product:
        product = self.get_product(product_id)
        old = product.price
        product.update_price(price)
        self.log(f"[product={product_id}] price updated: {old} -> {price}")
        return product

    def add_warehouse(self, name: str, warehouse_id: Optional[str] = None) -> str:
        warehouse_id = warehouse_id or new_id()
        self.warehouses[warehouse_id] = name
        return warehouse_id

    def set_stock(self, warehouse_id: str, product_id: str, qty: int) -> None:
        if warehouse_id not in self.warehouses:
            raise InvalidInput(f"Warehouse {warehouse_id} not found")
        self.get_product(product_id)
        self.ledger.set_stock(warehouse_id, product_id, qty)
        self.log(f"[warehouse={warehouse_id}] stock set: {product_id} qty={qty}")
