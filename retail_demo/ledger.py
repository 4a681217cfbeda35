from __future__ import annotations

import logging
import threading
from typing import Dict, Tuple

from retail_demo.errors import InvalidInput

logger = logging.getLogger(__name__)

StockKey = Tuple[str, str]


class StockLedger:
    """
    Available quantity per (warehouse, product).

    Every key has its own lock, so reservations of unrelated products never
    wait on each other. The held counter tracks quantity reserved but not
    yet released or consumed; it only feeds the over-release check.

    The held counter is summed over every order on a key, so the check only
    fires once releases exceed all holds on that key. A double release by
    one order while another order still holds the same product goes
    unnoticed here; per-order bookkeeping lives on Order.reservations.
    """

    def __init__(self) -> None:
        self._available: Dict[StockKey, int] = {}
        self._held: Dict[StockKey, int] = {}
        self._locks: Dict[StockKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: StockKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _checked_key(self, warehouse_id: str, product_id: str, qty: int) -> StockKey:
        if qty <= 0:
            raise InvalidInput(f"qty must be > 0, got {qty}")
        key = (warehouse_id, product_id)
        if key not in self._available:
            raise InvalidInput(f"No stock record for {product_id} in warehouse {warehouse_id}")
        return key

    # Administrative, not transactional with reservations
    def set_stock(self, warehouse_id: str, product_id: str, qty: int) -> None:
        if qty < 0:
            raise InvalidInput(f"stock must be >= 0, got {qty}")
        key = (warehouse_id, product_id)
        with self._lock_for(key):
            self._available[key] = qty
            self._held.setdefault(key, 0)

    def get_stock(self, warehouse_id: str, product_id: str) -> int:
        return self._available.get((warehouse_id, product_id), 0)

    def held(self, warehouse_id: str, product_id: str) -> int:
        return self._held.get((warehouse_id, product_id), 0)

    def reserve(self, warehouse_id: str, product_id: str, qty: int) -> bool:
        key = self._checked_key(warehouse_id, product_id, qty)
        with self._lock_for(key):
            available = self._available[key]
            if available < qty:
                return False
            self._available[key] = available - qty
            self._held[key] += qty
            return True

    def release(self, warehouse_id: str, product_id: str, qty: int) -> None:
        key = self._checked_key(warehouse_id, product_id, qty)
        with self._lock_for(key):
            self._available[key] += qty
            self._settle_held(key, qty, "release")

    def consume(self, warehouse_id: str, product_id: str, qty: int) -> None:
        """Turn a held reservation into a permanent decrement."""
        key = self._checked_key(warehouse_id, product_id, qty)
        with self._lock_for(key):
            self._settle_held(key, qty, "consume")

    def _settle_held(self, key: StockKey, qty: int, action: str) -> None:
        held = self._held[key]
        if qty > held:
            logger.error(
                "%s of %s exceeds held quantity %s for %s in warehouse %s",
                action,
                qty,
                held,
                key[1],
                key[0],
            )
        self._held[key] = max(held - qty, 0)
