"""Tests for the per-key stock ledger."""
import logging
import threading

import pytest

from retail_demo.errors import InvalidInput
from retail_demo.ledger import StockLedger


@pytest.fixture
def ledger() -> StockLedger:
    ledger = StockLedger()
    ledger.set_stock("WH1", "P1", 5)
    ledger.set_stock("WH1", "P2", 1)
    return ledger


def test_reserve_then_release_restores_count(ledger):
    assert ledger.reserve("WH1", "P1", 3) is True
    assert ledger.get_stock("WH1", "P1") == 2
    assert ledger.held("WH1", "P1") == 3

    ledger.release("WH1", "P1", 3)
    assert ledger.get_stock("WH1", "P1") == 5
    assert ledger.held("WH1", "P1") == 0


def test_reserve_insufficient_returns_false_and_leaves_state(ledger):
    assert ledger.reserve("WH1", "P1", 6) is False
    assert ledger.get_stock("WH1", "P1") == 5
    assert ledger.held("WH1", "P1") == 0


def test_reserve_exact_available(ledger):
    assert ledger.reserve("WH1", "P1", 5) is True
    assert ledger.get_stock("WH1", "P1") == 0
    assert ledger.reserve("WH1", "P1", 1) is False


@pytest.mark.parametrize("qty", [0, -1])
def test_non_positive_qty_is_rejected(ledger, qty):
    with pytest.raises(InvalidInput):
        ledger.reserve("WH1", "P1", qty)
    with pytest.raises(InvalidInput):
        ledger.release("WH1", "P1", qty)
    assert ledger.get_stock("WH1", "P1") == 5


def test_unknown_key_is_rejected(ledger):
    with pytest.raises(InvalidInput):
        ledger.reserve("WH1", "NOPE", 1)
    with pytest.raises(InvalidInput):
        ledger.reserve("WH9", "P1", 1)
    assert ledger.get_stock("WH9", "P1") == 0


def test_set_stock_rejects_negative(ledger):
    with pytest.raises(InvalidInput):
        ledger.set_stock("WH1", "P1", -1)


def test_consume_keeps_stock_decremented(ledger):
    ledger.reserve("WH1", "P1", 2)
    ledger.consume("WH1", "P1", 2)
    assert ledger.get_stock("WH1", "P1") == 3
    assert ledger.held("WH1", "P1") == 0


def test_over_release_is_applied_and_logged(ledger, caplog):
    ledger.reserve("WH1", "P2", 1)
    with caplog.at_level(logging.ERROR, logger="retail_demo.ledger"):
        ledger.release("WH1", "P2", 3)

    assert ledger.get_stock("WH1", "P2") == 3
    assert ledger.held("WH1", "P2") == 0
    assert any("exceeds held quantity" in r.getMessage() for r in caplog.records)


def test_concurrent_reserve_for_last_units_never_oversells(ledger):
    """Two threads race for the full available quantity; exactly one wins."""
    barrier = threading.Barrier(2)
    results = []

    def worker():
        barrier.wait()
        results.append(ledger.reserve("WH1", "P1", 5))

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == [False, True]
    assert ledger.get_stock("WH1", "P1") == 0


def test_many_single_unit_reservations(ledger):
    ledger.set_stock("WH1", "P1", 50)
    results = []
    lock = threading.Lock()

    def worker():
        for _ in range(10):
            ok = ledger.reserve("WH1", "P1", 1)
            with lock:
                results.append(ok)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 50
    assert results.count(False) == 30
    assert ledger.get_stock("WH1", "P1") == 0
    assert ledger.held("WH1", "P1") == 50


def test_over_release_check_is_per_key_total(ledger, caplog):
    """Holds from every order share one counter per key."""
    ledger.reserve("WH1", "P1", 2)
    ledger.reserve("WH1", "P1", 2)
    with caplog.at_level(logging.ERROR, logger="retail_demo.ledger"):
        ledger.release("WH1", "P1", 2)
        ledger.release("WH1", "P1", 2)
    assert caplog.records == []

    with caplog.at_level(logging.ERROR, logger="retail_demo.ledger"):
        ledger.release("WH1", "P1", 1)
    assert len(caplog.records) == 1
    assert ledger.get_stock("WH1", "P1") == 6
