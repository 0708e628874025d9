"""Application tests for multi-record ledger operations."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from storefront.errors import InsufficientInventory, InsufficientStock
from storefront.inventory import ledger
from storefront.inventory.counting import RecordStockCount
from storefront.inventory.ledger import StockLine
from storefront.inventory.record import InventoryRecord, MovementType
from storefront.inventory.transfer import TransferStock


def _records():
    return current_domain.repository_for(InventoryRecord)


class TestReserveLines:
    def test_reserves_every_line(self, shop):
        a = shop.stock("prod-a", sku="A", quantity=5)
        b = shop.stock("prod-b", sku="B", quantity=5)

        ledger.reserve_lines(
            [StockLine("prod-a", "store-001", 2, sku="A"), StockLine("prod-b", "store-001", 3, sku="B")],
            order_id="ord-001",
        )

        assert shop.record(a).quantity == 3
        assert shop.record(b).quantity == 2

    def test_shortfall_restores_lines_already_reserved(self, shop):
        a = shop.stock("prod-a", sku="A", quantity=5)
        b = shop.stock("prod-b", sku="B", quantity=1)

        with pytest.raises(InsufficientInventory) as exc:
            ledger.reserve_lines(
                [StockLine("prod-a", "store-001", 2, sku="A"), StockLine("prod-b", "store-001", 3, sku="B")],
                order_id="ord-001",
            )

        assert exc.value.sku == "B"
        assert exc.value.available == 1
        assert shop.record(a).quantity == 5
        assert shop.record(b).quantity == 1
        movement_types = [m.movement_type for m in shop.record(a).movements]
        assert MovementType.ORDER_RESTORE.value in movement_types

    def test_missing_record_counts_as_zero_available(self, shop):
        with pytest.raises(InsufficientInventory) as exc:
            ledger.reserve_lines([StockLine("prod-x", "store-001", 1, sku="X")], order_id="ord-001")
        assert exc.value.available == 0

    def test_reserve_then_restore_round_trips(self, shop):
        a = shop.stock("prod-a", sku="A", quantity=7)
        lines = [StockLine("prod-a", "store-001", 4, sku="A")]
        ledger.reserve_lines(lines, order_id="ord-001")
        ledger.restore_lines(lines, order_id="ord-001")
        assert shop.record(a).quantity == 7


class TestConcurrentReservations:
    """A writer holding an outdated copy of a record reloads it and re-checks stock."""

    @staticmethod
    def _hand_out(monkeypatch, stale):
        require = ledger._require

        def _require(product_id, variant_id, store_id):
            if product_id == stale.product_id:
                return stale
            return require(product_id, variant_id, store_id)

        monkeypatch.setattr(ledger, "_require", _require)

    def test_outdated_copy_is_reloaded_and_reserved(self, shop, monkeypatch):
        a = shop.stock("prod-a", sku="A", quantity=5)
        stale = _records().get(a)
        ledger.reserve_lines([StockLine("prod-a", "store-001", 2, sku="A")], order_id="ord-001")

        self._hand_out(monkeypatch, stale)
        ledger.reserve_lines([StockLine("prod-a", "store-001", 1, sku="A")], order_id="ord-002")

        record = shop.record(a)
        assert record.quantity == 2
        reserves = [m for m in record.movements if m.movement_type == MovementType.ORDER_RESERVE.value]
        assert len(reserves) == 2

    def test_losing_writer_sees_the_stock_already_taken(self, shop, monkeypatch):
        a = shop.stock("prod-a", sku="A", quantity=3)
        stale = _records().get(a)
        ledger.reserve_lines([StockLine("prod-a", "store-001", 3, sku="A")], order_id="ord-001")

        self._hand_out(monkeypatch, stale)
        with pytest.raises(InsufficientInventory) as exc:
            ledger.reserve_lines([StockLine("prod-a", "store-001", 1, sku="A")], order_id="ord-002")

        assert exc.value.available == 0
        assert shop.record(a).quantity == 0

    def test_line_reserved_after_a_reload_is_compensated(self, shop, monkeypatch):
        a = shop.stock("prod-a", sku="A", quantity=5)
        b = shop.stock("prod-b", sku="B", quantity=1)
        stale = _records().get(a)
        ledger.reserve_lines([StockLine("prod-a", "store-001", 2, sku="A")], order_id="ord-001")

        self._hand_out(monkeypatch, stale)
        with pytest.raises(InsufficientInventory) as exc:
            ledger.reserve_lines(
                [StockLine("prod-a", "store-001", 1, sku="A"), StockLine("prod-b", "store-001", 3, sku="B")],
                order_id="ord-002",
            )

        assert exc.value.sku == "B"
        assert shop.record(a).quantity == 3
        assert shop.record(b).quantity == 1

    def test_conflicts_beyond_the_retry_limit_propagate(self, shop, monkeypatch):
        monkeypatch.setenv("RESERVATION_RETRY_LIMIT", "1")
        a = shop.stock("prod-a", sku="A", quantity=5)
        stale = _records().get(a)
        ledger.reserve_lines([StockLine("prod-a", "store-001", 2, sku="A")], order_id="ord-001")

        self._hand_out(monkeypatch, stale)
        with pytest.raises(ExpectedVersionError):
            ledger.reserve_lines([StockLine("prod-a", "store-001", 1, sku="A")], order_id="ord-002")

        assert shop.record(a).quantity == 3


class TestTransfer:
    def test_transfer_provisions_destination(self, shop):
        source = shop.stock("prod-a", sku="A", quantity=10)
        reference = shop.process(
            TransferStock(
                from_store_id="store-001",
                to_store_id="store-002",
                items=json.dumps([{"product_id": "prod-a", "quantity": 4}]),
                transferred_by="staff-1",
            )
        )

        assert reference.startswith("TRF-")
        assert shop.record(source).quantity == 6
        destination = _records().find_for("prod-a", None, "store-002")
        assert destination.quantity == 4
        assert destination.sku == "A"
        assert destination.movements[-1].reference == reference

    def test_transfer_fails_as_a_whole_when_any_line_is_short(self, shop):
        a = shop.stock("prod-a", sku="A", quantity=10)
        b = shop.stock("prod-b", sku="B", quantity=1)

        with pytest.raises(InsufficientStock):
            ledger.transfer(
                "store-001",
                "store-002",
                [StockLine("prod-a", "store-001", 5), StockLine("prod-b", "store-001", 2)],
                actor="staff-1",
            )

        assert shop.record(a).quantity == 10
        assert shop.record(b).quantity == 1
        assert _records().find_for("prod-a", None, "store-002") is None

    def test_repeated_product_lines_are_checked_together(self, shop):
        a = shop.stock("prod-a", sku="A", quantity=5)

        with pytest.raises(InsufficientStock) as exc:
            ledger.transfer(
                "store-001",
                "store-002",
                [StockLine("prod-a", "store-001", 3), StockLine("prod-a", "store-001", 3)],
                actor="staff-1",
            )

        assert exc.value.requested == 6
        assert exc.value.available == 5
        assert shop.record(a).quantity == 5
        assert _records().find_for("prod-a", None, "store-002") is None

    def test_repeated_product_lines_move_their_sum(self, shop):
        a = shop.stock("prod-a", sku="A", quantity=5)

        ledger.transfer(
            "store-001",
            "store-002",
            [StockLine("prod-a", "store-001", 2), StockLine("prod-a", "store-001", 2)],
            actor="staff-1",
        )

        assert shop.record(a).quantity == 1
        assert _records().find_for("prod-a", None, "store-002").quantity == 4

    def test_same_store_rejected(self, shop):
        shop.stock("prod-a", sku="A", quantity=10)
        with pytest.raises(ValidationError):
            ledger.transfer("store-001", "store-001", [StockLine("prod-a", "store-001", 1)], actor="staff-1")

    def test_unknown_source_record(self, shop):
        with pytest.raises(ObjectNotFoundError):
            ledger.transfer("store-001", "store-002", [StockLine("prod-x", "store-001", 1)], actor="staff-1")


class TestStockCount:
    def test_only_discrepancies_change_stock(self, shop):
        a = shop.stock("prod-a", sku="A", quantity=10)
        b = shop.stock("prod-b", sku="B", quantity=4)

        results = shop.process(
            RecordStockCount(
                store_id="store-001",
                items=json.dumps([{"product_id": "prod-a", "quantity": 8}, {"product_id": "prod-b", "quantity": 4}]),
                counted_by="counter",
            )
        )

        by_sku = {r["sku"]: r for r in results}
        assert by_sku["A"]["discrepancy"] == -2
        assert by_sku["B"]["discrepancy"] == 0
        assert shop.record(a).quantity == 8
        assert len(shop.record(b).movements) == 1
