"""Integration tests for inventory endpoints via TestClient."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean.integrations.fastapi import register_exception_handlers
from storefront.api import inventory_router


@pytest.fixture()
def client(shop):
    app = FastAPI()
    app.include_router(inventory_router)
    register_exception_handlers(app)
    return TestClient(app)


def _provision(client, product_id="prod-001", store_id="store-001", sku="SKU-001", quantity=10, **extra):
    response = client.post(
        "/inventory",
        json={"product_id": product_id, "store_id": store_id, "sku": sku, "quantity": quantity, **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()["record_id"]


class TestRecords:
    def test_provision_and_read_with_movements(self, client):
        record_id = _provision(client, quantity=12)
        data = client.get(f"/inventory/{record_id}").json()
        assert data["quantity"] == 12
        assert data["status"] == "in_stock"
        assert data["movements"][0]["movement_type"] == "initial"

    def test_duplicate_provision_is_400(self, client):
        _provision(client)
        response = client.post(
            "/inventory", json={"product_id": "prod-001", "store_id": "store-001", "sku": "SKU-001", "quantity": 1}
        )
        assert response.status_code == 400

    def test_list_by_store(self, client):
        _provision(client, store_id="store-001")
        _provision(client, store_id="store-002")
        records = client.get("/inventory", params={"store_id": "store-002"}).json()
        assert [r["store_id"] for r in records] == ["store-002"]

    def test_adjust_and_reconcile(self, client):
        record_id = _provision(client, quantity=10)
        response = client.post(
            f"/inventory/{record_id}/adjust",
            json={"adjustment_type": "remove", "quantity": 3, "reason": "Damaged", "adjusted_by": "clerk"},
        )
        assert response.json() == {"record_id": record_id, "quantity": 7}

        response = client.post(
            f"/inventory/{record_id}/reconcile",
            json={"quantity": 6, "reason": "Shelf count", "reconciled_by": "clerk"},
        )
        assert response.json()["quantity"] == 6

    def test_over_removal_is_400(self, client):
        record_id = _provision(client, quantity=2)
        response = client.post(
            f"/inventory/{record_id}/adjust",
            json={"adjustment_type": "remove", "quantity": 5, "reason": "Oops", "adjusted_by": "clerk"},
        )
        assert response.status_code == 400

    def test_low_stock_listing_and_settings(self, client):
        record_id = _provision(client, quantity=4)
        assert [r["id"] for r in client.get("/inventory/low-stock").json()] == [record_id]

        updated = client.put(f"/inventory/{record_id}", json={"low_stock_threshold": 2}).json()
        assert updated["low_stock_threshold"] == 2
        assert client.get("/inventory/low-stock").json() == []

    def test_discontinue_and_delete(self, client):
        record_id = _provision(client)
        assert client.put(f"/inventory/{record_id}", json={"discontinued": True}).json()["status"] == "discontinued"
        assert client.delete(f"/inventory/{record_id}").json() == {"status": "deleted"}
        assert client.get(f"/inventory/{record_id}").status_code == 404

    def test_list_by_store_keeps_sku_order(self, client):
        _provision(client, product_id="prod-002", store_id="store-001", sku="SKU-B")
        _provision(client, product_id="prod-001", store_id="store-001", sku="SKU-A")
        _provision(client, product_id="prod-001", store_id="store-002", sku="SKU-A")
        records = client.get("/inventory", params={"store_id": "store-001"}).json()
        assert [r["sku"] for r in records] == ["SKU-A", "SKU-B"]

    def test_out_of_stock_listing(self, client):
        empty = _provision(client, product_id="prod-001", sku="SKU-A", quantity=0)
        _provision(client, product_id="prod-002", sku="SKU-B", quantity=5)
        drained = _provision(client, product_id="prod-003", sku="SKU-C", quantity=2)
        client.post(
            f"/inventory/{drained}/adjust",
            json={"adjustment_type": "remove", "quantity": 2, "reason": "Damaged", "adjusted_by": "clerk"},
        )

        assert [r["id"] for r in client.get("/inventory/out-of-stock").json()] == [empty, drained]
        assert client.get("/inventory/out-of-stock", params={"store_id": "store-009"}).json() == []


class TestMovements:
    def test_history_is_oldest_first(self, client):
        record_id = _provision(client, quantity=10)
        client.post(
            f"/inventory/{record_id}/adjust",
            json={"adjustment_type": "remove", "quantity": 3, "reason": "Damaged", "adjusted_by": "clerk"},
        )
        client.post(
            f"/inventory/{record_id}/adjust",
            json={"adjustment_type": "add", "quantity": 1, "reason": "Found", "adjusted_by": "clerk"},
        )

        movements = client.get(f"/inventory/{record_id}/movements").json()
        assert [(m["movement_type"], m["delta"], m["quantity_after"]) for m in movements] == [
            ("initial", 10, 10),
            ("adjustment_remove", -3, 7),
            ("adjustment_add", 1, 8),
        ]

    def test_history_filtered_by_type(self, client):
        record_id = _provision(client, quantity=10)
        client.post(
            f"/inventory/{record_id}/adjust",
            json={"adjustment_type": "remove", "quantity": 3, "reason": "Damaged", "adjusted_by": "clerk"},
        )
        movements = client.get(
            f"/inventory/{record_id}/movements", params={"movement_type": "adjustment_remove"}
        ).json()
        assert [m["reason"] for m in movements] == ["Damaged"]

    def test_history_window_excludes_earlier_movements(self, client):
        record_id = _provision(client, quantity=10)
        later = (datetime.now(UTC) + timedelta(hours=1)).isoformat()
        assert client.get(f"/inventory/{record_id}/movements", params={"since": later}).json() == []

    def test_history_of_unknown_record_is_404(self, client):
        assert client.get("/inventory/missing/movements").status_code == 404

    def test_report_sums_movements_per_product_and_type(self, client):
        first = _provision(client, product_id="prod-001", store_id="store-001", sku="SKU-A", quantity=10)
        _provision(client, product_id="prod-001", store_id="store-002", sku="SKU-A", quantity=4)
        for quantity in (2, 3):
            client.post(
                f"/inventory/{first}/adjust",
                json={"adjustment_type": "remove", "quantity": quantity, "reason": "Damaged", "adjusted_by": "clerk"},
            )

        report = client.get("/inventory/movements").json()
        assert [(r["movement_type"], r["total_delta"], r["movements"]) for r in report] == [
            ("adjustment_remove", -5, 2),
            ("initial", 14, 2),
        ]

        by_store = client.get("/inventory/movements", params={"store_id": "store-002"}).json()
        assert [(r["movement_type"], r["total_delta"]) for r in by_store] == [("initial", 4)]


class TestBulkOperations:
    def test_transfer(self, client):
        source = _provision(client, store_id="store-001", quantity=10)
        target = _provision(client, store_id="store-002", quantity=0)

        response = client.post(
            "/inventory/transfer",
            json={
                "from_store_id": "store-001",
                "to_store_id": "store-002",
                "items": [{"product_id": "prod-001", "quantity": 4}],
                "transferred_by": "manager",
            },
        )

        assert response.status_code == 200
        assert response.json()["reference"]
        assert client.get(f"/inventory/{source}").json()["quantity"] == 6
        assert client.get(f"/inventory/{target}").json()["quantity"] == 4

    def test_stock_count_reports_discrepancies(self, client):
        _provision(client, quantity=10)
        response = client.post(
            "/inventory/count",
            json={"store_id": "store-001", "items": [{"product_id": "prod-001", "quantity": 8}], "counted_by": "clerk"},
        )
        line = response.json()[0]
        assert line["system_quantity"] == 10
        assert line["counted_quantity"] == 8
        assert line["discrepancy"] == -2

    def test_csv_export_then_import(self, client):
        _provision(client, quantity=10)
        exported = client.get("/inventory/export")
        assert exported.headers["content-type"].startswith("text/csv")
        assert "prod-001,,store-001,SKU-001,10,5" in exported.text

        content = (
            "product_id,variant_id,store_id,sku,quantity,low_stock_threshold\n"
            "prod-001,,store-001,SKU-001,15,\n"
            "prod-002,,store-001,SKU-002,3,1\n"
            "prod-003,,store-001,SKU-003,-1,\n"
        )
        result = client.post("/inventory/import", content=content.encode(), params={"imported_by": "ops"}).json()

        assert result["created"] == 1
        assert result["updated"] == 1
        assert result["errors"][0]["line"] == 4
