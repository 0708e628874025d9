"""Integration tests for coupon, shipping zone and quote endpoints."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain
from protean.integrations.fastapi import register_exception_handlers
from storefront.api import reference_router
from storefront.coupon.coupon import Coupon


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(reference_router)
    register_exception_handlers(app)
    return TestClient(app)


def _zone(client, **overrides):
    body = {
        "name": "Domestic",
        "countries": ["US"],
        "rates": [{"min_weight": 0, "max_weight": 5, "price": 6.0}, {"min_weight": 5, "price": 12.0}],
        "handling_fee": 1.5,
    }
    body.update(overrides)
    response = client.post("/shipping/zones", json=body)
    assert response.status_code == 201, response.text
    return response.json()["zone_id"]


class TestCoupons:
    def test_create_coupon(self, client):
        now = datetime.now(UTC)
        response = client.post(
            "/coupons",
            json={
                "code": "spring20",
                "coupon_type": "percentage",
                "value": 20,
                "max_discount": 15,
                "starts_at": now.isoformat(),
                "ends_at": (now + timedelta(days=10)).isoformat(),
                "product_ids": ["prod-001"],
            },
        )
        assert response.status_code == 201
        coupon = current_domain.repository_for(Coupon).find_by_code("SPRING20")
        assert str(coupon.id) == response.json()["coupon_id"]
        assert coupon.scoped_product_ids == {"prod-001"}

    def test_window_must_be_ordered(self, client):
        now = datetime.now(UTC)
        response = client.post(
            "/coupons",
            json={
                "code": "BACKWARDS",
                "coupon_type": "fixed",
                "value": 5,
                "starts_at": now.isoformat(),
                "ends_at": (now - timedelta(days=1)).isoformat(),
            },
        )
        assert response.status_code == 400


class TestCouponValidation:
    @pytest.fixture()
    def coupon(self, client):
        now = datetime.now(UTC)
        response = client.post(
            "/coupons",
            json={
                "code": "save10",
                "coupon_type": "percentage",
                "value": 10,
                "min_purchase": 50,
                "starts_at": (now - timedelta(days=1)).isoformat(),
                "ends_at": (now + timedelta(days=10)).isoformat(),
            },
        )
        assert response.status_code == 201, response.text

    def test_valid_code_reports_discount(self, client, coupon):
        response = client.post("/coupons/validate", json={"code": "Save10", "subtotal": 100})
        assert response.status_code == 200
        assert response.json() == {
            "code": "SAVE10",
            "coupon_type": "percentage",
            "discount": 10.0,
            "free_shipping": False,
        }

    def test_unknown_code_is_400(self, client, coupon):
        response = client.post("/coupons/validate", json={"code": "NOPE", "subtotal": 100})
        assert response.status_code == 400

    def test_subtotal_below_minimum_is_400(self, client, coupon):
        response = client.post("/coupons/validate", json={"code": "SAVE10", "subtotal": 20})
        assert response.status_code == 400

    def test_validation_does_not_redeem(self, client, coupon):
        client.post("/coupons/validate", json={"code": "SAVE10", "subtotal": 100, "user_id": "user-1"})
        assert current_domain.repository_for(Coupon).find_by_code("SAVE10").usage_count == 0


class TestShippingQuote:
    def test_quote_uses_weight_band_and_fees(self, client):
        zone_id = _zone(client)
        response = client.post(
            "/shipping/quote",
            json={"items": [{"quantity": 3, "weight": 2.0}], "destination": {"country": "US"}, "subtotal": 40},
        )
        assert response.status_code == 200
        quote = response.json()
        assert quote["zone_id"] == zone_id
        assert quote["weight"] == 6.0
        assert quote["cost"] == 13.5

    def test_free_shipping_threshold(self, client):
        _zone(client, free_shipping_threshold=50)
        response = client.post(
            "/shipping/quote",
            json={"items": [{"quantity": 1, "weight": 1.0}], "destination": {"country": "US"}, "subtotal": 60},
        )
        assert response.json()["cost"] == 0.0
        assert response.json()["free_shipping"] is True

    def test_unserved_destination_is_400(self, client):
        _zone(client)
        response = client.post(
            "/shipping/quote",
            json={"items": [{"quantity": 1, "weight": 1.0}], "destination": {"country": "FR"}, "subtotal": 10},
        )
        assert response.status_code == 400
