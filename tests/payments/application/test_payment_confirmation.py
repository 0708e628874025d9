"""Application tests for capturing payments."""

import pytest
from protean import current_domain
from storefront.coupon.coupon import Coupon
from storefront.errors import PaymentTimeout
from storefront.order.order import OrderStatus, PaymentStatus
from storefront.payment.payment import Payment, PaymentState


def _payment(payment_id):
    return current_domain.repository_for(Payment).get(payment_id)


class TestConfirmSuccess:
    def test_capture_pays_order_and_starts_processing(self, stocked_shop):
        placed = stocked_shop.place_order()
        outcome = stocked_shop.pay(placed)

        assert outcome.succeeded
        assert outcome.order_id == placed["order_id"]
        assert _payment(placed["payment_id"]).status == PaymentState.SUCCEEDED.value
        order = stocked_shop.order(placed["order_id"])
        assert order.status == OrderStatus.PROCESSING.value
        assert order.payment_status == PaymentStatus.PAID.value

    def test_confirming_twice_is_harmless(self, stocked_shop, gateway):
        placed = stocked_shop.place_order()
        stocked_shop.pay(placed)
        outcome = stocked_shop.pay(placed)

        assert outcome.succeeded
        assert len([c for c in gateway.calls if c["method"] == "confirm_intent"]) == 1

    def test_coupon_counted_once_on_capture(self, stocked_shop):
        stocked_shop.coupon("SAVE10", value=10.0)
        placed = stocked_shop.place_order(coupon_code="SAVE10")
        stocked_shop.pay(placed)
        stocked_shop.pay(placed)

        coupon = current_domain.repository_for(Coupon).find_by_code("SAVE10")
        assert coupon.usage_count == 1
        assert coupon.redemptions_by("cust-001") == 1

    def test_exhausted_coupon_does_not_block_capture(self, stocked_shop):
        stocked_shop.coupon("ONCE", value=10.0, usage_limit_per_coupon=1)
        first = stocked_shop.place_order(customer_id="cust-001", coupon_code="ONCE")
        second = stocked_shop.place_order(customer_id="cust-002", coupon_code="ONCE")

        stocked_shop.pay(first)
        outcome = stocked_shop.pay(second)

        assert outcome.succeeded
        assert current_domain.repository_for(Coupon).find_by_code("ONCE").usage_count == 1


class TestConfirmFailure:
    def test_decline_keeps_order_pending(self, stocked_shop, gateway, email):
        placed = stocked_shop.place_order()
        gateway.configure(should_succeed=False, failure_reason="Insufficient funds")

        outcome = stocked_shop.pay(placed)

        assert not outcome.succeeded
        assert outcome.failure_reason == "Insufficient funds"
        payment = _payment(placed["payment_id"])
        assert payment.status == PaymentState.FAILED.value
        order = stocked_shop.order(placed["order_id"])
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.FAILED.value
        assert "Payment unsuccessful" in email.subjects()

    def test_decline_then_retry_succeeds(self, stocked_shop, gateway):
        placed = stocked_shop.place_order()
        gateway.configure(should_succeed=False)
        stocked_shop.pay(placed)

        gateway.configure(should_succeed=True)
        outcome = stocked_shop.pay(placed)

        assert outcome.succeeded
        assert stocked_shop.order(placed["order_id"]).payment_status == PaymentStatus.PAID.value

    def test_timeout_is_retryable_and_changes_nothing(self, stocked_shop, gateway):
        placed = stocked_shop.place_order()
        gateway.configure(simulate_timeout=True)

        with pytest.raises(PaymentTimeout) as exc:
            stocked_shop.pay(placed)

        assert exc.value.retryable is True
        assert _payment(placed["payment_id"]).status == PaymentState.PENDING.value
        order = stocked_shop.order(placed["order_id"])
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value

    def test_gateway_calls_carry_timeout(self, stocked_shop, gateway, monkeypatch):
        monkeypatch.setenv("EXTERNAL_CALL_TIMEOUT", "7")
        placed = stocked_shop.place_order()
        stocked_shop.pay(placed)
        assert all(call["timeout"] == 7.0 for call in gateway.calls)
