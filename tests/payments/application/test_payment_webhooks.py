"""Application tests for provider webhook deliveries."""

from protean import current_domain
from storefront.order.order import OrderStatus, PaymentStatus
from storefront.payment.payment import Payment, PaymentState
from storefront.payment.webhook import ProcessPaymentWebhook, WebhookReceipt


def _intent(payment_id):
    return current_domain.repository_for(Payment).get(payment_id).external_intent_id


def _deliver(shop, event_id, event_type, intent_id, **data):
    return shop.process(ProcessPaymentWebhook(event_id=event_id, event_type=event_type, intent_id=intent_id, **data))


class TestIntentEvents:
    def test_succeeded_event_pays_order(self, stocked_shop):
        placed = stocked_shop.place_order()
        result = _deliver(stocked_shop, "evt_1", "payment_intent.succeeded", _intent(placed["payment_id"]))

        assert result == "processed"
        order = stocked_shop.order(placed["order_id"])
        assert order.status == OrderStatus.PROCESSING.value
        assert order.payment_status == PaymentStatus.PAID.value

    def test_replayed_event_is_a_duplicate(self, stocked_shop):
        placed = stocked_shop.place_order()
        intent = _intent(placed["payment_id"])
        _deliver(stocked_shop, "evt_1", "payment_intent.succeeded", intent)

        assert _deliver(stocked_shop, "evt_1", "payment_intent.succeeded", intent) == "duplicate"

    def test_succeeded_after_direct_confirmation_is_ignored(self, stocked_shop):
        placed = stocked_shop.place_order()
        stocked_shop.pay(placed)
        result = _deliver(stocked_shop, "evt_2", "payment_intent.succeeded", _intent(placed["payment_id"]))
        assert result == "ignored"

    def test_failed_event_keeps_order_pending(self, stocked_shop):
        placed = stocked_shop.place_order()
        result = _deliver(
            stocked_shop,
            "evt_3",
            "payment_intent.payment_failed",
            _intent(placed["payment_id"]),
            failure_reason="Card expired",
        )

        assert result == "processed"
        payment = current_domain.repository_for(Payment).get(placed["payment_id"])
        assert payment.status == PaymentState.FAILED.value
        assert payment.failure_reason == "Card expired"
        assert stocked_shop.order(placed["order_id"]).status == OrderStatus.PENDING.value

    def test_unknown_intent_and_event_type_are_ignored_but_recorded(self, stocked_shop):
        assert _deliver(stocked_shop, "evt_4", "payment_intent.succeeded", "pi_unknown") == "ignored"

        placed = stocked_shop.place_order()
        assert _deliver(stocked_shop, "evt_5", "customer.created", _intent(placed["payment_id"])) == "ignored"

        receipts = current_domain.repository_for(WebhookReceipt)
        assert receipts.get("evt_4").outcome == "ignored"
        assert receipts.get("evt_5").event_type == "customer.created"


class TestRefundEvents:
    def _delivered(self, shop):
        placed = shop.place_order()
        shop.pay(placed)
        shop.advance(placed["order_id"], "packed", "shipped", "delivered")
        return placed

    def test_cumulative_refund_amount_applied_as_delta(self, stocked_shop):
        placed = self._delivered(stocked_shop)
        intent = _intent(placed["payment_id"])

        _deliver(stocked_shop, "evt_r1", "charge.refunded", intent, amount_refunded=10.0)
        _deliver(stocked_shop, "evt_r2", "charge.refunded", intent, amount_refunded=15.0)

        payment = current_domain.repository_for(Payment).get(placed["payment_id"])
        assert payment.refunded_amount == 15.0
        order = stocked_shop.order(placed["order_id"])
        assert order.refunded_amount == 15.0
        assert order.payment_status == PaymentStatus.PARTIALLY_REFUNDED.value
        assert order.status == OrderStatus.DELIVERED.value

    def test_full_provider_refund_closes_delivered_order(self, stocked_shop):
        placed = self._delivered(stocked_shop)

        result = _deliver(stocked_shop, "evt_full", "charge.refunded", _intent(placed["payment_id"]), amount_refunded=33.0)

        assert result == "processed"
        order = stocked_shop.order(placed["order_id"])
        assert order.status == OrderStatus.REFUNDED.value
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert order.refunded_amount == 33.0
        assert not order.needs_review

    def test_stale_refund_amount_is_ignored(self, stocked_shop):
        placed = self._delivered(stocked_shop)
        intent = _intent(placed["payment_id"])
        _deliver(stocked_shop, "evt_r1", "charge.refunded", intent, amount_refunded=10.0)

        assert _deliver(stocked_shop, "evt_r2", "charge.refunded", intent, amount_refunded=10.0) == "ignored"

    def test_refund_on_processing_order_flags_review(self, stocked_shop):
        placed = stocked_shop.place_order()
        stocked_shop.pay(placed)

        result = _deliver(stocked_shop, "evt_r3", "charge.refunded", _intent(placed["payment_id"]), amount_refunded=33.0)

        assert result == "processed"
        order = stocked_shop.order(placed["order_id"])
        assert order.needs_review is True
        assert order.status == OrderStatus.PROCESSING.value
        payment = current_domain.repository_for(Payment).get(placed["payment_id"])
        assert payment.status == PaymentState.REFUNDED.value
