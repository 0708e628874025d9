"""Application tests for administrative status updates and the order summary view."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from storefront.order.fulfillment import UpdateOrderStatus
from storefront.order.order import OrderStatus
from storefront.projections.order_summary import OrderSummary


class TestUpdateOrderStatus:
    def test_paid_order_walks_through_fulfillment(self, stocked_shop):
        placed = stocked_shop.place_order()
        stocked_shop.pay(placed)

        stocked_shop.advance(placed["order_id"], "packed")
        stocked_shop.process(
            UpdateOrderStatus(
                order_id=placed["order_id"], status="shipped", carrier="ups", tracking_number="1Z999"
            )
        )
        stocked_shop.advance(placed["order_id"], "out_for_delivery", "delivered")

        order = stocked_shop.order(placed["order_id"])
        assert order.status == OrderStatus.DELIVERED.value
        assert order.shipping.carrier == "ups"
        assert order.shipping.tracking_number == "1Z999"
        assert order.delivered_at is not None

    def test_status_update_does_not_touch_inventory(self, stocked_shop):
        placed = stocked_shop.place_order(lines=(("prod-001", "store-001", 2),))
        stocked_shop.pay(placed)
        stocked_shop.advance(placed["order_id"], "packed", "shipped", "delivered", "returned")
        assert stocked_shop.record(stocked_shop.record_id).quantity == 8

    def test_unpaid_card_order_cannot_start_processing(self, stocked_shop):
        placed = stocked_shop.place_order()
        with pytest.raises(ValidationError) as exc:
            stocked_shop.advance(placed["order_id"], "processing")
        assert "payment_status" in exc.value.messages

    def test_cash_on_delivery_order_processed_by_admin(self, stocked_shop):
        placed = stocked_shop.place_order(payment_method="cash_on_delivery")
        stocked_shop.advance(placed["order_id"], "processing", "packed")
        assert stocked_shop.order(placed["order_id"]).status == OrderStatus.PACKED.value

    def test_invalid_transition_rejected(self, stocked_shop):
        placed = stocked_shop.place_order()
        stocked_shop.pay(placed)
        with pytest.raises(ValidationError) as exc:
            stocked_shop.advance(placed["order_id"], "delivered")
        assert "Cannot transition from processing to delivered" in exc.value.messages["status"][0]

    def test_shipped_email_and_sms(self, stocked_shop, email, sms):
        placed = stocked_shop.place_order(address=stocked_shop.address(phone="+15550100"))
        stocked_shop.pay(placed)
        stocked_shop.advance(placed["order_id"], "packed", "shipped")

        assert f"Order {placed['order_number']} has shipped" in email.subjects()
        assert len(sms.sent_messages) == 1
        assert sms.sent_messages[0]["to"] == "+15550100"

    def test_unknown_order(self, stocked_shop):
        with pytest.raises(ObjectNotFoundError):
            stocked_shop.advance("missing-order", "packed")


class TestOrderSummary:
    def _summary(self, order_id):
        return current_domain.repository_for(OrderSummary).get(order_id)

    def test_summary_created_with_order(self, stocked_shop):
        placed = stocked_shop.place_order(lines=(("prod-001", "store-001", 3),))
        summary = self._summary(placed["order_id"])
        assert summary.order_number == placed["order_number"]
        assert summary.status == OrderStatus.PENDING.value
        assert summary.item_count == 3
        assert summary.total == 83.0

    def test_summary_follows_status_and_payment(self, stocked_shop):
        placed = stocked_shop.place_order()
        stocked_shop.pay(placed)
        stocked_shop.advance(placed["order_id"], "packed")
        summary = self._summary(placed["order_id"])
        assert summary.status == OrderStatus.PACKED.value
        assert summary.payment_status == "paid"

    def test_summary_removed_when_order_deleted(self, stocked_shop):
        from storefront.order.deletion import DeleteOrder

        placed = stocked_shop.place_order()
        stocked_shop.process(DeleteOrder(order_id=placed["order_id"]))
        with pytest.raises(ObjectNotFoundError):
            self._summary(placed["order_id"])
