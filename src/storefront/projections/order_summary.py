"""Order summary: lightweight listing view.

Also answers "which active orders reference this inventory record?" for the
inventory deletion guard.
"""

import json

from protean.core.projector import on
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.events import (
    OrderCancelled,
    OrderCreated,
    OrderDeleted,
    OrderDelivered,
    OrderFlaggedForReview,
    OrderOutForDelivery,
    OrderPacked,
    OrderPaymentConfirmed,
    OrderPaymentFailed,
    OrderProcessingStarted,
    OrderRefunded,
    OrderReturned,
    OrderShipped,
)
from storefront.order.order import Order, OrderStatus, PaymentStatus

ACTIVE_STATUSES = {
    OrderStatus.PENDING.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.PACKED.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.OUT_FOR_DELIVERY.value,
}


def is_active_status(status):
    return status in ACTIVE_STATUSES


@storefront.projection
class OrderSummary:
    order_id = Identifier(identifier=True, required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    status = String(required=True)
    payment_status = String(default=PaymentStatus.PENDING.value)
    item_count = Integer(default=0)
    total = Float()
    refunded_amount = Float(default=0.0)
    currency = String(default="USD")
    inventory_record_ids = Text()  # JSON array
    needs_review = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @property
    def inventory_record_id_list(self):
        return json.loads(self.inventory_record_ids) if self.inventory_record_ids else []


@storefront.projector(projector_for=OrderSummary, aggregates=[Order])
class OrderSummaryProjector:
    @on(OrderCreated)
    def on_order_created(self, event):
        items = json.loads(event.items) if isinstance(event.items, str) else []
        current_domain.repository_for(OrderSummary).add(
            OrderSummary(
                order_id=event.order_id,
                order_number=event.order_number,
                customer_id=event.customer_id,
                status=OrderStatus.PENDING.value,
                item_count=sum(item.get("quantity", 0) for item in items),
                total=event.total,
                currency=event.currency or "USD",
                inventory_record_ids=json.dumps(
                    sorted({item["inventory_record_id"] for item in items if item.get("inventory_record_id")})
                ),
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    def _update(self, order_id, updated_at=None, **changes):
        repo = current_domain.repository_for(OrderSummary)
        summary = repo.get(order_id)
        for name, value in changes.items():
            setattr(summary, name, value)
        if updated_at:
            summary.updated_at = updated_at
        repo.add(summary)

    @on(OrderPaymentConfirmed)
    def on_payment_confirmed(self, event):
        self._update(
            event.order_id,
            event.confirmed_at,
            status=OrderStatus.PROCESSING.value,
            payment_status=PaymentStatus.PAID.value,
        )

    @on(OrderPaymentFailed)
    def on_payment_failed(self, event):
        self._update(event.order_id, event.failed_at, payment_status=PaymentStatus.FAILED.value)

    @on(OrderProcessingStarted)
    def on_processing_started(self, event):
        self._update(event.order_id, event.started_at, status=OrderStatus.PROCESSING.value)

    @on(OrderPacked)
    def on_order_packed(self, event):
        self._update(event.order_id, event.packed_at, status=OrderStatus.PACKED.value)

    @on(OrderShipped)
    def on_order_shipped(self, event):
        self._update(event.order_id, event.shipped_at, status=OrderStatus.SHIPPED.value)

    @on(OrderOutForDelivery)
    def on_out_for_delivery(self, event):
        self._update(event.order_id, event.occurred_at, status=OrderStatus.OUT_FOR_DELIVERY.value)

    @on(OrderDelivered)
    def on_order_delivered(self, event):
        self._update(event.order_id, event.delivered_at, status=OrderStatus.DELIVERED.value)

    @on(OrderReturned)
    def on_order_returned(self, event):
        self._update(event.order_id, event.returned_at, status=OrderStatus.RETURNED.value)

    @on(OrderCancelled)
    def on_order_cancelled(self, event):
        self._update(event.order_id, event.cancelled_at, status=OrderStatus.CANCELLED.value)

    @on(OrderRefunded)
    def on_order_refunded(self, event):
        changes = {
            "refunded_amount": event.refunded_total,
            "payment_status": (
                PaymentStatus.REFUNDED.value if event.fully_refunded else PaymentStatus.PARTIALLY_REFUNDED.value
            ),
        }
        if event.closes_order:
            changes["status"] = OrderStatus.REFUNDED.value
        self._update(event.order_id, event.refunded_at, **changes)

    @on(OrderFlaggedForReview)
    def on_flagged_for_review(self, event):
        self._update(event.order_id, event.flagged_at, needs_review=True)

    @on(OrderDeleted)
    def on_order_deleted(self, event):
        repo = current_domain.repository_for(OrderSummary)
        repo._dao.delete(repo.get(event.order_id))
