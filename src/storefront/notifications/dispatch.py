"""Notification dispatch: event handlers that message customers and staff.

Handlers consume domain events after the originating change has been
committed. A channel failure is logged and dropped here; it never reaches
the command that raised the event.

Messages are plain text. Customers are addressed by their user id, which the
channel adapter resolves to a contact.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront import settings
from storefront.domain import storefront
from storefront.inventory.events import LowStockDetected
from storefront.inventory.record import InventoryRecord
from storefront.notifications.channel import EMAIL, SMS, get_channel
from storefront.order.events import (
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderFlaggedForReview,
    OrderPaymentFailed,
    OrderRefunded,
    OrderShipped,
)
from storefront.order.order import Order
from storefront.shipment.events import TrackingUpdated
from storefront.shipment.shipment import Shipment

logger = structlog.get_logger(__name__)


def _deliver(channel_type, event_name, **message):
    try:
        result = get_channel(channel_type).send(**message)
    except Exception as exc:
        logger.error("Notification dispatch failed", channel=channel_type, trigger=event_name, error=str(exc))
        return False

    if result.get("status") != "sent":
        logger.warning(
            "Notification not delivered",
            channel=channel_type,
            trigger=event_name,
            error=result.get("error", "Unknown dispatch error"),
        )
        return False
    return True


def send_email(event_name, to, subject, body):
    return _deliver(EMAIL, event_name, to=str(to), subject=subject, body=body)


def send_sms(event_name, to, body):
    return _deliver(SMS, event_name, to=str(to), body=body)


def _customer_phone(order_id):
    try:
        order = current_domain.repository_for(Order).get(str(order_id))
    except Exception as exc:
        logger.warning("Could not load order for SMS", order_id=str(order_id), error=str(exc))
        return None
    return order.shipping_address.phone if order.shipping_address else None


@storefront.event_handler(part_of=Order)
class OrderNotificationHandler:
    @handle(OrderCreated)
    def on_order_created(self, event: OrderCreated) -> None:
        send_email(
            "OrderCreated",
            event.customer_id,
            f"Order {event.order_number} received",
            f"Thank you for your order {event.order_number}. Total: {event.total:.2f} {event.currency}.",
        )

    @handle(OrderPaymentFailed)
    def on_payment_failed(self, event: OrderPaymentFailed) -> None:
        send_email(
            "OrderPaymentFailed",
            event.customer_id,
            "Payment unsuccessful",
            f"We could not process your payment ({event.reason or 'declined'}). You can retry from your order page.",
        )

    @handle(OrderShipped)
    def on_order_shipped(self, event: OrderShipped) -> None:
        tracking = f" Tracking number: {event.tracking_number}." if event.tracking_number else ""
        send_email(
            "OrderShipped",
            event.customer_id,
            f"Order {event.order_number} has shipped",
            f"Your order {event.order_number} is on its way with {event.carrier or 'our carrier'}.{tracking}",
        )
        phone = _customer_phone(event.order_id)
        if phone:
            send_sms("OrderShipped", phone, f"Order {event.order_number} shipped.{tracking}")

    @handle(OrderDelivered)
    def on_order_delivered(self, event: OrderDelivered) -> None:
        send_email(
            "OrderDelivered",
            event.customer_id,
            f"How was order {event.order_number}?",
            f"Your order {event.order_number} was delivered. We would love to hear your review.",
        )

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        send_email(
            "OrderCancelled",
            event.customer_id,
            f"Order {event.order_number} cancelled",
            f"Your order {event.order_number} was cancelled. Reason: {event.reason or 'not given'}.",
        )

    @handle(OrderRefunded)
    def on_order_refunded(self, event: OrderRefunded) -> None:
        send_email(
            "OrderRefunded",
            event.customer_id,
            f"Refund for order {event.order_number}",
            f"We refunded {event.amount:.2f} for order {event.order_number}.",
        )

    @handle(OrderFlaggedForReview)
    def on_flagged_for_review(self, event: OrderFlaggedForReview) -> None:
        send_email(
            "OrderFlaggedForReview",
            settings.operations_email(),
            f"Order {event.order_number} needs review",
            event.reason,
        )


@storefront.event_handler(part_of=InventoryRecord)
class InventoryAlertHandler:
    @handle(LowStockDetected)
    def on_low_stock(self, event: LowStockDetected) -> None:
        send_email(
            "LowStockDetected",
            settings.operations_email(),
            f"Low stock: {event.sku}",
            f"{event.sku} at store {event.store_id} is down to {event.quantity} (threshold {event.threshold}).",
        )


@storefront.event_handler(part_of=Shipment)
class ShipmentAlertHandler:
    @handle(TrackingUpdated)
    def on_tracking_updated(self, event: TrackingUpdated) -> None:
        if not event.is_exception:
            return
        send_email(
            "TrackingUpdated",
            settings.operations_email(),
            f"Delivery exception for {event.tracking_number}",
            f"Shipment {event.tracking_number} (order {event.order_id}) reported: {event.description or 'exception'}.",
        )
