"""Domain events for the Order aggregate.

All events are versioned, immutable facts. They rebuild the event-sourced
Order via @apply, feed the OrderSummary projection, and drive notification
dispatch; nothing in the core waits on a notification being delivered.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderCreated:
    """An order was created from a priced cart and its stock reserved."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict
    subtotal = Float(required=True)
    discount = Float(default=0.0)
    tax = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    total = Float(required=True)
    currency = String(default="USD")
    coupon_code = String()
    payment_method = String(required=True)
    service_type = String()
    created_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentConfirmed:
    """Funds were captured; the order moves to processing."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = Identifier()
    amount = Float(required=True)
    confirmed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentFailed:
    """A payment attempt failed; the order stays pending for retry."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    payment_id = Identifier()
    reason = String()
    failed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderProcessingStarted:
    __version__ = 1

    order_id = Identifier(required=True)
    started_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPacked:
    __version__ = 1

    order_id = Identifier(required=True)
    packed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_number = String(required=True)
    shipment_id = Identifier()
    carrier = String()
    service_type = String()
    tracking_number = String()
    label_url = String()
    estimated_delivery = String()
    shipped_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderOutForDelivery:
    __version__ = 1

    order_id = Identifier(required=True)
    occurred_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_number = String(required=True)
    delivered_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderReturned:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    returned_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String()
    cancelled_by = String()
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderInventoryRestored:
    """Reserved stock for every line was returned to the ledger."""

    __version__ = 1

    order_id = Identifier(required=True)
    restored_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderRefunded:
    """Money was returned to the customer. ``total`` is never changed by a refund."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    refunded_total = Float(required=True)
    fully_refunded = Boolean(default=False)
    closes_order = Boolean(default=False)
    reason = String()
    refunded_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderFlaggedForReview:
    """A compensation step failed and the order needs manual reconciliation."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String(required=True)
    flagged_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderDeleted:
    __version__ = 1

    order_id = Identifier(required=True)
    deleted_at = DateTime(required=True)
