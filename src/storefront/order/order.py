"""Order aggregate (Event Sourced): the order lifecycle state machine.

Every state change is captured as a domain event and the current state is
rebuilt by replaying them through the @apply handlers below. Command methods
only validate and raise; the @apply handler is the single place that mutates
state, so live behaviour and replay cannot drift apart.

State Machine:
    pending → processing → packed → shipped → (out_for_delivery) → delivered
    delivered → returned → refunded
    delivered → refunded
    pending/processing → cancelled → refunded

Pricing is snapshotted at creation and never changes; refunds accumulate in
``refunded_amount`` while ``pricing.total`` stays as charged.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from storefront.cart.pricing import check_total
from storefront.domain import storefront
from storefront.money import ZERO, quantize, to_decimal
from storefront.order.events import (
    OrderCancelled,
    OrderCreated,
    OrderDeleted,
    OrderDelivered,
    OrderFlaggedForReview,
    OrderInventoryRestored,
    OrderOutForDelivery,
    OrderPacked,
    OrderPaymentConfirmed,
    OrderPaymentFailed,
    OrderProcessingStarted,
    OrderRefunded,
    OrderReturned,
    OrderShipped,
)
from storefront.shared.address import Address


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PACKED = "packed"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    RETURNED = "returned"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    CASH_ON_DELIVERY = "cash_on_delivery"
    BANK_TRANSFER = "bank_transfer"


# Methods settled outside the gateway; no payment intent is created for them
DEFERRED_PAYMENT_METHODS = {PaymentMethod.CASH_ON_DELIVERY.value, PaymentMethod.BANK_TRANSFER.value}

_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.PACKED, OrderStatus.CANCELLED},
    OrderStatus.PACKED: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED, OrderStatus.REFUNDED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # Terminal
}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}
_REFUNDABLE_STATES = {OrderStatus.DELIVERED, OrderStatus.RETURNED, OrderStatus.CANCELLED}
_DELETABLE_STATES = {OrderStatus.PENDING, OrderStatus.CANCELLED}
_CAPTURED_PAYMENT = {PaymentStatus.PAID.value, PaymentStatus.PARTIALLY_REFUNDED.value}


def can_transition(current, target):
    return OrderStatus(target) in _VALID_TRANSITIONS.get(OrderStatus(current), set())


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class OrderPricing:
    """Money snapshot taken at checkout. Never recalculated afterwards."""

    subtotal = Float(default=0.0)
    discount = Float(default=0.0)
    tax = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="USD")


@storefront.value_object(part_of="Order")
class ShippingDetails:
    carrier = String(max_length=50)
    service_type = String(max_length=50)
    tracking_number = String(max_length=100)
    shipment_id = Identifier()
    label_url = String(max_length=500)
    status = String(max_length=50)
    estimated_delivery = String(max_length=30)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    """A priced line. ``inventory_record_id`` points at the record the line was reserved from."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    store_id = Identifier(required=True)
    inventory_record_id = Identifier()
    sku = String(required=True, max_length=50)
    name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    line_total = Float(default=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@storefront.aggregate(is_event_sourced=True)
class Order:
    order_number = String(max_length=20)
    customer_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    pricing = ValueObject(OrderPricing)
    payment_method = String(choices=PaymentMethod)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    refunded_amount = Float(default=0.0)
    coupon_code = String(max_length=50)
    shipping = ValueObject(ShippingDetails)
    delivered_at = DateTime()
    inventory_restored = Boolean(default=False)
    needs_review = Boolean(default=False)
    review_reason = String(max_length=500)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=50)
    deleted = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number,
        customer_id,
        items,
        shipping_address,
        totals,
        payment_method,
        billing_address=None,
        coupon_code=None,
        service_type=None,
        currency="USD",
    ):
        """Create an order from priced lines.

        Args:
            order_number: Pre-allocated ``ORD-YYMM-NNNN`` number.
            customer_id: The user placing the order.
            items: List of dicts with product_id, variant_id, store_id,
                inventory_record_id, sku, name, quantity, unit_price.
            shipping_address: Address dict.
            totals: A ``CartTotals`` from the cart pricing pipeline.
            payment_method: One of ``PaymentMethod``.
        """
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})
        if payment_method not in {m.value for m in PaymentMethod}:
            raise ValidationError({"payment_method": [f"Unsupported payment method {payment_method}"]})

        check_total(totals.subtotal, totals.tax, totals.shipping_cost, totals.discount, totals.total)

        # Pre-generate item IDs for deterministic replay
        items_with_ids = [
            {
                **item,
                "id": str(uuid4()),
                "line_total": float(quantize(to_decimal(item["unit_price"]) * item["quantity"])),
            }
            for item in items
        ]

        order = cls._create_new()
        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                items=json.dumps(items_with_ids),
                shipping_address=json.dumps(shipping_address),
                billing_address=json.dumps(billing_address) if billing_address else None,
                subtotal=float(totals.subtotal),
                discount=float(totals.discount),
                tax=float(totals.tax),
                shipping_cost=float(totals.shipping_cost),
                total=float(totals.total),
                currency=currency,
                coupon_code=totals.coupon_code or coupon_code,
                payment_method=payment_method,
                service_type=service_type,
                created_at=datetime.now(UTC),
            )
        )
        return order

    # -------------------------------------------------------------------
    # Guards and queries
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    @property
    def is_deferred_payment(self):
        return self.payment_method in DEFERRED_PAYMENT_METHODS

    @property
    def has_captured_payment(self):
        return self.payment_status in _CAPTURED_PAYMENT

    @property
    def refundable_amount(self):
        return quantize(to_decimal(self.pricing.total) - to_decimal(self.refunded_amount))

    def reservation_lines(self):
        """Line data in the shape the inventory ledger reserves and restores."""
        return [
            {
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "store_id": str(item.store_id),
                "quantity": item.quantity,
                "sku": item.sku,
            }
            for item in self.items
        ]

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment_success(self, payment_id, amount):
        """Funds captured: the order is paid and moves to processing."""
        if self.payment_status == PaymentStatus.PAID.value:
            raise ValidationError({"payment_status": ["Order is already paid"]})
        self._assert_can_transition(OrderStatus.PROCESSING)
        self.raise_(
            OrderPaymentConfirmed(
                order_id=str(self.id),
                payment_id=payment_id,
                amount=amount,
                confirmed_at=datetime.now(UTC),
            )
        )

    def record_payment_failure(self, payment_id, reason):
        """A decline leaves the order pending so the customer can retry."""
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"status": ["Payment failures can only be recorded on pending orders"]})
        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                payment_id=payment_id,
                reason=reason,
                failed_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Fulfillment transitions
    # -------------------------------------------------------------------
    def start_processing(self):
        """Admin advance from pending. Prepaid orders get here through payment instead."""
        self._assert_can_transition(OrderStatus.PROCESSING)
        if not self.is_deferred_payment and self.payment_status != PaymentStatus.PAID.value:
            raise ValidationError({"payment_status": ["Payment has not been captured for this order"]})
        self.raise_(OrderProcessingStarted(order_id=str(self.id), started_at=datetime.now(UTC)))

    def pack(self):
        self._assert_can_transition(OrderStatus.PACKED)
        self.raise_(OrderPacked(order_id=str(self.id), packed_at=datetime.now(UTC)))

    def ship(
        self,
        carrier=None,
        tracking_number=None,
        shipment_id=None,
        service_type=None,
        label_url=None,
        estimated_delivery=None,
    ):
        self._assert_can_transition(OrderStatus.SHIPPED)
        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                order_number=self.order_number,
                shipment_id=shipment_id,
                carrier=carrier,
                service_type=service_type or (self.shipping.service_type if self.shipping else None),
                tracking_number=tracking_number,
                label_url=label_url,
                estimated_delivery=estimated_delivery,
                shipped_at=datetime.now(UTC),
            )
        )

    def mark_out_for_delivery(self):
        self._assert_can_transition(OrderStatus.OUT_FOR_DELIVERY)
        self.raise_(OrderOutForDelivery(order_id=str(self.id), occurred_at=datetime.now(UTC)))

    def deliver(self, delivered_at=None):
        self._assert_can_transition(OrderStatus.DELIVERED)
        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                order_number=self.order_number,
                delivered_at=delivered_at or datetime.now(UTC),
            )
        )

    def mark_returned(self, reason=None):
        self._assert_can_transition(OrderStatus.RETURNED)
        self.raise_(OrderReturned(order_id=str(self.id), reason=reason, returned_at=datetime.now(UTC)))

    def advance_to(self, target, **shipping):
        """Admin status advance. Inventory is never touched here."""
        try:
            target = OrderStatus(target)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status {target}"]}) from None

        transitions = {
            OrderStatus.PROCESSING: self.start_processing,
            OrderStatus.PACKED: self.pack,
            OrderStatus.SHIPPED: lambda: self.ship(**shipping),
            OrderStatus.OUT_FOR_DELIVERY: self.mark_out_for_delivery,
            OrderStatus.DELIVERED: self.deliver,
            OrderStatus.RETURNED: self.mark_returned,
        }
        if target not in transitions:
            raise ValidationError(
                {"status": [f"Status {target.value} is reached through its own operation, not a status update"]}
            )
        transitions[target]()

    # -------------------------------------------------------------------
    # Cancellation, refunds and review
    # -------------------------------------------------------------------
    def assert_cancellable(self):
        current = OrderStatus(self.status)
        if current not in _CANCELLABLE_STATES:
            raise ValidationError(
                {
                    "status": [
                        f"Cannot cancel order in {current.value} state. "
                        f"Cancellation is only allowed from: "
                        f"{', '.join(sorted(s.value for s in _CANCELLABLE_STATES))}"
                    ]
                }
            )

    def cancel(self, reason, cancelled_by):
        self.assert_cancellable()
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                order_number=self.order_number,
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=datetime.now(UTC),
            )
        )

    def mark_inventory_restored(self):
        """Record that reserved stock went back to the ledger. Returns False if it already had."""
        if self.inventory_restored:
            return False
        self.raise_(OrderInventoryRestored(order_id=str(self.id), restored_at=datetime.now(UTC)))
        return True

    def assert_refundable(self, amount=None):
        """Validate a refund request and return the amount it resolves to."""
        current = OrderStatus(self.status)
        if current not in _REFUNDABLE_STATES:
            raise ValidationError({"status": [f"Cannot refund order in {current.value} state"]})
        if not self.has_captured_payment:
            raise ValidationError({"payment_status": ["Order has no captured payment to refund"]})

        remaining = self.refundable_amount
        amount = remaining if amount is None else quantize(amount)
        if amount <= ZERO:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        if amount > remaining:
            raise ValidationError({"amount": [f"Refund amount {amount} exceeds refundable amount {remaining}"]})
        return amount

    def record_refund(self, amount=None, reason=None, close_order=True):
        """Record money returned to the customer.

        ``amount`` defaults to everything not yet refunded. A refund that
        brings the refunded total up to the amount paid moves a delivered or
        returned order to ``refunded`` when ``close_order`` is set; cancelled
        orders keep their status unless closed explicitly.
        """
        amount = self.assert_refundable(amount)
        refunded_total = quantize(to_decimal(self.refunded_amount) + amount)
        fully_refunded = refunded_total == quantize(self.pricing.total)
        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                order_number=self.order_number,
                amount=float(amount),
                refunded_total=float(refunded_total),
                fully_refunded=fully_refunded,
                closes_order=bool(close_order and fully_refunded),
                reason=reason,
                refunded_at=datetime.now(UTC),
            )
        )
        return amount

    def flag_for_review(self, reason):
        self.raise_(
            OrderFlaggedForReview(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                flagged_at=datetime.now(UTC),
            )
        )

    def delete(self):
        current = OrderStatus(self.status)
        if current not in _DELETABLE_STATES:
            raise ValidationError({"status": [f"Cannot delete order in {current.value} state"]})
        if self.has_captured_payment:
            raise ValidationError({"payment_status": ["Orders with a captured payment cannot be deleted"]})
        self.raise_(OrderDeleted(order_id=str(self.id), deleted_at=datetime.now(UTC)))

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_order_created(self, event: OrderCreated):
        self.id = event.order_id
        self.order_number = event.order_number
        self.customer_id = event.customer_id
        self.status = OrderStatus.PENDING.value
        self.payment_method = event.payment_method
        self.payment_status = PaymentStatus.PENDING.value
        self.refunded_amount = 0.0
        self.coupon_code = event.coupon_code
        self.created_at = event.created_at
        self.updated_at = event.created_at

        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.items = [OrderItem(**item_data) for item_data in items_data]

        ship_data = json.loads(event.shipping_address) if isinstance(event.shipping_address, str) else {}
        if ship_data:
            self.shipping_address = Address(**ship_data)

        bill_data = json.loads(event.billing_address) if isinstance(event.billing_address, str) else {}
        if bill_data:
            self.billing_address = Address(**bill_data)

        self.pricing = OrderPricing(
            subtotal=event.subtotal,
            discount=event.discount or 0.0,
            tax=event.tax or 0.0,
            shipping_cost=event.shipping_cost or 0.0,
            total=event.total,
            currency=event.currency or "USD",
        )
        if event.service_type:
            self.shipping = ShippingDetails(service_type=event.service_type)

    @apply
    def _on_payment_confirmed(self, event: OrderPaymentConfirmed):
        self.status = OrderStatus.PROCESSING.value
        self.payment_status = PaymentStatus.PAID.value
        self.updated_at = event.confirmed_at

    @apply
    def _on_payment_failed(self, event: OrderPaymentFailed):
        self.payment_status = PaymentStatus.FAILED.value
        self.updated_at = event.failed_at

    @apply
    def _on_processing_started(self, event: OrderProcessingStarted):
        self.status = OrderStatus.PROCESSING.value
        self.updated_at = event.started_at

    @apply
    def _on_order_packed(self, event: OrderPacked):
        self.status = OrderStatus.PACKED.value
        self.updated_at = event.packed_at

    @apply
    def _on_order_shipped(self, event: OrderShipped):
        self.status = OrderStatus.SHIPPED.value
        self.shipping = ShippingDetails(
            carrier=event.carrier,
            service_type=event.service_type,
            tracking_number=event.tracking_number,
            shipment_id=event.shipment_id,
            label_url=event.label_url,
            status=OrderStatus.SHIPPED.value,
            estimated_delivery=event.estimated_delivery,
        )
        self.updated_at = event.shipped_at

    @apply
    def _on_out_for_delivery(self, event: OrderOutForDelivery):
        self.status = OrderStatus.OUT_FOR_DELIVERY.value
        self._set_shipping_status(OrderStatus.OUT_FOR_DELIVERY.value)
        self.updated_at = event.occurred_at

    @apply
    def _on_order_delivered(self, event: OrderDelivered):
        self.status = OrderStatus.DELIVERED.value
        self._set_shipping_status(OrderStatus.DELIVERED.value)
        self.delivered_at = event.delivered_at
        self.updated_at = event.delivered_at

    @apply
    def _on_order_returned(self, event: OrderReturned):
        self.status = OrderStatus.RETURNED.value
        self.updated_at = event.returned_at

    @apply
    def _on_order_cancelled(self, event: OrderCancelled):
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = event.reason
        self.cancelled_by = event.cancelled_by
        self.updated_at = event.cancelled_at

    @apply
    def _on_inventory_restored(self, event: OrderInventoryRestored):
        self.inventory_restored = True
        self.updated_at = event.restored_at

    @apply
    def _on_order_refunded(self, event: OrderRefunded):
        self.refunded_amount = event.refunded_total
        self.payment_status = (
            PaymentStatus.REFUNDED.value if event.fully_refunded else PaymentStatus.PARTIALLY_REFUNDED.value
        )
        if event.closes_order:
            self.status = OrderStatus.REFUNDED.value
        self.updated_at = event.refunded_at

    @apply
    def _on_flagged_for_review(self, event: OrderFlaggedForReview):
        self.needs_review = True
        self.review_reason = event.reason
        self.updated_at = event.flagged_at

    @apply
    def _on_order_deleted(self, event: OrderDeleted):
        self.deleted = True
        self.updated_at = event.deleted_at

    def _set_shipping_status(self, status):
        current = self.shipping
        self.shipping = ShippingDetails(
            carrier=current.carrier if current else None,
            service_type=current.service_type if current else None,
            tracking_number=current.tracking_number if current else None,
            shipment_id=current.shipment_id if current else None,
            label_url=current.label_url if current else None,
            status=status,
            estimated_delivery=current.estimated_delivery if current else None,
        )
