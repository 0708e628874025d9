"""Payment aggregate (CQRS): one payment intent for one order.

Payment holds the only reference between the two: ``order_id`` points at
the order, while the order just records a derived ``payment_status``.

State Machine:
    PENDING → PROCESSING → SUCCEEDED → REFUNDED
    PENDING/PROCESSING → FAILED → SUCCEEDED (customer retries the intent)
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String

from storefront.domain import storefront
from storefront.money import ZERO, quantize, to_decimal
from storefront.payment.events import (
    PaymentCaptureFailed,
    PaymentIntentCreated,
    PaymentRefunded,
    PaymentSucceeded,
)


class PaymentState(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


_CAPTURABLE = {PaymentState.PENDING, PaymentState.PROCESSING, PaymentState.FAILED}
_REFUNDABLE = {PaymentState.SUCCEEDED}


@storefront.entity(part_of="Payment")
class Refund:
    amount = Float(required=True, min_value=0.0)
    reason = String(max_length=500)
    external_refund_id = String(max_length=255)
    refunded_at = DateTime(required=True)


@storefront.aggregate
class Payment:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    external_intent_id = String(max_length=255)
    client_secret = String(max_length=255)
    status = String(choices=PaymentState, default=PaymentState.PENDING.value)
    failure_reason = String(max_length=500)
    refunded_amount = Float(default=0.0)
    refunds = HasMany(Refund)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def refunds_never_exceed_amount(self):
        if quantize(self.refunded_amount) > quantize(self.amount):
            raise ValidationError({"refunded_amount": ["Refunded amount cannot exceed the payment amount"]})

    @classmethod
    def open(cls, order_id, customer_id, amount, currency, intent_id, client_secret):
        now = datetime.now(UTC)
        payment = cls(
            order_id=order_id,
            customer_id=customer_id,
            amount=float(quantize(amount)),
            currency=currency,
            external_intent_id=intent_id,
            client_secret=client_secret,
            created_at=now,
            updated_at=now,
        )
        payment.raise_(
            PaymentIntentCreated(
                payment_id=str(payment.id),
                order_id=str(order_id),
                amount=payment.amount,
                currency=currency,
                external_intent_id=intent_id,
                created_at=now,
            )
        )
        return payment

    @property
    def is_succeeded(self):
        return self.status == PaymentState.SUCCEEDED.value

    @property
    def refundable_amount(self):
        return quantize(to_decimal(self.amount) - to_decimal(self.refunded_amount))

    def _assert_capturable(self):
        if PaymentState(self.status) not in _CAPTURABLE:
            raise ValidationError({"status": [f"Payment in {self.status} state cannot be confirmed"]})

    def mark_processing(self):
        self._assert_capturable()
        self.status = PaymentState.PROCESSING.value
        self.updated_at = datetime.now(UTC)

    def mark_succeeded(self):
        """Record the capture. Returns False if it was already recorded."""
        if self.is_succeeded:
            return False
        self._assert_capturable()
        now = datetime.now(UTC)
        self.status = PaymentState.SUCCEEDED.value
        self.failure_reason = None
        self.updated_at = now
        self.raise_(
            PaymentSucceeded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                amount=self.amount,
                currency=self.currency,
                succeeded_at=now,
            )
        )
        return True

    def mark_failed(self, reason):
        """Record a decline. Returns False if the payment was already captured."""
        if self.is_succeeded:
            return False
        self._assert_capturable()
        now = datetime.now(UTC)
        self.status = PaymentState.FAILED.value
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(
            PaymentCaptureFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                reason=reason,
                failed_at=now,
            )
        )
        return True

    def record_refund(self, amount, reason, external_refund_id=None):
        if PaymentState(self.status) not in _REFUNDABLE:
            raise ValidationError({"status": [f"Payment in {self.status} state cannot be refunded"]})
        amount = quantize(amount)
        if amount <= ZERO:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        if amount > self.refundable_amount:
            raise ValidationError(
                {"amount": [f"Refund amount {amount} exceeds refundable amount {self.refundable_amount}"]}
            )

        now = datetime.now(UTC)
        refund = Refund(
            amount=float(amount),
            reason=reason,
            external_refund_id=external_refund_id,
            refunded_at=now,
        )
        self.add_refunds(refund)
        self.refunded_amount = float(quantize(to_decimal(self.refunded_amount) + amount))
        if self.refundable_amount == ZERO:
            self.status = PaymentState.REFUNDED.value
        self.updated_at = now
        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                refund_id=str(refund.id),
                amount=float(amount),
                refunded_amount=self.refunded_amount,
                reason=reason,
                refunded_at=now,
            )
        )
        return refund
