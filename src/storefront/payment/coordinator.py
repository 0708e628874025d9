"""Payment coordination between the gateway, Payment and Order.

The coordinator is the only code that talks to the gateway. Every call is
bounded by ``EXTERNAL_CALL_TIMEOUT``; a ``GatewayTimeout`` becomes a
``PaymentTimeout`` (retryable) and leaves local state untouched, while a
definitive decline is recorded on both the payment and the order.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront import settings
from storefront.coupon import evaluator
from storefront.errors import GatewayTimeout, PaymentDeclined, PaymentFailed, PaymentTimeout
from storefront.order.lookup import load_order, save_order
from storefront.order.order import OrderStatus, PaymentStatus
from storefront.payment.gateway import get_gateway
from storefront.payment.payment import Payment

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentOutcome:
    payment_id: str
    order_id: str
    status: str
    failure_reason: str | None = None

    @property
    def succeeded(self):
        return self.status == "succeeded"


def _repo():
    return current_domain.repository_for(Payment)


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------
def open_intent(order) -> Payment:
    """Create a gateway intent for the order total and store the Payment."""
    timeout = settings.external_call_timeout()
    try:
        result = get_gateway().create_intent(
            amount=order.pricing.total,
            currency=order.pricing.currency,
            idempotency_key=f"order-{order.id}",
            metadata={"order_id": str(order.id), "order_number": order.order_number},
            timeout=timeout,
        )
    except GatewayTimeout as exc:
        logger.warning("Payment intent creation timed out", order_id=str(order.id), timeout=timeout)
        raise PaymentTimeout("Payment provider did not respond, please retry") from exc

    if not result.success:
        raise PaymentFailed(result.failure_reason or "Payment intent could not be created")

    payment = Payment.open(
        order_id=str(order.id),
        customer_id=str(order.customer_id),
        amount=order.pricing.total,
        currency=order.pricing.currency,
        intent_id=result.intent_id,
        client_secret=result.client_secret,
    )
    _repo().add(payment)
    logger.info("Payment intent created", order_id=str(order.id), payment_id=str(payment.id))
    return payment


# ---------------------------------------------------------------------------
# Order side effects
# ---------------------------------------------------------------------------
def settle_order(payment) -> None:
    """Mark the order paid, move it to processing and count its coupon."""
    order = load_order(payment.order_id)
    if order.payment_status == PaymentStatus.PAID.value:
        return
    order.record_payment_success(payment_id=str(payment.id), amount=payment.amount)
    save_order(order)

    if order.coupon_code:
        evaluator.record_redemption(order.coupon_code, order.customer_id, str(order.id))


def fail_order_payment(payment, reason) -> None:
    order = load_order(payment.order_id)
    if order.status != OrderStatus.PENDING.value:
        logger.warning(
            "Ignoring payment failure for order that is no longer pending",
            order_id=str(order.id),
            status=order.status,
        )
        return
    order.record_payment_failure(payment_id=str(payment.id), reason=reason)
    save_order(order)


# ---------------------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------------------
def confirm(payment_id) -> PaymentOutcome:
    """Capture a payment intent.

    A decline is recorded and returned as a failed outcome rather than
    raised, so the failure survives the unit of work.
    """
    payment = _repo().get(payment_id)
    if payment.is_succeeded:
        return PaymentOutcome(str(payment.id), str(payment.order_id), payment.status)

    payment.mark_processing()
    timeout = settings.external_call_timeout()
    try:
        result = get_gateway().confirm_intent(payment.external_intent_id, timeout=timeout)
    except GatewayTimeout as exc:
        logger.warning("Payment confirmation timed out", payment_id=str(payment.id), timeout=timeout)
        raise PaymentTimeout("Payment provider did not respond, please retry") from exc

    if result.success:
        payment.mark_succeeded()
        _repo().add(payment)
        settle_order(payment)
        logger.info("Payment captured", payment_id=str(payment.id), order_id=str(payment.order_id))
    else:
        reason = result.failure_reason or "Payment declined"
        payment.mark_failed(reason)
        _repo().add(payment)
        fail_order_payment(payment, reason)
        logger.info("Payment declined", payment_id=str(payment.id), order_id=str(payment.order_id), reason=reason)

    return PaymentOutcome(str(payment.id), str(payment.order_id), payment.status, payment.failure_reason)


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------
def refund(order_id, amount, reason):
    """Refund ``amount`` of the order's captured payment through the gateway.

    Raises ``PaymentTimeout`` or ``PaymentDeclined`` without changing the
    payment when the gateway does not confirm the refund.
    """
    payment = _repo().for_order(order_id)
    if payment is None or not payment.is_succeeded:
        raise ObjectNotFoundError(f"No captured payment for order {order_id}")
    if amount > payment.refundable_amount:
        raise ValidationError(
            {"amount": [f"Refund amount {amount} exceeds refundable amount {payment.refundable_amount}"]}
        )

    timeout = settings.external_call_timeout()
    try:
        result = get_gateway().create_refund(
            payment.external_intent_id,
            amount=float(amount),
            reason=reason,
            timeout=timeout,
        )
    except GatewayTimeout as exc:
        logger.warning("Refund timed out", order_id=str(order_id), timeout=timeout)
        raise PaymentTimeout("Refund was not confirmed by the payment provider") from exc

    if not result.success:
        raise PaymentDeclined(f"Refund declined: {result.failure_reason or 'unknown reason'}")

    payment.record_refund(amount, reason, external_refund_id=result.refund_id)
    _repo().add(payment)
    logger.info("Refund issued", order_id=str(order_id), payment_id=str(payment.id), amount=str(amount))
    return payment
