"""Payment webhook processing: receipt aggregate, command and handler.

The API verifies the signature before the command is built; this module
only sees authenticated deliveries. Deliveries are deduplicated by the
provider's event id, so a replay is acknowledged without side effects.

Event mapping:
    payment_intent.succeeded       -> payment succeeded, order paid
    payment_intent.payment_failed  -> payment failed, order stays pending
    charge.refunded                -> refund recorded up to amount_refunded;
                                      a full refund closes a delivered or
                                      returned order
"""

from datetime import UTC, datetime
from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.money import ZERO, quantize, to_decimal
from storefront.order.lookup import load_order, save_order
from storefront.payment import coordinator
from storefront.payment.payment import Payment

logger = structlog.get_logger(__name__)


class WebhookResult(Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@storefront.aggregate
class WebhookReceipt:
    event_id = Identifier(identifier=True)
    event_type = String(max_length=100)
    outcome = String(max_length=20)
    received_at = DateTime()


@storefront.command(part_of="Payment")
class ProcessPaymentWebhook:
    event_id = Identifier(required=True)
    event_type = String(required=True, max_length=100)
    intent_id = String(max_length=255)
    amount_refunded = Float()
    failure_reason = String(max_length=500)


def _apply_refund(payment, amount_refunded):
    delta = quantize(to_decimal(amount_refunded) - to_decimal(payment.refunded_amount))
    if delta <= ZERO:
        return WebhookResult.IGNORED
    delta = min(delta, payment.refundable_amount)

    payment.record_refund(delta, reason="Refunded at payment provider")
    current_domain.repository_for(Payment).add(payment)

    order = load_order(payment.order_id)
    try:
        order.record_refund(delta, reason="Refunded at payment provider")
    except ValidationError as exc:
        logger.warning("Provider refund does not fit order state", order_id=str(order.id), error=exc.messages)
        order.flag_for_review(f"Refund of {delta} received from payment provider while order is {order.status}")
    save_order(order)
    return WebhookResult.PROCESSED


@storefront.command_handler(part_of=Payment)
class PaymentWebhookHandler:
    @handle(ProcessPaymentWebhook)
    def process_webhook(self, command):
        receipts = current_domain.repository_for(WebhookReceipt)
        try:
            receipts.get(command.event_id)
        except ObjectNotFoundError:
            pass
        else:
            logger.info("Duplicate webhook ignored", event_id=command.event_id)
            return WebhookResult.DUPLICATE.value

        result = WebhookResult.IGNORED
        payment = None
        if command.intent_id:
            payment = current_domain.repository_for(Payment).by_intent(command.intent_id)

        if payment is None:
            logger.info("Webhook without a known payment", event_id=command.event_id, event_type=command.event_type)
        elif command.event_type == "payment_intent.succeeded":
            if payment.mark_succeeded():
                current_domain.repository_for(Payment).add(payment)
                coordinator.settle_order(payment)
                result = WebhookResult.PROCESSED
        elif command.event_type == "payment_intent.payment_failed":
            reason = command.failure_reason or "Payment failed"
            if payment.mark_failed(reason):
                current_domain.repository_for(Payment).add(payment)
                coordinator.fail_order_payment(payment, reason)
                result = WebhookResult.PROCESSED
        elif command.event_type == "charge.refunded":
            if payment.is_succeeded and command.amount_refunded is not None:
                result = _apply_refund(payment, command.amount_refunded)
        else:
            logger.info("Unhandled webhook event type", event_type=command.event_type)

        receipts.add(
            WebhookReceipt(
                event_id=command.event_id,
                event_type=command.event_type,
                outcome=result.value,
                received_at=datetime.now(UTC),
            )
        )
        return result.value
