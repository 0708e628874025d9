"""Order cancellation and refund: commands and handler.

A paid order is refunded before it is cancelled. If the gateway does not
confirm the refund the order is left in its current state with
``needs_review`` set and its stock still reserved; money and inventory must
never disagree silently.
"""

from dataclasses import dataclass

import structlog
from protean import handle
from protean.fields import Float, Identifier, String

from storefront.domain import storefront
from storefront.errors import PaymentFailed
from storefront.inventory import ledger
from storefront.inventory.ledger import StockLine
from storefront.order.lookup import load_order, save_order
from storefront.order.order import Order, PaymentStatus
from storefront.payment import coordinator

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String(default="customer", max_length=50)


@storefront.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)
    amount = Float(min_value=0.0)  # Defaults to everything not yet refunded
    reason = String(required=True, max_length=500)


@dataclass(frozen=True)
class CancellationOutcome:
    order_id: str
    status: str
    payment_status: str
    needs_review: bool = False
    review_reason: str | None = None


def _failure_message(exc):
    return "; ".join(exc.messages.get("payment", [])) or "Refund failed"


def restore_order_inventory(order, actor):
    """Put the order's reserved stock back, at most once per order."""
    if not order.mark_inventory_restored():
        logger.info("Inventory already restored for order", order_id=str(order.id))
        return
    lines = [StockLine(**line) for line in order.reservation_lines()]
    ledger.restore_lines(lines, order_id=str(order.id), actor=actor)


@storefront.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load_order(command.order_id)
        order.assert_cancellable()

        if order.payment_status == PaymentStatus.PAID.value:
            amount = order.refundable_amount
            try:
                coordinator.refund(order.id, amount, reason=f"Order cancelled: {command.reason}")
            except PaymentFailed as exc:
                reason = f"Refund failed during cancellation: {_failure_message(exc)}"
                order.flag_for_review(reason)
                save_order(order)
                logger.error(
                    "Cancellation refund failed, order flagged for review",
                    order_id=str(order.id),
                    order_number=order.order_number,
                    retryable=exc.retryable,
                )
                return CancellationOutcome(
                    order_id=str(order.id),
                    status=order.status,
                    payment_status=order.payment_status,
                    needs_review=True,
                    review_reason=reason,
                )
            order.cancel(reason=command.reason, cancelled_by=command.cancelled_by)
            order.record_refund(amount, reason=command.reason, close_order=False)
        else:
            order.cancel(reason=command.reason, cancelled_by=command.cancelled_by)

        restore_order_inventory(order, actor=command.cancelled_by)
        save_order(order)

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            order_number=order.order_number,
            payment_status=order.payment_status,
        )
        return CancellationOutcome(
            order_id=str(order.id),
            status=order.status,
            payment_status=order.payment_status,
        )

    @handle(RefundOrder)
    def refund_order(self, command):
        order = load_order(command.order_id)
        amount = order.assert_refundable(command.amount)

        coordinator.refund(order.id, amount, reason=command.reason)
        order.record_refund(amount, reason=command.reason)
        save_order(order)

        logger.info(
            "Order refunded",
            order_id=str(order.id),
            amount=str(amount),
            payment_status=order.payment_status,
        )
        return {
            "order_id": str(order.id),
            "refunded_amount": order.refunded_amount,
            "payment_status": order.payment_status,
            "status": order.status,
        }
