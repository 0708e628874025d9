"""Administrative status advances: command and handler.

Status updates move an order through fulfillment only; they never touch
inventory or money. Shipping through a carrier goes through
``storefront.shipment.creation`` instead, which also books the label.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String

from storefront.domain import storefront
from storefront.order.lookup import load_order, save_order
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=30)
    carrier = String(max_length=50)
    tracking_number = String(max_length=100)


@storefront.command_handler(part_of=Order)
class OrderFulfillmentHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        order = load_order(command.order_id)
        previous = order.status

        shipping = {}
        if command.carrier:
            shipping["carrier"] = command.carrier
        if command.tracking_number:
            shipping["tracking_number"] = command.tracking_number
        order.advance_to(command.status, **shipping)
        save_order(order)

        logger.info("Order status updated", order_id=str(order.id), previous=previous, status=order.status)
        return order.status
