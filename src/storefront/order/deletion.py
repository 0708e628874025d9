"""Order deletion: command and handler.

A deleted pending order still holds reserved stock, so it is released
before the order disappears from view.
"""

import structlog
from protean import handle
from protean.fields import Identifier

from storefront.domain import storefront
from storefront.order.cancellation import restore_order_inventory
from storefront.order.lookup import load_order, save_order
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class DeleteOrder:
    order_id = Identifier(required=True)
    deleted_by = Identifier()


@storefront.command_handler(part_of=Order)
class DeleteOrderHandler:
    @handle(DeleteOrder)
    def delete_order(self, command):
        order = load_order(command.order_id)
        order.delete()
        restore_order_inventory(order, actor=command.deleted_by or "system")
        save_order(order)
        logger.info("Order deleted", order_id=str(order.id), order_number=order.order_number)
