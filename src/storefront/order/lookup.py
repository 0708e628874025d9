"""Loading orders by id. Deleted orders behave as if they never existed."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.order.order import Order


def load_order(order_id) -> Order:
    order = current_domain.repository_for(Order).get(str(order_id))
    if order.deleted:
        raise ObjectNotFoundError(f"Order {order_id} does not exist")
    return order


def save_order(order) -> None:
    current_domain.repository_for(Order).add(order)
