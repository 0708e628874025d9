"""Order creation: command and handler.

Creation runs as ordered steps with explicit compensation:

    1. price the lines (coupon revalidated, shipping quote required)
    2. allocate the order number
    3. reserve stock line by line; a shortfall restores what was reserved
    4. record OrderCreated
    5. deferred payment: count the coupon now
       otherwise: open a payment intent; if that fails, restore stock
    6. clear the source cart
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront import settings
from storefront.cart.cart import ShoppingCart
from storefront.cart.management import recompute
from storefront.cart.pricing import compute_totals
from storefront.catalog import get_catalog
from storefront.coupon import evaluator
from storefront.domain import storefront
from storefront.errors import InsufficientInventory, PaymentFailed
from storefront.inventory import ledger
from storefront.inventory.ledger import StockLine
from storefront.order.order import Order
from storefront.order.sequence import next_order_number
from storefront.payment import coordinator

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class CreateOrder:
    """Place an order from the customer's cart, or from ``items`` when given."""

    customer_id = Identifier(required=True)
    items = Text()  # JSON: list of {product_id, variant_id?, store_id, quantity}
    shipping_address = Text()  # JSON: address dict; defaults to the cart destination
    billing_address = Text()  # JSON: address dict
    payment_method = String(required=True, max_length=50)
    coupon_code = String(max_length=50)
    service_type = String(max_length=50)


def _loads(raw):
    if raw is None:
        return None
    return json.loads(raw) if isinstance(raw, str) else raw


def _lines_from_request(items):
    catalog = get_catalog()
    lines = []
    for entry in items:
        quantity = int(entry.get("quantity") or 0)
        if quantity < 1:
            raise ValidationError({"items": ["Quantity must be at least 1"]})
        snapshot = catalog.lookup(entry["product_id"], entry.get("variant_id"))
        if snapshot is None:
            raise ValidationError({"items": [f"Product {entry['product_id']} not found in catalog"]})
        lines.append(
            {
                "product_id": str(snapshot.product_id),
                "variant_id": snapshot.variant_id,
                "store_id": str(entry["store_id"]),
                "sku": snapshot.sku,
                "name": snapshot.name,
                "category_id": snapshot.category_id,
                "quantity": quantity,
                "unit_price": snapshot.price,
                "weight": snapshot.weight,
                "length": snapshot.length,
                "width": snapshot.width,
                "height": snapshot.height,
            }
        )
    return lines


def _lines_from_cart(cart):
    return [
        {
            "product_id": str(item.product_id),
            "variant_id": str(item.variant_id) if item.variant_id else None,
            "store_id": str(item.store_id),
            "sku": item.sku,
            "name": item.name,
            "category_id": item.category_id,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "weight": item.weight,
            "length": item.length,
            "width": item.width,
            "height": item.height,
        }
        for item in cart.items
    ]


def _stock_lines(lines):
    return [
        StockLine(
            product_id=line["product_id"],
            variant_id=line["variant_id"],
            store_id=line["store_id"],
            quantity=line["quantity"],
            sku=line["sku"],
        )
        for line in lines
    ]


@storefront.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        cart = None
        requested = _loads(command.items)
        coupon_code = command.coupon_code
        shipping_address = _loads(command.shipping_address)

        if requested:
            lines = _lines_from_request(requested)
        else:
            cart = current_domain.repository_for(ShoppingCart).for_user(command.customer_id)
            if cart is None or cart.is_empty:
                raise ValidationError({"items": ["Cart is empty"]})
            lines = _lines_from_cart(cart)
            coupon_code = coupon_code or cart.coupon_code
            if shipping_address is None and cart.destination is not None:
                shipping_address = cart.destination.to_dict()

        totals = compute_totals(
            lines,
            coupon_code=coupon_code,
            destination=shipping_address,
            user_id=command.customer_id,
            require_destination=True,
        )

        order_number = next_order_number()

        # Resolve the record each line will be reserved from, so the order
        # snapshot can reference it
        stock_lines = _stock_lines(lines)
        inventory = []
        for stock_line in stock_lines:
            record = ledger.find(stock_line.product_id, stock_line.variant_id, stock_line.store_id)
            if record is None:
                raise InsufficientInventory(stock_line.sku, 0, stock_line.quantity)
            inventory.append(str(record.id))

        order = Order.create(
            order_number=order_number,
            customer_id=command.customer_id,
            items=[
                {
                    "product_id": line["product_id"],
                    "variant_id": line["variant_id"],
                    "store_id": line["store_id"],
                    "inventory_record_id": record_id,
                    "sku": line["sku"],
                    "name": line["name"],
                    "quantity": line["quantity"],
                    "unit_price": line["unit_price"],
                }
                for line, record_id in zip(lines, inventory, strict=True)
            ],
            shipping_address=shipping_address,
            billing_address=_loads(command.billing_address),
            totals=totals,
            payment_method=command.payment_method,
            coupon_code=coupon_code,
            service_type=command.service_type,
            currency=settings.default_currency(),
        )

        ledger.reserve_lines(stock_lines, order_id=str(order.id), actor=f"order:{order_number}")

        payment = None
        if order.is_deferred_payment:
            if order.coupon_code:
                evaluator.record_redemption(order.coupon_code, command.customer_id, str(order.id))
        else:
            try:
                payment = coordinator.open_intent(order)
            except PaymentFailed:
                ledger.restore_lines(stock_lines, order_id=str(order.id), actor=f"order:{order_number}")
                raise

        current_domain.repository_for(Order).add(order)

        if cart is not None:
            cart.clear(reason=f"Converted to order {order_number}")
            recompute(cart)
            current_domain.repository_for(ShoppingCart).add(cart)

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order_number,
            customer_id=str(command.customer_id),
            total=order.pricing.total,
            payment_method=order.payment_method,
        )
        return {
            "order_id": str(order.id),
            "order_number": order_number,
            "payment_id": str(payment.id) if payment else None,
            "client_secret": payment.client_secret if payment else None,
            "total": order.pricing.total,
        }
