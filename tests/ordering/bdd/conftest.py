"""Shared BDD fixtures and step definitions for ordering, carts and coupons."""

import json

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then, when
from storefront.cart.cart import ShoppingCart
from storefront.cart.management import AddCartItem, ApplyCartCoupon, SetCartDestination
from storefront.coupon.coupon import Coupon
from storefront.errors import CouponError
from storefront.inventory.ledger import find
from storefront.order.cancellation import CancelOrder

_CART_FIELDS = {
    "subtotal": "subtotal",
    "discount": "discount",
    "tax": "tax",
    "shipping": "shipping_cost",
    "total": "total",
}


def _sku(product_id):
    return f"SKU-{product_id.upper()}"


@pytest.fixture()
def error():
    """Container for an error raised by a ``tries to`` step."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{product_id}" priced at {price:f}'))
def _(shop, product_id, price):
    shop.product(product_id, sku=_sku(product_id), price=price, weight=1.0)


@given(parsers.cfparse('{quantity:d} units of "{product_id}" in stock at "{store_id}"'))
def _(shop, quantity, product_id, store_id):
    shop.stock(product_id, store_id=store_id, quantity=quantity, sku=_sku(product_id))


@given(parsers.cfparse('a shipping zone for "{country}" charging {price:f}'))
def _(shop, country, price):
    shop.zone(countries=(country,), rates=[{"min_weight": 0.0, "price": price}])


@given(parsers.cfparse("the tax rate is {rate:d} percent"))
def _(monkeypatch, rate):
    monkeypatch.setenv("TAX_RATE", str(rate))


@given(parsers.cfparse('an active {value:d} percent coupon "{code}"'))
def _(shop, value, code):
    shop.coupon(code, value=float(value))


@given(parsers.cfparse('a {value:d} percent coupon "{code}" limited to {limit:d} use per customer'))
def _(shop, value, code, limit):
    shop.coupon(code, value=float(value), usage_limit_per_user=limit)


@given(
    parsers.cfparse('customer "{customer_id}" has ordered {quantity:d} of "{product_id}" from "{store_id}"'),
    target_fixture="placed",
)
def _(shop, customer_id, quantity, product_id, store_id):
    return shop.place_order(customer_id=customer_id, lines=((product_id, store_id, quantity),))


@given(
    parsers.cfparse(
        'customer "{customer_id}" has redeemed coupon "{code}" on an order of {quantity:d} of "{product_id}" from "{store_id}"'
    ),
    target_fixture="placed",
)
def _(shop, customer_id, quantity, product_id, store_id, code):
    return shop.place_order(customer_id=customer_id, lines=((product_id, store_id, quantity),), coupon_code=code)


@given("the order has been paid")
def _(shop, placed):
    assert shop.pay(placed).succeeded


@given("the payment gateway declines refunds")
def _(gateway):
    gateway.configure(should_succeed=False, failure_reason="Refund declined by issuer")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(
    parsers.cfparse('customer "{customer_id}" orders {quantity:d} of "{product_id}" from "{store_id}"'),
    target_fixture="placed",
)
def _(shop, customer_id, quantity, product_id, store_id):
    return shop.place_order(customer_id=customer_id, lines=((product_id, store_id, quantity),))


@when(
    parsers.cfparse(
        'customer "{customer_id}" redeems coupon "{code}" on an order of {quantity:d} of "{product_id}" from "{store_id}"'
    ),
    target_fixture="placed",
)
def _(shop, customer_id, quantity, product_id, store_id, code):
    return shop.place_order(customer_id=customer_id, lines=((product_id, store_id, quantity),), coupon_code=code)


@when(parsers.cfparse('the customer cancels the order because "{reason}"'), target_fixture="cancellation")
def _(shop, placed, reason):
    return shop.process(CancelOrder(order_id=placed["order_id"], reason=reason, cancelled_by="customer"))


@when(parsers.cfparse('user "{user_id}" adds {quantity:d} of "{product_id}" from "{store_id}" to the cart'))
def _(shop, user_id, quantity, product_id, store_id):
    shop.process(AddCartItem(user_id=user_id, product_id=product_id, store_id=store_id, quantity=quantity))


@when(parsers.cfparse('user "{user_id}" ships the cart to "{country}"'))
def _(shop, user_id, country):
    shop.process(SetCartDestination(user_id=user_id, address=json.dumps(shop.address(country=country))))


@when(parsers.cfparse('user "{user_id}" applies coupon "{code}"'))
def _(shop, user_id, code):
    shop.process(ApplyCartCoupon(user_id=user_id, coupon_code=code))


@when(parsers.cfparse('user "{user_id}" tries to apply coupon "{code}"'), target_fixture="cart_user")
def _(shop, error, user_id, code):
    try:
        shop.process(ApplyCartCoupon(user_id=user_id, coupon_code=code))
    except CouponError as exc:
        error["exc"] = exc
    return user_id


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(shop, placed, status):
    assert shop.order(placed["order_id"]).status == status


@then(parsers.cfparse('the order payment status is "{status}"'))
def _(shop, placed, status):
    assert shop.order(placed["order_id"]).payment_status == status


@then(parsers.cfparse('"{product_id}" at "{store_id}" has {quantity:d} units'))
def _(product_id, store_id, quantity):
    assert find(product_id, None, store_id).quantity == quantity


@then(parsers.cfparse("the cart {field} is {amount:f}"))
def _(field, amount):
    carts = current_domain.repository_for(ShoppingCart)._dao.query.all().items
    assert len(carts) == 1
    assert getattr(carts[0], _CART_FIELDS[field]) == pytest.approx(amount)


@then(parsers.cfparse('coupon "{code}" has been used {count:d} time'))
def _(code, count):
    assert current_domain.repository_for(Coupon).find_by_code(code).usage_count == count
