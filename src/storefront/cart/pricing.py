"""Cart pricing: combines lines, coupon, shipping and tax into one total.

``compute_totals`` runs the full pipeline and returns a CartTotals without
touching any aggregate. Callers apply the result only after it succeeds, so a
failure in any step (invalid coupon, no shipping) leaves the previous priced
state intact.

    subtotal = sum(line totals)
    discount = coupon discount (0 without a coupon)
    shipping = zone quote (0 for free shipping, empty carts or no destination)
    tax      = (subtotal - discount) * TAX_RATE / 100
    total    = subtotal + tax + shipping - discount
"""

from dataclasses import dataclass
from decimal import Decimal

from protean.exceptions import ValidationError

from storefront import settings
from storefront.coupon import evaluator
from storefront.errors import InvariantViolation
from storefront.money import ZERO, quantize, to_decimal
from storefront.shipping import calculator

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    shipping_cost: Decimal
    total: Decimal
    coupon_code: str | None = None
    free_shipping: bool = False
    shipping_zone: str | None = None

    def as_pricing(self, currency):
        return {
            "subtotal": float(self.subtotal),
            "discount": float(self.discount),
            "tax": float(self.tax),
            "shipping_cost": float(self.shipping_cost),
            "total": float(self.total),
            "currency": currency,
        }


def line_total(unit_price, quantity) -> Decimal:
    return quantize(to_decimal(unit_price) * quantity)


def check_total(subtotal, tax, shipping_cost, discount, total) -> None:
    """Raise InvariantViolation unless total == subtotal + tax + shipping - discount to the cent."""
    expected = quantize(to_decimal(subtotal) + to_decimal(tax) + to_decimal(shipping_cost) - to_decimal(discount))
    if quantize(total) != expected:
        raise InvariantViolation(f"Order total {quantize(total)} does not match components (expected {expected})")


def compute_totals(lines, coupon_code=None, destination=None, user_id=None, require_destination=False) -> CartTotals:
    """Price ``lines`` (objects or dicts with unit_price, quantity, weight, dimensions)."""
    lines = list(lines)
    subtotal = sum((line_total(_get(line, "unit_price"), _get(line, "quantity")) for line in lines), ZERO)

    discount = ZERO
    free_shipping = False
    applied_code = None
    if coupon_code:
        coupon = evaluator.evaluate(
            coupon_code,
            subtotal,
            user_id=user_id,
            product_ids=[_get(line, "product_id") for line in lines],
            category_ids=[_get(line, "category_id") for line in lines],
        )
        discount = coupon.discount
        free_shipping = coupon.free_shipping
        applied_code = coupon.code

    shipping_cost = ZERO
    shipping_zone = None
    if destination is not None and lines:
        shipping = calculator.quote_for(lines, destination, subtotal, free_shipping=free_shipping)
        shipping_cost = shipping.cost
        shipping_zone = shipping.zone_name
        free_shipping = free_shipping or shipping.free_shipping
    elif require_destination:
        raise ValidationError({"shipping_address": ["A shipping address is required"]})

    taxable = max(subtotal - discount, ZERO)
    tax = quantize(taxable * settings.tax_rate() / HUNDRED)
    total = quantize(subtotal + tax + shipping_cost - discount)

    check_total(subtotal, tax, shipping_cost, discount, total)
    return CartTotals(
        subtotal=quantize(subtotal),
        discount=discount,
        tax=tax,
        shipping_cost=shipping_cost,
        total=total,
        coupon_code=applied_code,
        free_shipping=free_shipping,
        shipping_zone=shipping_zone,
    )


def _get(line, name):
    if isinstance(line, dict):
        return line.get(name)
    return getattr(line, name, None)
