"""Coupon evaluation.

``evaluate`` validates a code against a cart and prices the discount; it
never changes the coupon. ``record_redemption`` is called once an order is
confirmed and is the only place usage is counted.

Checks run in a fixed order so a caller always sees the first applicable
reason:

    1. unknown / inactive / outside validity window   -> CouponInvalid
    2. subtotal below minimum purchase                 -> MinimumPurchaseNotMet
    3. per-coupon usage limit reached                  -> CouponExhausted
    4. per-user usage limit reached                    -> UserLimitReached
    5. product/category scope not met                  -> CouponNotApplicable
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

import structlog
from protean.utils.globals import current_domain

from storefront.coupon.coupon import Coupon, CouponType, normalize_code
from storefront.errors import (
    CouponExhausted,
    CouponInvalid,
    CouponNotApplicable,
    MinimumPurchaseNotMet,
    UserLimitReached,
)
from storefront.money import ZERO, quantize, to_decimal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CouponQuote:
    code: str
    coupon_type: str
    discount: Decimal
    free_shipping: bool


def _aware(moment):
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def compute_discount(coupon_type, value, subtotal, max_discount=None) -> Decimal:
    """Discount for a coupon of ``coupon_type`` on ``subtotal``, rounded to cents.

    Percentage discounts are capped at ``max_discount`` when one is set; fixed
    discounts never exceed the subtotal; free-shipping coupons discount nothing
    (they zero the shipping cost instead).
    """
    subtotal = to_decimal(subtotal)
    if subtotal <= ZERO:
        return ZERO

    kind = CouponType(coupon_type)
    if kind == CouponType.PERCENTAGE:
        discount = subtotal * to_decimal(value) / Decimal("100")
        if max_discount is not None:
            discount = min(discount, to_decimal(max_discount))
    elif kind == CouponType.FIXED:
        discount = min(to_decimal(value), subtotal)
    else:
        discount = ZERO
    return quantize(discount)


def evaluate(code, subtotal, user_id=None, product_ids=(), category_ids=(), at=None) -> CouponQuote:
    """Validate ``code`` for a cart and return the discount it grants."""
    at = at or datetime.now(UTC)
    coupon = current_domain.repository_for(Coupon).find_by_code(code)

    if coupon is None or not coupon.is_active:
        raise CouponInvalid(f"Coupon {normalize_code(code)} is not valid")
    if not (_aware(coupon.starts_at) <= at <= _aware(coupon.ends_at)):
        raise CouponInvalid(f"Coupon {coupon.code} is not valid at this time")

    subtotal = to_decimal(subtotal)
    if subtotal < to_decimal(coupon.min_purchase):
        raise MinimumPurchaseNotMet(f"Minimum purchase of {quantize(coupon.min_purchase)} required for {coupon.code}")

    if coupon.is_exhausted:
        raise CouponExhausted(f"Coupon {coupon.code} has reached its usage limit")

    if user_id is not None and coupon.usage_limit_per_user is not None:
        if coupon.redemptions_by(user_id) >= coupon.usage_limit_per_user:
            raise UserLimitReached(f"You have already used coupon {coupon.code} the maximum number of times")

    scoped_products = coupon.scoped_product_ids
    scoped_categories = coupon.scoped_category_ids
    if scoped_products or scoped_categories:
        matching_products = scoped_products & {str(p) for p in product_ids if p}
        matching_categories = scoped_categories & {str(c) for c in category_ids if c}
        if not (matching_products or matching_categories):
            raise CouponNotApplicable(f"Coupon {coupon.code} does not apply to any item in your cart")

    return CouponQuote(
        code=coupon.code,
        coupon_type=coupon.coupon_type,
        discount=compute_discount(coupon.coupon_type, coupon.value, subtotal, coupon.max_discount),
        free_shipping=coupon.coupon_type == CouponType.FREE_SHIPPING.value,
    )


def record_redemption(code, user_id, order_id) -> bool:
    """Count a coupon use for a confirmed order.

    Returns True when a use was counted. A coupon that ran out between
    checkout and confirmation is left at its limit and logged.
    """
    repo = current_domain.repository_for(Coupon)
    coupon = repo.find_by_code(code)
    if coupon is None:
        logger.warning("Coupon vanished before redemption", code=code, order_id=str(order_id))
        return False

    try:
        counted = coupon.redeem(user_id=user_id, order_id=order_id)
    except CouponExhausted:
        logger.warning(
            "Coupon exhausted before order confirmation, usage not counted",
            code=coupon.code,
            order_id=str(order_id),
        )
        return False

    if counted:
        repo.add(coupon)
        logger.info("Coupon redeemed", code=coupon.code, order_id=str(order_id), usage_count=coupon.usage_count)
    return counted
