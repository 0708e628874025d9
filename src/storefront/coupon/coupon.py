"""Coupon aggregate (CQRS).

Codes are case-insensitive: they are stored upper-cased and looked up the
same way. Usage is only counted when an order is confirmed, through
``redeem``, which is idempotent per order and never lets ``usage_count``
exceed the per-coupon limit.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text

from storefront.coupon.events import CouponCreated, CouponRedeemed
from storefront.domain import storefront
from storefront.errors import CouponExhausted


class CouponType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"


def normalize_code(code):
    return (code or "").strip().upper()


@storefront.entity(part_of="Coupon")
class CouponRedemption:
    user_id = Identifier(required=True)
    order_id = Identifier(required=True)
    redeemed_at = DateTime(required=True)


@storefront.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    description = String(max_length=255)
    coupon_type = String(required=True, choices=CouponType)
    value = Float(default=0.0, min_value=0.0)
    min_purchase = Float(default=0.0, min_value=0.0)
    max_discount = Float(min_value=0.0)
    starts_at = DateTime(required=True)
    ends_at = DateTime(required=True)
    usage_limit_per_coupon = Integer(min_value=1)
    usage_limit_per_user = Integer(min_value=1)
    usage_count = Integer(default=0, min_value=0)
    product_ids = Text()  # JSON array
    category_ids = Text()  # JSON array
    is_active = Boolean(default=True)
    redemptions = HasMany(CouponRedemption)
    created_at = DateTime()

    @invariant.post
    def usage_must_stay_within_limit(self):
        if self.usage_limit_per_coupon is not None and (self.usage_count or 0) > self.usage_limit_per_coupon:
            raise ValidationError({"usage_count": ["Coupon usage cannot exceed its limit"]})

    @invariant.post
    def percentage_must_not_exceed_hundred(self):
        if self.coupon_type == CouponType.PERCENTAGE.value and (self.value or 0) > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100"]})

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.starts_at and self.ends_at and self.ends_at < self.starts_at:
            raise ValidationError({"ends_at": ["End date must be after start date"]})

    @classmethod
    def create(
        cls,
        code,
        coupon_type,
        value,
        starts_at,
        ends_at,
        min_purchase=0.0,
        max_discount=None,
        usage_limit_per_coupon=None,
        usage_limit_per_user=None,
        product_ids=None,
        category_ids=None,
        description=None,
    ):
        now = datetime.now(UTC)
        coupon = cls(
            code=normalize_code(code),
            description=description,
            coupon_type=coupon_type,
            value=value,
            min_purchase=min_purchase or 0.0,
            max_discount=max_discount,
            starts_at=starts_at,
            ends_at=ends_at,
            usage_limit_per_coupon=usage_limit_per_coupon,
            usage_limit_per_user=usage_limit_per_user,
            product_ids=json.dumps([str(p) for p in product_ids or []]),
            category_ids=json.dumps([str(c) for c in category_ids or []]),
            created_at=now,
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                code=coupon.code,
                coupon_type=coupon_type,
                created_at=now,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def scoped_product_ids(self):
        return set(json.loads(self.product_ids)) if self.product_ids else set()

    @property
    def scoped_category_ids(self):
        return set(json.loads(self.category_ids)) if self.category_ids else set()

    def is_within_window(self, at):
        return self.starts_at <= at <= self.ends_at

    def redemptions_by(self, user_id):
        return sum(1 for r in self.redemptions if str(r.user_id) == str(user_id))

    @property
    def is_exhausted(self):
        return self.usage_limit_per_coupon is not None and (self.usage_count or 0) >= self.usage_limit_per_coupon

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------
    def redeem(self, user_id, order_id):
        """Count one use for an order. Returns False if the order was already counted."""
        if any(str(r.order_id) == str(order_id) for r in self.redemptions):
            return False
        if self.is_exhausted:
            raise CouponExhausted(f"Coupon {self.code} has reached its usage limit")

        now = datetime.now(UTC)
        self.add_redemptions(CouponRedemption(user_id=user_id, order_id=order_id, redeemed_at=now))
        self.usage_count = (self.usage_count or 0) + 1
        self.raise_(
            CouponRedeemed(
                coupon_id=str(self.id),
                code=self.code,
                user_id=str(user_id),
                order_id=str(order_id),
                usage_count=self.usage_count,
                redeemed_at=now,
            )
        )
        return True

    def deactivate(self):
        self.is_active = False
