"""Domain events for the Coupon aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Coupon")
class CouponCreated:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    coupon_type = String(required=True)
    created_at = DateTime(required=True)


@storefront.event(part_of="Coupon")
class CouponRedeemed:
    """A coupon use was counted against its limits at order confirmation."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    user_id = Identifier(required=True)
    order_id = Identifier(required=True)
    usage_count = Integer(required=True)
    redeemed_at = DateTime(required=True)
