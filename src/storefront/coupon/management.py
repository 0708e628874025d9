"""Coupon administration: command and handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.coupon.coupon import Coupon, CouponType
from storefront.domain import storefront


@storefront.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    description = String(max_length=255)
    coupon_type = String(required=True, choices=CouponType)
    value = Float(default=0.0, min_value=0.0)
    min_purchase = Float(default=0.0, min_value=0.0)
    max_discount = Float(min_value=0.0)
    starts_at = DateTime(required=True)
    ends_at = DateTime(required=True)
    usage_limit_per_coupon = Integer(min_value=1)
    usage_limit_per_user = Integer(min_value=1)
    product_ids = Text()  # JSON array
    category_ids = Text()  # JSON array


@storefront.command_handler(part_of=Coupon)
class CouponManagementHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": [f"Coupon {command.code.upper()} already exists"]})

        coupon = Coupon.create(
            code=command.code,
            coupon_type=command.coupon_type,
            value=command.value,
            starts_at=command.starts_at,
            ends_at=command.ends_at,
            min_purchase=command.min_purchase,
            max_discount=command.max_discount,
            usage_limit_per_coupon=command.usage_limit_per_coupon,
            usage_limit_per_user=command.usage_limit_per_user,
            product_ids=json.loads(command.product_ids) if command.product_ids else [],
            category_ids=json.loads(command.category_ids) if command.category_ids else [],
            description=command.description,
        )
        repo.add(coupon)
        return str(coupon.id)
