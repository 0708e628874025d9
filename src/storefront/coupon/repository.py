"""Repository for Coupon with case-insensitive code lookup."""

from storefront.coupon.coupon import Coupon, normalize_code
from storefront.domain import storefront


@storefront.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code) -> Coupon | None:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self._dao.query.filter(code=normalized).all().first
