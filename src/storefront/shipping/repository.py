"""Repository for ShippingZone."""

from storefront.domain import storefront
from storefront.shipping.zone import ShippingZone


@storefront.repository(part_of=ShippingZone)
class ShippingZoneRepository:
    def active_zones(self) -> list[ShippingZone]:
        return self._dao.query.filter(is_active=True).all().items
