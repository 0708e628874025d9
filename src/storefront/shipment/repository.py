"""Repository for Shipment."""

from storefront.domain import storefront
from storefront.shipment.shipment import Shipment


@storefront.repository(part_of=Shipment)
class ShipmentRepository:
    def by_tracking_number(self, tracking_number) -> Shipment | None:
        return self._dao.query.filter(tracking_number=tracking_number).all().first

    def for_order(self, order_id) -> Shipment | None:
        shipments = self._dao.query.filter(order_id=str(order_id)).all().items
        if not shipments:
            return None
        return sorted(shipments, key=lambda s: s.created_at)[-1]
