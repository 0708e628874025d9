"""Domain events for the Shipment aggregate."""

from protean.fields import Boolean, DateTime, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Shipment")
class ShipmentCreated:
    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    created_at = DateTime(required=True)


@storefront.event(part_of="Shipment")
class TrackingUpdated:
    """New scans arrived. ``is_exception`` is set when the latest scan is a problem."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    status = String(required=True)
    description = String()
    is_exception = Boolean(default=False)
    occurred_at = DateTime(required=True)
