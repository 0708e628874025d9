"""Shipment creation: command and handler.

Booking a label is not best-effort: if the carrier cannot be reached the
command fails and the order stays packed.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront import settings
from storefront.domain import storefront
from storefront.errors import CarrierUnavailable
from storefront.order.lookup import load_order, save_order
from storefront.order.order import OrderStatus
from storefront.shipment.carrier import get_carrier
from storefront.shipment.shipment import Shipment

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Shipment")
class CreateShipment:
    order_id = Identifier(required=True)
    carrier = String(required=True, max_length=50)
    service_type = String(max_length=50)
    package = Text()  # JSON: {weight, length, width, height}


@storefront.command_handler(part_of=Shipment)
class ShipmentCreationHandler:
    @handle(CreateShipment)
    def create_shipment(self, command):
        order = load_order(command.order_id)
        if order.status != OrderStatus.PACKED.value:
            raise ValidationError({"status": [f"Only packed orders can be shipped, order is {order.status}"]})

        package = json.loads(command.package) if isinstance(command.package, str) else (command.package or {})
        service_type = command.service_type or (order.shipping.service_type if order.shipping else None) or "ground"
        timeout = settings.external_call_timeout()
        try:
            booking = get_carrier().create_shipment(
                order_id=str(order.id),
                carrier=command.carrier,
                service_type=service_type,
                package=package,
                timeout=timeout,
            )
        except CarrierUnavailable as exc:
            logger.warning("Carrier booking failed", order_id=str(order.id), carrier=command.carrier, error=str(exc))
            raise ValidationError({"carrier": [f"Carrier could not book the shipment: {exc}"]}) from exc

        shipment = Shipment.book(
            order_id=str(order.id),
            carrier=command.carrier,
            service_type=service_type,
            booking=booking,
            package=package,
        )
        current_domain.repository_for(Shipment).add(shipment)

        order.ship(
            carrier=command.carrier,
            tracking_number=booking.tracking_number,
            shipment_id=str(shipment.id),
            service_type=service_type,
            label_url=booking.label_url,
            estimated_delivery=booking.estimated_delivery,
        )
        save_order(order)

        logger.info(
            "Shipment created",
            order_id=str(order.id),
            shipment_id=str(shipment.id),
            tracking_number=booking.tracking_number,
        )
        return {
            "shipment_id": str(shipment.id),
            "tracking_number": booking.tracking_number,
            "label_url": booking.label_url,
            "estimated_delivery": booking.estimated_delivery,
        }
