"""Shipment tracking: polling the carrier and reflecting it on the order.

Polling appends only scans not already in history. A carrier outage is not
an error for the caller: the cached history is returned flagged ``stale``.
Delivered and out-for-delivery scans advance the order when its state
allows it.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront import settings
from storefront.domain import storefront
from storefront.errors import CarrierUnavailable
from storefront.order.lookup import load_order, save_order
from storefront.order.order import OrderStatus, can_transition
from storefront.shipment.carrier import get_carrier
from storefront.shipment.shipment import Shipment
from storefront.shipment.status import TrackingStatus

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Shipment")
class PollTracking:
    tracking_number = String(required=True, max_length=100)


@storefront.command(part_of="Shipment")
class TrackOrder:
    order_id = Identifier(required=True)


def _sync_order(shipment):
    order = load_order(shipment.order_id)
    latest = shipment.history()[0]

    if latest.status == TrackingStatus.DELIVERED.value and can_transition(order.status, OrderStatus.DELIVERED):
        order.deliver(delivered_at=latest.occurred_at)
    elif latest.status == TrackingStatus.OUT_FOR_DELIVERY.value and can_transition(
        order.status, OrderStatus.OUT_FOR_DELIVERY
    ):
        order.mark_out_for_delivery()
    else:
        return
    save_order(order)
    logger.info("Order status advanced from tracking", order_id=str(order.id), status=order.status)


def poll(shipment):
    timeout = settings.external_call_timeout()
    try:
        carrier_events = get_carrier().get_tracking(shipment.tracking_number, timeout=timeout)
    except CarrierUnavailable as exc:
        logger.warning(
            "Carrier unavailable, returning cached tracking",
            tracking_number=shipment.tracking_number,
            error=str(exc),
        )
        return shipment.tracking_payload(stale=True)

    added = shipment.record_events(carrier_events)
    current_domain.repository_for(Shipment).add(shipment)
    if added:
        _sync_order(shipment)
    return shipment.tracking_payload()


@storefront.command_handler(part_of=Shipment)
class ShipmentTrackingHandler:
    @handle(PollTracking)
    def poll_tracking(self, command):
        shipment = current_domain.repository_for(Shipment).by_tracking_number(command.tracking_number)
        if shipment is None:
            raise ObjectNotFoundError(f"No shipment with tracking number {command.tracking_number}")
        return poll(shipment)

    @handle(TrackOrder)
    def track_order(self, command):
        order = load_order(command.order_id)
        shipment = current_domain.repository_for(Shipment).for_order(order.id)
        if shipment is None:
            raise ObjectNotFoundError(f"Order {command.order_id} has not been shipped")
        return poll(shipment)
