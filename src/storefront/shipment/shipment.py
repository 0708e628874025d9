"""Shipment aggregate (CQRS): a booked parcel and its tracking history."""

import json
from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, HasMany, Identifier, String, Text

from storefront.domain import storefront
from storefront.shipment.events import ShipmentCreated, TrackingUpdated
from storefront.shipment.status import TrackingStatus, normalize


def _aware(moment):
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


@storefront.entity(part_of="Shipment")
class TrackingEvent:
    code = String(required=True, max_length=50)
    status = String(choices=TrackingStatus, required=True)
    description = String(max_length=500)
    location = String(max_length=255)
    is_exception = Boolean(default=False)
    occurred_at = DateTime(required=True)

    def to_dict(self):
        return {
            "code": self.code,
            "status": self.status,
            "description": self.description,
            "location": self.location,
            "is_exception": self.is_exception,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
        }


@storefront.aggregate
class Shipment:
    order_id = Identifier(required=True)
    carrier = String(required=True, max_length=50)
    service_type = String(max_length=50)
    tracking_number = String(required=True, max_length=100, unique=True)
    label_url = String(max_length=500)
    estimated_delivery = String(max_length=30)
    package = Text()  # JSON: weight and dimensions sent to the carrier
    status = String(choices=TrackingStatus, default=TrackingStatus.LABEL_CREATED.value)
    events = HasMany(TrackingEvent)
    last_polled_at = DateTime()
    created_at = DateTime()

    @classmethod
    def book(cls, order_id, carrier, service_type, booking, package=None):
        now = datetime.now(UTC)
        shipment = cls(
            order_id=order_id,
            carrier=carrier,
            service_type=service_type,
            tracking_number=booking.tracking_number,
            label_url=booking.label_url,
            estimated_delivery=booking.estimated_delivery,
            package=json.dumps(package or {}),
            created_at=now,
        )
        shipment.raise_(
            ShipmentCreated(
                shipment_id=str(shipment.id),
                order_id=str(order_id),
                carrier=carrier,
                tracking_number=booking.tracking_number,
                created_at=now,
            )
        )
        return shipment

    def _seen(self, code, occurred_at):
        occurred_at = _aware(occurred_at)
        return any(e.code == code and _aware(e.occurred_at) == occurred_at for e in self.events)

    def record_events(self, carrier_events):
        """Append carrier scans not already in history. Returns the new TrackingEvents."""
        added = []
        for carrier_event in sorted(carrier_events, key=lambda e: _aware(e.occurred_at)):
            if self._seen(carrier_event.code, carrier_event.occurred_at):
                continue
            status, is_exception = normalize(carrier_event.code)
            event = TrackingEvent(
                code=carrier_event.code,
                status=status.value,
                description=carrier_event.description,
                location=carrier_event.location,
                is_exception=is_exception,
                occurred_at=_aware(carrier_event.occurred_at),
            )
            self.add_events(event)
            added.append(event)

        self.last_polled_at = datetime.now(UTC)
        if not added:
            return added

        latest = self.history()[0]
        self.status = latest.status
        self.raise_(
            TrackingUpdated(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                tracking_number=self.tracking_number,
                status=latest.status,
                description=latest.description,
                is_exception=latest.is_exception,
                occurred_at=latest.occurred_at,
            )
        )
        return added

    def history(self):
        """Tracking events, most recent first."""
        return sorted(self.events, key=lambda e: _aware(e.occurred_at), reverse=True)

    def tracking_payload(self, stale=False):
        return {
            "order_id": str(self.order_id),
            "tracking_number": self.tracking_number,
            "carrier": self.carrier,
            "status": self.status,
            "estimated_delivery": self.estimated_delivery,
            "events": [e.to_dict() for e in self.history()],
            "stale": stale,
        }
