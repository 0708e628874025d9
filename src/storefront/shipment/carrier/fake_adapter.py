"""Fake carrier adapter: deterministic carrier for testing and development.

Generates mock tracking numbers and labels. Tracking events are scripted per
tracking number with ``add_event``; the adapter can be switched to fail so
the tracker's stale-history fallback can be exercised.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from storefront.errors import CarrierUnavailable
from storefront.shipment.carrier.port import CarrierEvent, CarrierPort, ShipmentBooking

_TRANSIT_DAYS = {"ground": 5, "standard": 5, "express": 2, "priority_overnight": 1, "overnight": 1}


class FakeCarrier(CarrierPort):
    """Fake carrier that always succeeds by default."""

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.events: dict[str, list[CarrierEvent]] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Carrier unavailable"):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def add_event(self, tracking_number, code, description=None, location=None, occurred_at=None):
        """Script a scan event that the next ``get_tracking`` call will report."""
        event = CarrierEvent(
            code=code,
            occurred_at=occurred_at or datetime.now(UTC),
            description=description,
            location=location,
        )
        self.events.setdefault(tracking_number, []).append(event)
        return event

    def create_shipment(
        self,
        order_id: str,
        carrier: str,
        service_type: str,
        package: dict | None = None,
        timeout: float | None = None,
    ) -> ShipmentBooking:
        self.calls.append(
            {
                "method": "create_shipment",
                "order_id": order_id,
                "carrier": carrier,
                "service_type": service_type,
                "package": package or {},
                "timeout": timeout,
            }
        )
        if not self.should_succeed:
            raise CarrierUnavailable(self.failure_reason)

        tracking_number = f"FAKE{uuid4().hex[:12].upper()}"
        days = _TRANSIT_DAYS.get((service_type or "").lower(), 5)
        estimated_delivery = (datetime.now(UTC) + timedelta(days=days)).date().isoformat()
        return ShipmentBooking(
            tracking_number=tracking_number,
            label_url=f"https://fake-carrier.example.com/labels/{tracking_number}.pdf",
            estimated_delivery=estimated_delivery,
        )

    def get_tracking(self, tracking_number: str, timeout: float | None = None) -> list[CarrierEvent]:
        self.calls.append({"method": "get_tracking", "tracking_number": tracking_number, "timeout": timeout})
        if not self.should_succeed:
            raise CarrierUnavailable(self.failure_reason)
        return list(self.events.get(tracking_number, []))
