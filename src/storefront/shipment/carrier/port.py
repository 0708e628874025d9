"""Carrier port: abstract interface for shipping carrier integrations.

All carrier adapters implement this interface; the tracker programs against
the port and adapters are swapped via configuration. Adapters raise
``CarrierUnavailable`` for any failure or timeout talking to the carrier.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ShipmentBooking:
    """A label booked with the carrier."""

    tracking_number: str
    label_url: str | None = None
    estimated_delivery: str | None = None


@dataclass(frozen=True)
class CarrierEvent:
    """One scan event as reported by the carrier, before normalization."""

    code: str
    occurred_at: datetime
    description: str | None = None
    location: str | None = None


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def create_shipment(
        self,
        order_id: str,
        carrier: str,
        service_type: str,
        package: dict | None = None,
        timeout: float | None = None,
    ) -> ShipmentBooking:
        """Book a shipment and return its tracking number and label."""
        ...

    @abstractmethod
    def get_tracking(self, tracking_number: str, timeout: float | None = None) -> list[CarrierEvent]:
        """Return every scan event the carrier knows for ``tracking_number``."""
        ...
