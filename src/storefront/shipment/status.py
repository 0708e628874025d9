"""Carrier status normalization.

Carriers report scans as short codes (FedEx style) or plain names. Both map
onto one internal status set. Unknown codes are kept as ``in_transit`` so a
new carrier code never raises or marks a parcel as a problem.
"""

from enum import Enum


class TrackingStatus(Enum):
    LABEL_CREATED = "label_created"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    EXCEPTION = "exception"
    RETURNED = "returned"
    CANCELLED = "cancelled"


CARRIER_CODES = {
    "PU": TrackingStatus.PICKED_UP,
    "IT": TrackingStatus.IN_TRANSIT,
    "AR": TrackingStatus.IN_TRANSIT,  # arrived at facility
    "DP": TrackingStatus.IN_TRANSIT,  # departed facility
    "OD": TrackingStatus.OUT_FOR_DELIVERY,
    "DL": TrackingStatus.DELIVERED,
    "DE": TrackingStatus.EXCEPTION,
    "RS": TrackingStatus.RETURNED,
    "CA": TrackingStatus.CANCELLED,
}


def normalize(code) -> tuple[TrackingStatus, bool]:
    """Internal status for a carrier code, and whether it is an exception."""
    raw = (code or "").strip()
    status = CARRIER_CODES.get(raw.upper())
    if status is None:
        try:
            status = TrackingStatus(raw.lower())
        except ValueError:
            return TrackingStatus.IN_TRANSIT, False
    return status, status == TrackingStatus.EXCEPTION
