"""Shipping rate calculation.

``quote`` is a pure function of the zone table, the parcel contents, the
destination and the cart subtotal:

    1. total weight = sum(weight * qty); total volume = sum(l * w * h * qty)
    2. pick the matching zone, then the weight band containing the weight
    3. dimensional weight = volume / divisor; if it exceeds the actual
       weight, rate the dimensional band too and keep the higher price
    4. free shipping (zone threshold met, or a free-shipping coupon) -> 0
    5. additional fees: fixed amounts, then percentages of the subtotal,
       then the handling fee
    6. insurance surcharge (subtotal * insurance rate) for insured zones
    7. clamp to the minimum shipping cost, round half-up to cents

Anything without a zone or band raises NoShippingAvailable; checkout must
block rather than fall back to a default price.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog
from protean.utils.globals import current_domain

from storefront import settings
from storefront.errors import NoShippingAvailable
from storefront.money import ZERO, quantize, to_decimal
from storefront.shipping.zone import FeeType, ShippingZone

logger = structlog.get_logger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ShippingQuote:
    cost: Decimal
    zone_id: str | None
    zone_name: str | None
    weight: Decimal
    dimensional_weight: Decimal
    free_shipping: bool = False


def _field(source, name):
    if isinstance(source, dict):
        return source.get(name)
    return getattr(source, name, None)


def parcel_totals(items) -> tuple[Decimal, Decimal]:
    """Total weight and total volume of ``items`` (objects or dicts)."""
    weight = volume = ZERO
    for item in items:
        quantity = to_decimal(_field(item, "quantity") or 0)
        weight += to_decimal(_field(item, "weight")) * quantity
        volume += (
            to_decimal(_field(item, "length"))
            * to_decimal(_field(item, "width"))
            * to_decimal(_field(item, "height"))
            * quantity
        )
    return weight, volume


def select_zone(zones, country, state=None):
    """Best zone for a destination. State-specific zones win over country-wide ones."""
    matching = [z for z in zones if z.is_active and z.matches(country, state)]
    if not matching:
        return None
    return sorted(matching, key=lambda z: (0 if z.state_codes else 1, z.name))[0]


def quote(zones, items, destination, subtotal, free_shipping=False) -> ShippingQuote:
    country = _field(destination, "country")
    state = _field(destination, "state")
    subtotal = to_decimal(subtotal)

    zone = select_zone(zones, country, state)
    if zone is None:
        raise NoShippingAvailable(f"No shipping zone serves {state + ', ' if state else ''}{country}")

    weight, volume = parcel_totals(items)
    rate = zone.rate_for(weight)
    if rate is None:
        raise NoShippingAvailable(f"No shipping rate in zone {zone.name} for weight {weight}")
    cost = to_decimal(rate.price)

    dimensional_weight = volume / settings.dimensional_divisor()
    if dimensional_weight > weight:
        dimensional_rate = zone.rate_for(dimensional_weight)
        if dimensional_rate is None:
            raise NoShippingAvailable(
                f"No shipping rate in zone {zone.name} for dimensional weight {dimensional_weight}"
            )
        cost = max(cost, to_decimal(dimensional_rate.price))

    threshold = zone.conditions.free_shipping_threshold if zone.conditions else None
    if free_shipping or (threshold is not None and subtotal >= to_decimal(threshold)):
        return ShippingQuote(
            cost=ZERO,
            zone_id=str(zone.id),
            zone_name=zone.name,
            weight=weight,
            dimensional_weight=dimensional_weight,
            free_shipping=True,
        )

    fees = zone.fees
    for fee in fees:
        if fee.get("fee_type") == FeeType.FIXED.value:
            cost += to_decimal(fee.get("amount"))
    for fee in fees:
        if fee.get("fee_type") == FeeType.PERCENTAGE.value:
            cost += subtotal * to_decimal(fee.get("amount")) / HUNDRED
    if zone.conditions and zone.conditions.handling_fee:
        cost += to_decimal(zone.conditions.handling_fee)

    if zone.insurance_required:
        cost += subtotal * settings.insurance_rate() / HUNDRED

    cost = max(cost, settings.min_shipping_cost())

    return ShippingQuote(
        cost=quantize(cost),
        zone_id=str(zone.id),
        zone_name=zone.name,
        weight=weight,
        dimensional_weight=dimensional_weight,
    )


def quote_for(items, destination, subtotal, free_shipping=False) -> ShippingQuote:
    """Quote against the zones currently configured in the domain."""
    zones = current_domain.repository_for(ShippingZone).active_zones()
    result = quote(zones, items, destination, subtotal, free_shipping=free_shipping)
    logger.debug(
        "Shipping quoted",
        zone=result.zone_name,
        cost=str(result.cost),
        weight=str(result.weight),
        dimensional_weight=str(result.dimensional_weight),
    )
    return result
