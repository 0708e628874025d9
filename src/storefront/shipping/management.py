"""Shipping zone administration: command and handler."""

import json

from protean import handle
from protean.fields import Boolean, Float, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.shipping.zone import ShippingZone


@storefront.command(part_of="ShippingZone")
class CreateShippingZone:
    name = String(required=True, max_length=100)
    countries = Text(required=True)  # JSON array
    states = Text()  # JSON array
    rates = Text(required=True)  # JSON: list of {min_weight, max_weight?, price}
    free_shipping_threshold = Float(min_value=0.0)
    handling_fee = Float(default=0.0, min_value=0.0)
    additional_fees = Text()  # JSON: list of {name, fee_type, amount}
    insurance_required = Boolean(default=False)


def _loads(raw, default=None):
    if raw is None:
        return default
    return json.loads(raw) if isinstance(raw, str) else raw


@storefront.command_handler(part_of=ShippingZone)
class ShippingZoneHandler:
    @handle(CreateShippingZone)
    def create_zone(self, command):
        zone = ShippingZone.create(
            name=command.name,
            countries=_loads(command.countries, []),
            states=_loads(command.states, []),
            rates=_loads(command.rates, []),
            free_shipping_threshold=command.free_shipping_threshold,
            handling_fee=command.handling_fee,
            additional_fees=_loads(command.additional_fees, []),
            insurance_required=bool(command.insurance_required),
        )
        current_domain.repository_for(ShippingZone).add(zone)
        return str(zone.id)
