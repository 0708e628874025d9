"""ShippingZone aggregate (CQRS): static rate tables keyed by destination.

A zone covers a set of countries and, optionally, a set of states within
them; an empty state set covers every state. Rates are weight bands
``[min_weight, max_weight)``; a band without ``max_weight`` is open-ended.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, String, Text, ValueObject

from storefront.domain import storefront


class FeeType(Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


@storefront.value_object(part_of="ShippingZone")
class ShippingConditions:
    free_shipping_threshold = Float(min_value=0.0)
    handling_fee = Float(default=0.0, min_value=0.0)
    additional_fees = Text()  # JSON: list of {name, fee_type, amount}


@storefront.entity(part_of="ShippingZone")
class ShippingRate:
    min_weight = Float(required=True, min_value=0.0)
    max_weight = Float(min_value=0.0)
    price = Float(required=True, min_value=0.0)

    def covers(self, weight):
        return self.min_weight <= weight and (self.max_weight is None or weight < self.max_weight)


def _codes(values):
    return [str(v).strip().upper() for v in values or [] if str(v).strip()]


@storefront.aggregate
class ShippingZone:
    name = String(required=True, max_length=100)
    countries = Text(required=True)  # JSON array of upper-cased country codes
    states = Text()  # JSON array; empty means all states
    rates = HasMany(ShippingRate)
    conditions = ValueObject(ShippingConditions)
    insurance_required = Boolean(default=False)
    is_active = Boolean(default=True)
    created_at = DateTime()

    @invariant.post
    def rate_bands_must_be_well_formed(self):
        for rate in self.rates or []:
            if rate.max_weight is not None and rate.max_weight <= rate.min_weight:
                raise ValidationError({"rates": ["Rate band max_weight must be greater than min_weight"]})

    @classmethod
    def create(
        cls,
        name,
        countries,
        rates,
        states=None,
        free_shipping_threshold=None,
        handling_fee=0.0,
        additional_fees=None,
        insurance_required=False,
    ):
        """Create a zone.

        Args:
            rates: List of dicts with min_weight, max_weight (optional), price.
            additional_fees: List of dicts with name, fee_type (fixed|percentage), amount.
        """
        if not _codes(countries):
            raise ValidationError({"countries": ["A zone needs at least one country"]})
        for fee in additional_fees or []:
            if fee.get("fee_type") not in {t.value for t in FeeType}:
                raise ValidationError({"additional_fees": [f"Unknown fee type: {fee.get('fee_type')}"]})

        zone = cls(
            name=name,
            countries=json.dumps(_codes(countries)),
            states=json.dumps(_codes(states)),
            conditions=ShippingConditions(
                free_shipping_threshold=free_shipping_threshold,
                handling_fee=handling_fee or 0.0,
                additional_fees=json.dumps(additional_fees or []),
            ),
            insurance_required=insurance_required,
            created_at=datetime.now(UTC),
        )
        for rate in rates:
            zone.add_rates(
                ShippingRate(
                    min_weight=rate.get("min_weight", 0.0),
                    max_weight=rate.get("max_weight"),
                    price=rate["price"],
                )
            )
        return zone

    @property
    def country_codes(self):
        return set(json.loads(self.countries)) if self.countries else set()

    @property
    def state_codes(self):
        return set(json.loads(self.states)) if self.states else set()

    @property
    def fees(self):
        if not self.conditions or not self.conditions.additional_fees:
            return []
        return json.loads(self.conditions.additional_fees)

    def matches(self, country, state=None):
        if str(country or "").strip().upper() not in self.country_codes:
            return False
        states = self.state_codes
        return not states or str(state or "").strip().upper() in states

    def rate_for(self, weight):
        """The first band (ordered by min_weight) whose range contains ``weight``."""
        for rate in sorted(self.rates, key=lambda r: r.min_weight):
            if rate.covers(weight):
                return rate
        return None
