"""FastAPI routes for reference data: coupons, shipping zones and quotes."""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    CouponIdResponse,
    CouponValidationResponse,
    CreateCouponRequest,
    CreateShippingZoneRequest,
    ShippingQuoteRequest,
    ShippingQuoteResponse,
    ValidateCouponRequest,
    ZoneIdResponse,
)
from storefront.coupon import evaluator
from storefront.coupon.management import CreateCoupon
from storefront.shipping import calculator
from storefront.shipping.management import CreateShippingZone

router = APIRouter(tags=["reference"])


@router.post("/coupons", status_code=201, response_model=CouponIdResponse)
async def create_coupon(body: CreateCouponRequest) -> CouponIdResponse:
    data = body.model_dump()
    data["product_ids"] = json.dumps(body.product_ids)
    data["category_ids"] = json.dumps(body.category_ids)
    coupon_id = current_domain.process(CreateCoupon(**data), asynchronous=False)
    return CouponIdResponse(coupon_id=coupon_id)


@router.post("/coupons/validate", response_model=CouponValidationResponse)
async def validate_coupon(body: ValidateCouponRequest) -> CouponValidationResponse:
    """Check a code against a cart without redeeming it."""
    quote = evaluator.evaluate(
        body.code,
        body.subtotal,
        user_id=body.user_id,
        product_ids=body.product_ids,
        category_ids=body.category_ids,
    )
    return CouponValidationResponse(
        code=quote.code,
        coupon_type=quote.coupon_type,
        discount=float(quote.discount),
        free_shipping=quote.free_shipping,
    )


@router.post("/shipping/zones", status_code=201, response_model=ZoneIdResponse)
async def create_shipping_zone(body: CreateShippingZoneRequest) -> ZoneIdResponse:
    command = CreateShippingZone(
        name=body.name,
        countries=json.dumps(body.countries),
        states=json.dumps(body.states),
        rates=json.dumps([rate.model_dump() for rate in body.rates]),
        free_shipping_threshold=body.free_shipping_threshold,
        handling_fee=body.handling_fee,
        additional_fees=json.dumps([fee.model_dump() for fee in body.additional_fees]),
        insurance_required=body.insurance_required,
    )
    zone_id = current_domain.process(command, asynchronous=False)
    return ZoneIdResponse(zone_id=zone_id)


@router.post("/shipping/quote", response_model=ShippingQuoteResponse)
async def quote_shipping(body: ShippingQuoteRequest) -> ShippingQuoteResponse:
    result = calculator.quote_for(
        [item.model_dump() for item in body.items],
        body.destination.model_dump(),
        body.subtotal,
        free_shipping=body.free_shipping,
    )
    return ShippingQuoteResponse(
        cost=float(result.cost),
        zone_id=result.zone_id,
        zone_name=result.zone_name,
        weight=float(result.weight),
        dimensional_weight=float(result.dimensional_weight),
        free_shipping=result.free_shipping,
    )
