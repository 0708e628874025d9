"""FastAPI routes for orders, shipments and tracking."""

import json

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    CancellationResponse,
    CancelOrderRequest,
    CreateOrderRequest,
    CreateOrderResponse,
    CreateShipmentRequest,
    OrderSummaryView,
    OrderView,
    RefundOrderRequest,
    RefundResponse,
    ShipmentResponse,
    StatusResponse,
    TrackingView,
    UpdateOrderStatusRequest,
)
from storefront.order.cancellation import CancelOrder, RefundOrder
from storefront.order.creation import CreateOrder
from storefront.order.deletion import DeleteOrder
from storefront.order.fulfillment import UpdateOrderStatus
from storefront.order.lookup import load_order
from storefront.projections.order_summary import OrderSummary
from storefront.shipment.creation import CreateShipment
from storefront.shipment.tracking import TrackOrder

router = APIRouter(prefix="/orders", tags=["orders"])


def order_view(order) -> OrderView:
    return OrderView(
        id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        status=order.status,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        items=[
            {
                "id": str(item.id),
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "store_id": str(item.store_id),
                "inventory_record_id": str(item.inventory_record_id) if item.inventory_record_id else None,
                "sku": item.sku,
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "line_total": item.line_total,
            }
            for item in order.items
        ],
        pricing={
            "subtotal": order.pricing.subtotal,
            "discount": order.pricing.discount,
            "tax": order.pricing.tax,
            "shipping_cost": order.pricing.shipping_cost,
            "total": order.pricing.total,
            "currency": order.pricing.currency,
        },
        refunded_amount=order.refunded_amount or 0.0,
        coupon_code=order.coupon_code,
        shipping_address=order.shipping_address.to_dict() if order.shipping_address else None,
        billing_address=order.billing_address.to_dict() if order.billing_address else None,
        shipping=(
            {
                "carrier": order.shipping.carrier,
                "service_type": order.shipping.service_type,
                "tracking_number": order.shipping.tracking_number,
                "shipment_id": str(order.shipping.shipment_id) if order.shipping.shipment_id else None,
                "label_url": order.shipping.label_url,
                "status": order.shipping.status,
                "estimated_delivery": order.shipping.estimated_delivery,
            }
            if order.shipping
            else None
        ),
        delivered_at=order.delivered_at,
        needs_review=bool(order.needs_review),
        review_reason=order.review_reason,
        cancellation_reason=order.cancellation_reason,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


@router.post("", status_code=201, response_model=CreateOrderResponse)
async def create_order(body: CreateOrderRequest) -> CreateOrderResponse:
    command = CreateOrder(
        customer_id=body.customer_id,
        items=json.dumps([item.model_dump() for item in body.items]) if body.items else None,
        shipping_address=json.dumps(body.shipping_address.model_dump()) if body.shipping_address else None,
        billing_address=json.dumps(body.billing_address.model_dump()) if body.billing_address else None,
        payment_method=body.payment_method,
        coupon_code=body.coupon_code,
        service_type=body.service_type,
    )
    result = current_domain.process(command, asynchronous=False)
    return CreateOrderResponse(**result)


@router.get("", response_model=list[OrderSummaryView])
async def list_orders(customer_id: str | None = Query(default=None)) -> list[OrderSummaryView]:
    repo = current_domain.repository_for(OrderSummary)
    if customer_id:
        summaries = repo._dao.query.filter(customer_id=customer_id).all().items
    else:
        summaries = repo._dao.query.all().items
    summaries = sorted(summaries, key=lambda s: s.created_at, reverse=True)
    return [
        OrderSummaryView(
            order_id=str(s.order_id),
            order_number=s.order_number,
            customer_id=str(s.customer_id),
            status=s.status,
            payment_status=s.payment_status,
            item_count=s.item_count or 0,
            total=s.total,
            refunded_amount=s.refunded_amount,
            currency=s.currency,
            needs_review=bool(s.needs_review),
            created_at=s.created_at,
        )
        for s in summaries
    ]


@router.get("/{order_id}", response_model=OrderView)
async def get_order(order_id: str) -> OrderView:
    return order_view(load_order(order_id))


@router.put("/{order_id}/cancel", response_model=CancellationResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest):
    command = CancelOrder(order_id=order_id, reason=body.reason, cancelled_by=body.cancelled_by)
    outcome = current_domain.process(command, asynchronous=False)
    response = CancellationResponse(
        order_id=outcome.order_id,
        status=outcome.status,
        payment_status=outcome.payment_status,
        needs_review=outcome.needs_review,
        review_reason=outcome.review_reason,
    )
    if outcome.needs_review:
        return JSONResponse(status_code=409, content=response.model_dump())
    return response


@router.put("/{order_id}/status", response_model=OrderView)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderView:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
    )
    current_domain.process(command, asynchronous=False)
    return order_view(load_order(order_id))


@router.post("/{order_id}/refund", response_model=RefundResponse)
async def refund_order(order_id: str, body: RefundOrderRequest) -> RefundResponse:
    command = RefundOrder(order_id=order_id, amount=body.amount, reason=body.reason)
    result = current_domain.process(command, asynchronous=False)
    return RefundResponse(**result)


@router.delete("/{order_id}", response_model=StatusResponse)
async def delete_order(order_id: str) -> StatusResponse:
    current_domain.process(DeleteOrder(order_id=order_id), asynchronous=False)
    return StatusResponse(status="deleted")


@router.post("/{order_id}/shipments", status_code=201, response_model=ShipmentResponse)
async def create_shipment(order_id: str, body: CreateShipmentRequest) -> ShipmentResponse:
    command = CreateShipment(
        order_id=order_id,
        carrier=body.carrier,
        service_type=body.service_type,
        package=json.dumps(body.package.model_dump()) if body.package else None,
    )
    result = current_domain.process(command, asynchronous=False)
    return ShipmentResponse(**result)


@router.get("/{order_id}/track", response_model=TrackingView)
async def track_order(order_id: str) -> TrackingView:
    payload = current_domain.process(TrackOrder(order_id=order_id), asynchronous=False)
    return TrackingView(**payload)
