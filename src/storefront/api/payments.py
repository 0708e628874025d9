"""FastAPI routes for payment confirmation and provider webhooks."""

import json

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from storefront.api.schemas import PaymentOutcomeResponse, WebhookResponse
from storefront.money import as_float, to_decimal
from storefront.payment.confirmation import ConfirmPayment
from storefront.payment.gateway import get_gateway
from storefront.payment.webhook import ProcessPaymentWebhook

MINOR_UNITS = 100

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/{payment_id}/confirm", response_model=PaymentOutcomeResponse)
async def confirm_payment(payment_id: str):
    outcome = current_domain.process(ConfirmPayment(payment_id=payment_id), asynchronous=False)
    response = PaymentOutcomeResponse(
        payment_id=outcome.payment_id,
        order_id=outcome.order_id,
        status=outcome.status,
        failure_reason=outcome.failure_reason,
    )
    if not outcome.succeeded:
        return JSONResponse(status_code=402, content=response.model_dump())
    return response


@router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(request: Request, stripe_signature: str = Header(default="")) -> WebhookResponse:
    """Apply a provider event. The signature covers the raw body, so it is checked before parsing.

    Payloads follow the Stripe event shape, so `amount_refunded` arrives in
    the smallest currency unit (cents) and is converted to major units here.
    """
    payload = await request.body()
    if not get_gateway().verify_webhook_signature(payload, stripe_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = json.loads(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Malformed webhook payload") from exc

    data = (event.get("data") or {}).get("object") or {}
    amount_refunded = data.get("amount_refunded")
    if amount_refunded is not None:
        amount_refunded = as_float(to_decimal(amount_refunded) / MINOR_UNITS)
    command = ProcessPaymentWebhook(
        event_id=event.get("id"),
        event_type=event.get("type"),
        intent_id=data.get("payment_intent") or data.get("id"),
        amount_refunded=amount_refunded,
        failure_reason=(data.get("last_payment_error") or {}).get("message"),
    )
    result = current_domain.process(command, asynchronous=False)
    return WebhookResponse(result=result)
