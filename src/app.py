"""Storefront FastAPI application.

Processes commands synchronously over HTTP. Every request runs inside the
storefront domain context.

Usage:
    uvicorn app:app --host 0.0.0.0 --port 8000 --reload
"""

import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from storefront.api import (
    cart_router,
    inventory_router,
    orders_router,
    payments_router,
    reference_router,
)
from storefront.domain import storefront
from storefront.errors import InvariantViolation
from storefront.utils.logging import add_context, clear_context

# Every storefront module is imported through the routers above, so the
# domain registry is complete before init. PROTEAN_ENV selects the config
# overlay from domain.toml.
storefront.init()

logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Storefront API",
    description="Order lifecycle, inventory ledger, payments and shipments",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context and a request id for each request."""
    clear_context()
    add_context(request_id=request.headers.get("X-Request-Id") or str(uuid.uuid4()), path=request.url.path)
    with storefront.domain_context():
        response = await call_next(request)
    return response


register_exception_handlers(app)


@app.exception_handler(InvariantViolation)
async def invariant_violation_handler(request: Request, exc: InvariantViolation):
    logger.error("Invariant violated", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "Internal consistency error"})


app.include_router(orders_router)
app.include_router(cart_router)
app.include_router(inventory_router)
app.include_router(payments_router)
app.include_router(reference_router)


@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": storefront.name})
