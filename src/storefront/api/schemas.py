"""Pydantic request/response schemas for the Storefront API.

These are external contracts (anti-corruption layer), kept separate from the
internal Protean commands they are translated into.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    name: str | None = None
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str = Field(min_length=2, max_length=2)
    phone: str | None = None


class StockLineSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=0)


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderLineSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    store_id: str
    quantity: int = Field(ge=1)


class CreateOrderRequest(BaseModel):
    customer_id: str
    items: list[OrderLineSchema] | None = None
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    payment_method: str
    coupon_code: str | None = None
    service_type: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "user-001",
                    "shipping_address": {
                        "street": "123 Main St",
                        "city": "Springfield",
                        "state": "IL",
                        "postal_code": "62701",
                        "country": "US",
                    },
                    "payment_method": "credit_card",
                }
            ]
        }
    }


class CreateOrderResponse(BaseModel):
    order_id: str
    order_number: str
    payment_id: str | None = None
    client_secret: str | None = None
    total: float


class OrderItemView(BaseModel):
    id: str
    product_id: str
    variant_id: str | None = None
    store_id: str
    inventory_record_id: str | None = None
    sku: str
    name: str | None = None
    quantity: int
    unit_price: float
    line_total: float


class PricingView(BaseModel):
    subtotal: float
    discount: float
    tax: float
    shipping_cost: float
    total: float
    currency: str


class ShippingView(BaseModel):
    carrier: str | None = None
    service_type: str | None = None
    tracking_number: str | None = None
    shipment_id: str | None = None
    label_url: str | None = None
    status: str | None = None
    estimated_delivery: str | None = None


class OrderView(BaseModel):
    id: str
    order_number: str
    customer_id: str
    status: str
    payment_method: str | None = None
    payment_status: str
    items: list[OrderItemView]
    pricing: PricingView
    refunded_amount: float
    coupon_code: str | None = None
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    shipping: ShippingView | None = None
    delivered_at: datetime | None = None
    needs_review: bool = False
    review_reason: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderSummaryView(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    status: str
    payment_status: str | None = None
    item_count: int
    total: float | None = None
    refunded_amount: float | None = None
    currency: str | None = None
    needs_review: bool = False
    created_at: datetime | None = None


class CancelOrderRequest(BaseModel):
    reason: str
    cancelled_by: str = "customer"


class CancellationResponse(BaseModel):
    order_id: str
    status: str
    payment_status: str
    needs_review: bool = False
    review_reason: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: str
    carrier: str | None = None
    tracking_number: str | None = None


class RefundOrderRequest(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    reason: str


class RefundResponse(BaseModel):
    order_id: str
    refunded_amount: float
    payment_status: str
    status: str


# ---------------------------------------------------------------------------
# Shipments and tracking
# ---------------------------------------------------------------------------
class PackageSchema(BaseModel):
    weight: float = Field(ge=0, default=0)
    length: float = Field(ge=0, default=0)
    width: float = Field(ge=0, default=0)
    height: float = Field(ge=0, default=0)


class CreateShipmentRequest(BaseModel):
    carrier: str
    service_type: str | None = None
    package: PackageSchema | None = None


class ShipmentResponse(BaseModel):
    shipment_id: str
    tracking_number: str
    label_url: str | None = None
    estimated_delivery: str | None = None


class TrackingEventView(BaseModel):
    code: str
    status: str
    description: str | None = None
    location: str | None = None
    is_exception: bool
    occurred_at: str | None = None


class TrackingView(BaseModel):
    order_id: str
    tracking_number: str
    carrier: str
    status: str
    estimated_delivery: str | None = None
    events: list[TrackingEventView]
    stale: bool


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    store_id: str
    quantity: int = Field(ge=1, default=1)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=1)


class ApplyCouponRequest(BaseModel):
    coupon_code: str


class CartItemView(BaseModel):
    id: str
    product_id: str
    variant_id: str | None = None
    store_id: str
    sku: str
    name: str | None = None
    quantity: int
    unit_price: float
    line_total: float


class CartView(BaseModel):
    id: str
    user_id: str
    items: list[CartItemView]
    coupon_code: str | None = None
    destination: AddressSchema | None = None
    subtotal: float
    discount: float
    tax: float
    shipping_cost: float
    total: float
    free_shipping: bool
    shipping_zone: str | None = None
    currency: str


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
class ProvisionInventoryRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    store_id: str
    sku: str
    quantity: int = Field(ge=0, default=0)
    low_stock_threshold: int | None = Field(default=None, ge=0)
    alerts_enabled: bool = True
    provisioned_by: str = "system"


class InventoryIdResponse(BaseModel):
    record_id: str


class UpdateInventoryRequest(BaseModel):
    low_stock_threshold: int | None = Field(default=None, ge=0)
    alerts_enabled: bool | None = None
    discontinued: bool | None = None


class StockMovementView(BaseModel):
    movement_type: str
    delta: int
    quantity_after: int
    reason: str | None = None
    actor: str | None = None
    order_id: str | None = None
    reference: str | None = None
    occurred_at: datetime


class InventoryView(BaseModel):
    id: str
    product_id: str
    variant_id: str | None = None
    store_id: str
    sku: str
    quantity: int
    status: str
    low_stock_threshold: int | None = None
    alerts_enabled: bool | None = None
    movements: list[StockMovementView] = []


class MovementSummaryView(BaseModel):
    product_id: str
    variant_id: str | None = None
    movement_type: str
    total_delta: int
    movements: int


class AdjustInventoryRequest(BaseModel):
    adjustment_type: str
    quantity: int = Field(ge=0)
    reason: str
    adjusted_by: str


class ReconcileInventoryRequest(BaseModel):
    quantity: int = Field(ge=0)
    reason: str
    reconciled_by: str


class QuantityResponse(BaseModel):
    record_id: str
    quantity: int


class TransferStockRequest(BaseModel):
    from_store_id: str
    to_store_id: str
    items: list[StockLineSchema]
    transferred_by: str


class TransferResponse(BaseModel):
    reference: str


class StockCountRequest(BaseModel):
    store_id: str
    items: list[StockLineSchema]
    counted_by: str


class CountLineView(BaseModel):
    record_id: str
    sku: str
    system_quantity: int
    counted_quantity: int
    discrepancy: int


class ImportResponse(BaseModel):
    created: int
    updated: int
    errors: list[dict]


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class PaymentOutcomeResponse(BaseModel):
    payment_id: str
    order_id: str
    status: str
    failure_reason: str | None = None


class WebhookResponse(BaseModel):
    result: str


# ---------------------------------------------------------------------------
# Reference data: coupons and shipping
# ---------------------------------------------------------------------------
class CreateCouponRequest(BaseModel):
    code: str
    description: str | None = None
    coupon_type: str
    value: float = Field(ge=0, default=0)
    min_purchase: float = Field(ge=0, default=0)
    max_discount: float | None = Field(default=None, ge=0)
    starts_at: datetime
    ends_at: datetime
    usage_limit_per_coupon: int | None = Field(default=None, ge=1)
    usage_limit_per_user: int | None = Field(default=None, ge=1)
    product_ids: list[str] = []
    category_ids: list[str] = []


class CouponIdResponse(BaseModel):
    coupon_id: str


class ValidateCouponRequest(BaseModel):
    code: str
    subtotal: float = Field(ge=0)
    user_id: str | None = None
    product_ids: list[str] = []
    category_ids: list[str] = []


class CouponValidationResponse(BaseModel):
    code: str
    coupon_type: str
    discount: float
    free_shipping: bool


class ShippingRateSchema(BaseModel):
    min_weight: float = Field(ge=0)
    max_weight: float | None = None
    price: float = Field(ge=0)


class AdditionalFeeSchema(BaseModel):
    name: str
    fee_type: str
    amount: float = Field(ge=0)


class CreateShippingZoneRequest(BaseModel):
    name: str
    countries: list[str]
    states: list[str] = []
    rates: list[ShippingRateSchema]
    free_shipping_threshold: float | None = Field(default=None, ge=0)
    handling_fee: float = Field(ge=0, default=0)
    additional_fees: list[AdditionalFeeSchema] = []
    insurance_required: bool = False


class ZoneIdResponse(BaseModel):
    zone_id: str


class QuoteItemSchema(BaseModel):
    quantity: int = Field(ge=1)
    weight: float = Field(ge=0, default=0)
    length: float = Field(ge=0, default=0)
    width: float = Field(ge=0, default=0)
    height: float = Field(ge=0, default=0)


class DestinationSchema(BaseModel):
    country: str = Field(min_length=2, max_length=2)
    state: str | None = None


class ShippingQuoteRequest(BaseModel):
    items: list[QuoteItemSchema]
    destination: DestinationSchema
    subtotal: float = Field(ge=0)
    free_shipping: bool = False


class ShippingQuoteResponse(BaseModel):
    cost: float
    zone_id: str | None = None
    zone_name: str | None = None
    weight: float
    dimensional_weight: float
    free_shipping: bool
