"""FastAPI routes for the shopping cart.

The acting user arrives in the ``X-User-Id`` header. Every endpoint answers
with the recomputed cart.
"""

import json

from fastapi import APIRouter, Header
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AddCartItemRequest,
    AddressSchema,
    ApplyCouponRequest,
    CartView,
    UpdateCartItemRequest,
)
from storefront.cart.cart import ShoppingCart
from storefront.cart.management import (
    AddCartItem,
    ApplyCartCoupon,
    ClearCart,
    OpenCart,
    RemoveCartCoupon,
    RemoveCartItem,
    SetCartDestination,
    UpdateCartItem,
)

router = APIRouter(prefix="/cart", tags=["cart"])


def cart_view(cart_id) -> CartView:
    cart = current_domain.repository_for(ShoppingCart).get(cart_id)
    return CartView(
        id=str(cart.id),
        user_id=str(cart.user_id),
        items=[
            {
                "id": str(item.id),
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "store_id": str(item.store_id),
                "sku": item.sku,
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "line_total": item.line_total,
            }
            for item in cart.items
        ],
        coupon_code=cart.coupon_code,
        destination=cart.destination.to_dict() if cart.destination else None,
        subtotal=cart.subtotal,
        discount=cart.discount,
        tax=cart.tax,
        shipping_cost=cart.shipping_cost,
        total=cart.total,
        free_shipping=bool(cart.free_shipping),
        shipping_zone=cart.shipping_zone,
        currency=cart.currency,
    )


def _run(command) -> CartView:
    return cart_view(current_domain.process(command, asynchronous=False))


@router.get("", response_model=CartView)
async def get_cart(x_user_id: str = Header()) -> CartView:
    return _run(OpenCart(user_id=x_user_id))


@router.post("/items", response_model=CartView)
async def add_item(body: AddCartItemRequest, x_user_id: str = Header()) -> CartView:
    return _run(
        AddCartItem(
            user_id=x_user_id,
            product_id=body.product_id,
            variant_id=body.variant_id,
            store_id=body.store_id,
            quantity=body.quantity,
        )
    )


@router.put("/items/{item_id}", response_model=CartView)
async def update_item(item_id: str, body: UpdateCartItemRequest, x_user_id: str = Header()) -> CartView:
    return _run(UpdateCartItem(user_id=x_user_id, item_id=item_id, quantity=body.quantity))


@router.delete("/items/{item_id}", response_model=CartView)
async def remove_item(item_id: str, x_user_id: str = Header()) -> CartView:
    return _run(RemoveCartItem(user_id=x_user_id, item_id=item_id))


@router.delete("", response_model=CartView)
async def clear_cart(x_user_id: str = Header()) -> CartView:
    return _run(ClearCart(user_id=x_user_id))


@router.post("/coupon", response_model=CartView)
async def apply_coupon(body: ApplyCouponRequest, x_user_id: str = Header()) -> CartView:
    return _run(ApplyCartCoupon(user_id=x_user_id, coupon_code=body.coupon_code))


@router.delete("/coupon", response_model=CartView)
async def remove_coupon(x_user_id: str = Header()) -> CartView:
    return _run(RemoveCartCoupon(user_id=x_user_id))


@router.put("/shipping", response_model=CartView)
async def set_shipping(body: AddressSchema, x_user_id: str = Header()) -> CartView:
    return _run(SetCartDestination(user_id=x_user_id, address=json.dumps(body.model_dump())))
