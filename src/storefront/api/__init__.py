from storefront.api.cart import router as cart_router
from storefront.api.inventory import router as inventory_router
from storefront.api.orders import router as orders_router
from storefront.api.payments import router as payments_router
from storefront.api.reference import router as reference_router

__all__ = [
    "cart_router",
    "inventory_router",
    "orders_router",
    "payments_router",
    "reference_router",
]
