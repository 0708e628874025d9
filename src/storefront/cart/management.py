"""Cart commands and handler.

Every mutating command runs the same sequence: load (or lazily create) the
user's cart, apply the change, recompute the totals, persist. Recompute
raises before anything is persisted, so a rejected change leaves the stored
cart exactly as it was.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.cart.cart import ShoppingCart
from storefront.cart.pricing import compute_totals
from storefront.catalog import get_catalog
from storefront.domain import storefront


@storefront.command(part_of="ShoppingCart")
class OpenCart:
    """Return the user's cart, creating it on first access."""

    user_id = Identifier(required=True)


@storefront.command(part_of="ShoppingCart")
class AddCartItem:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    store_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="ShoppingCart")
class UpdateCartItem:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="ShoppingCart")
class RemoveCartItem:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)


@storefront.command(part_of="ShoppingCart")
class ClearCart:
    user_id = Identifier(required=True)


@storefront.command(part_of="ShoppingCart")
class ApplyCartCoupon:
    user_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)


@storefront.command(part_of="ShoppingCart")
class RemoveCartCoupon:
    user_id = Identifier(required=True)


@storefront.command(part_of="ShoppingCart")
class SetCartDestination:
    """Set the shipping destination, which prices shipping."""

    user_id = Identifier(required=True)
    address = Text(required=True)  # JSON: address dict


def load_cart(user_id) -> ShoppingCart:
    """The user's cart, created (unsaved) if the user has none yet."""
    cart = current_domain.repository_for(ShoppingCart).for_user(user_id)
    return cart if cart is not None else ShoppingCart.create(user_id=user_id)


def recompute(cart: ShoppingCart) -> ShoppingCart:
    totals = compute_totals(
        cart.items,
        coupon_code=cart.coupon_code,
        destination=cart.destination,
        user_id=cart.user_id,
    )
    cart.apply_totals(totals)
    return cart


@storefront.command_handler(part_of=ShoppingCart)
class CartHandler:
    def _save(self, cart):
        recompute(cart)
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(OpenCart)
    def open_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.for_user(command.user_id)
        if cart is not None:
            return str(cart.id)
        return self._save(ShoppingCart.create(user_id=command.user_id))

    @handle(AddCartItem)
    def add_item(self, command):
        snapshot = get_catalog().lookup(command.product_id, command.variant_id)
        if snapshot is None:
            raise ValidationError({"product_id": ["Product not found in catalog"]})

        cart = load_cart(command.user_id)
        cart.add_item(snapshot, quantity=command.quantity, store_id=command.store_id)
        return self._save(cart)

    @handle(UpdateCartItem)
    def update_item(self, command):
        cart = load_cart(command.user_id)
        cart.update_item(command.item_id, command.quantity)
        return self._save(cart)

    @handle(RemoveCartItem)
    def remove_item(self, command):
        cart = load_cart(command.user_id)
        cart.remove_item(command.item_id)
        return self._save(cart)

    @handle(ClearCart)
    def clear(self, command):
        cart = load_cart(command.user_id)
        cart.clear()
        return self._save(cart)

    @handle(ApplyCartCoupon)
    def apply_coupon(self, command):
        cart = load_cart(command.user_id)
        cart.apply_coupon(command.coupon_code)
        return self._save(cart)

    @handle(RemoveCartCoupon)
    def remove_coupon(self, command):
        cart = load_cart(command.user_id)
        cart.remove_coupon()
        return self._save(cart)

    @handle(SetCartDestination)
    def set_destination(self, command):
        address = json.loads(command.address) if isinstance(command.address, str) else command.address
        cart = load_cart(command.user_id)
        cart.set_destination(address)
        return self._save(cart)
