"""ShoppingCart aggregate (CQRS): one active cart per user.

Item lines carry a price and shipping snapshot taken from the catalog when
the line was added. The money fields (subtotal, discount, tax, shipping_cost,
total) are derived: only ``apply_totals`` writes them, with a CartTotals
computed by ``storefront.cart.pricing``.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from storefront import settings
from storefront.cart.events import CartCleared, CartCouponApplied, CartItemAdded, CartItemRemoved
from storefront.cart.pricing import line_total
from storefront.coupon.coupon import normalize_code
from storefront.domain import storefront
from storefront.shared.address import Address


@storefront.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    store_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    name = String(max_length=255)
    category_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    line_total = Float(default=0.0)
    weight = Float(default=0.0)
    length = Float(default=0.0)
    width = Float(default=0.0)
    height = Float(default=0.0)

    def same_line(self, product_id, variant_id, store_id):
        return (
            str(self.product_id) == str(product_id)
            and (str(self.variant_id) if self.variant_id else None) == (str(variant_id) if variant_id else None)
            and str(self.store_id) == str(store_id)
        )


@storefront.aggregate
class ShoppingCart:
    user_id = Identifier(required=True)
    items = HasMany(CartItem)
    coupon_code = String(max_length=50)
    destination = ValueObject(Address)
    subtotal = Float(default=0.0)
    discount = Float(default=0.0)
    tax = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    total = Float(default=0.0)
    free_shipping = Boolean(default=False)
    shipping_zone = String(max_length=100)
    currency = String(max_length=3, default="USD")
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(
            user_id=user_id,
            currency=settings.default_currency(),
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})
        return item

    def add_item(self, snapshot, quantity, store_id):
        """Add a catalog product to the cart, merging with an existing identical line."""
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = next(
            (i for i in self.items if i.same_line(snapshot.product_id, snapshot.variant_id, store_id)),
            None,
        )
        if existing:
            existing.quantity += quantity
            existing.line_total = float(line_total(existing.unit_price, existing.quantity))
            item_id = str(existing.id)
        else:
            item = CartItem(
                product_id=snapshot.product_id,
                variant_id=snapshot.variant_id,
                store_id=store_id,
                sku=snapshot.sku,
                name=snapshot.name,
                category_id=snapshot.category_id,
                quantity=quantity,
                unit_price=snapshot.price,
                line_total=float(line_total(snapshot.price, quantity)),
                weight=snapshot.weight,
                length=snapshot.length,
                width=snapshot.width,
                height=snapshot.height,
            )
            self.add_items(item)
            item_id = str(item.id)

        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                product_id=str(snapshot.product_id),
                variant_id=snapshot.variant_id,
                quantity=quantity,
            )
        )
        return item_id

    def update_item(self, item_id, quantity):
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        item = self._find_item(item_id)
        item.quantity = quantity
        item.line_total = float(line_total(item.unit_price, quantity))
        self.updated_at = datetime.now(UTC)

    def remove_item(self, item_id):
        item = self._find_item(item_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def clear(self, reason="Cleared by user"):
        """Empty the cart and drop its coupon."""
        for item in list(self.items):
            self.remove_items(item)
        self.coupon_code = None
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCleared(cart_id=str(self.id), reason=reason))

    # -------------------------------------------------------------------
    # Coupon and destination
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon_code):
        code = normalize_code(coupon_code)
        if not code:
            raise ValidationError({"coupon_code": ["Coupon code is required"]})
        self.coupon_code = code
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCouponApplied(cart_id=str(self.id), coupon_code=code))

    def remove_coupon(self):
        if not self.coupon_code:
            raise ValidationError({"coupon_code": ["No coupon applied"]})
        self.coupon_code = None
        self.updated_at = datetime.now(UTC)

    def set_destination(self, address):
        self.destination = address if isinstance(address, Address) else Address(**address)
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Derived totals
    # -------------------------------------------------------------------
    def apply_totals(self, totals):
        self.subtotal = float(totals.subtotal)
        self.discount = float(totals.discount)
        self.tax = float(totals.tax)
        self.shipping_cost = float(totals.shipping_cost)
        self.total = float(totals.total)
        self.free_shipping = totals.free_shipping
        self.shipping_zone = totals.shipping_zone

    @property
    def is_empty(self):
        return not self.items
