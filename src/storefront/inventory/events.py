"""Domain events for the InventoryRecord aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="InventoryRecord")
class InventoryProvisioned:
    """Stock was provisioned for a product (variant) at a store for the first time."""

    __version__ = 1

    record_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    store_id = Identifier(required=True)
    sku = String(required=True)
    quantity = Integer(required=True)
    provisioned_at = DateTime(required=True)


@storefront.event(part_of="InventoryRecord")
class StockMoved:
    """The on-hand quantity of a record changed."""

    __version__ = 1

    record_id = Identifier(required=True)
    store_id = Identifier(required=True)
    sku = String(required=True)
    movement_type = String(required=True)
    delta = Integer(required=True)
    quantity_after = Integer(required=True)
    reason = String()
    actor = String()
    order_id = Identifier()
    counterpart_store_id = Identifier()
    reference = String()
    occurred_at = DateTime(required=True)


@storefront.event(part_of="InventoryRecord")
class LowStockDetected:
    """Quantity fell to or below the alert threshold. Advisory only."""

    __version__ = 1

    record_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    store_id = Identifier(required=True)
    sku = String(required=True)
    quantity = Integer(required=True)
    threshold = Integer(required=True)
    detected_at = DateTime(required=True)


@storefront.event(part_of="InventoryRecord")
class InventoryDiscontinued:
    __version__ = 1

    record_id = Identifier(required=True)
    sku = String(required=True)
    discontinued_at = DateTime(required=True)
