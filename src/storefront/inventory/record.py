"""InventoryRecord aggregate (CQRS): stock for one product (variant) at one store.

Every change to ``quantity`` goes through ``_record_movement``, which appends
exactly one StockMovement to the audit trail, refreshes ``last_update`` and
the derived ``status``, and raises a StockMoved event. Guards that protect
``quantity >= 0`` run before the movement is recorded, inside the same method
call, so a check and its write can never be separated.

Statuses:
    IN_STOCK     quantity above the low-stock threshold
    LOW_STOCK    0 < quantity <= threshold
    OUT_OF_STOCK quantity == 0
    DISCONTINUED no longer sold; behaves as zero available stock
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from storefront import settings
from storefront.domain import storefront
from storefront.errors import InsufficientStock
from storefront.inventory.events import (
    InventoryDiscontinued,
    InventoryProvisioned,
    LowStockDetected,
    StockMoved,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class InventoryStatus(Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class MovementType(Enum):
    INITIAL = "initial"
    ORDER_RESERVE = "order_reserve"
    ORDER_RESTORE = "order_restore"
    ADJUSTMENT_ADD = "adjustment_add"
    ADJUSTMENT_REMOVE = "adjustment_remove"
    ADJUSTMENT_SET = "adjustment_set"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    STOCK_COUNT = "stock_count"
    RECONCILIATION = "reconciliation"


class AdjustmentType(Enum):
    ADD = "add"
    REMOVE = "remove"
    SET = "set"


_ADJUSTMENT_MOVEMENTS = {
    AdjustmentType.ADD: MovementType.ADJUSTMENT_ADD,
    AdjustmentType.REMOVE: MovementType.ADJUSTMENT_REMOVE,
    AdjustmentType.SET: MovementType.ADJUSTMENT_SET,
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="InventoryRecord")
class LowStockAlert:
    threshold = Integer(default=5, min_value=0)
    enabled = Boolean(default=True)


@storefront.value_object(part_of="InventoryRecord")
class LastUpdate:
    """The most recent quantity change, kept alongside the full trail for quick reads."""

    delta = Integer(default=0)
    reason_code = String(max_length=50)
    actor = String(max_length=100)
    timestamp = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="InventoryRecord")
class StockMovement:
    movement_type = String(required=True, choices=MovementType)
    delta = Integer(required=True)
    quantity_after = Integer(required=True, min_value=0)
    reason = String(max_length=500)
    actor = String(max_length=100)
    order_id = Identifier()
    counterpart_store_id = Identifier()
    reference = String(max_length=100)
    occurred_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class InventoryRecord:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    store_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    quantity = Integer(default=0, min_value=0)
    low_stock_alert = ValueObject(LowStockAlert)
    last_update = ValueObject(LastUpdate)
    status = String(choices=InventoryStatus, default=InventoryStatus.OUT_OF_STOCK.value)
    movements = HasMany(StockMovement)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def quantity_must_not_be_negative(self):
        if self.quantity is not None and self.quantity < 0:
            raise ValidationError({"quantity": ["Inventory quantity cannot be negative"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def provision(
        cls,
        product_id,
        store_id,
        sku,
        quantity=0,
        variant_id=None,
        low_stock_threshold=None,
        alerts_enabled=True,
        actor="system",
    ):
        """Create the record the first time stock is provisioned for a store."""
        if quantity < 0:
            raise ValidationError({"quantity": ["Initial quantity cannot be negative"]})

        threshold = settings.low_stock_threshold() if low_stock_threshold is None else low_stock_threshold
        now = datetime.now(UTC)
        record = cls(
            product_id=product_id,
            variant_id=variant_id,
            store_id=store_id,
            sku=sku,
            quantity=0,
            low_stock_alert=LowStockAlert(threshold=threshold, enabled=alerts_enabled),
            created_at=now,
            updated_at=now,
        )
        record._record_movement(MovementType.INITIAL, quantity, reason="Initial stock", actor=actor)
        record.raise_(
            InventoryProvisioned(
                record_id=str(record.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                store_id=str(store_id),
                sku=sku,
                quantity=quantity,
                provisioned_at=now,
            )
        )
        return record

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def is_discontinued(self):
        return self.status == InventoryStatus.DISCONTINUED.value

    @property
    def available(self):
        return 0 if self.is_discontinued else self.quantity

    def matches(self, product_id, variant_id, store_id):
        return (
            str(self.product_id) == str(product_id)
            and str(self.store_id) == str(store_id)
            and (str(self.variant_id) if self.variant_id else None) == (str(variant_id) if variant_id else None)
        )

    def _refresh_status(self):
        if self.is_discontinued:
            return
        threshold = self.low_stock_alert.threshold if self.low_stock_alert else 0
        if self.quantity == 0:
            self.status = InventoryStatus.OUT_OF_STOCK.value
        elif self.quantity <= threshold:
            self.status = InventoryStatus.LOW_STOCK.value
        else:
            self.status = InventoryStatus.IN_STOCK.value

    def _check_low_stock(self):
        """Raise LowStockDetected if quantity is at or below an enabled threshold."""
        alert = self.low_stock_alert
        if alert and alert.enabled and self.quantity <= alert.threshold:
            self.raise_(
                LowStockDetected(
                    record_id=str(self.id),
                    product_id=str(self.product_id),
                    variant_id=str(self.variant_id) if self.variant_id else None,
                    store_id=str(self.store_id),
                    sku=self.sku,
                    quantity=self.quantity,
                    threshold=alert.threshold,
                    detected_at=datetime.now(UTC),
                )
            )

    def _assert_positive(self, quantity):
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

    def _assert_available(self, quantity):
        if self.available < quantity:
            raise InsufficientStock(self.id, self.available, quantity)

    def _record_movement(
        self,
        movement_type,
        new_quantity,
        reason=None,
        actor=None,
        order_id=None,
        counterpart_store_id=None,
        reference=None,
    ):
        delta = new_quantity - (self.quantity or 0)
        now = datetime.now(UTC)

        self.quantity = new_quantity
        self.add_movements(
            StockMovement(
                movement_type=movement_type.value,
                delta=delta,
                quantity_after=new_quantity,
                reason=reason,
                actor=actor,
                order_id=order_id,
                counterpart_store_id=counterpart_store_id,
                reference=reference,
                occurred_at=now,
            )
        )
        self.last_update = LastUpdate(
            delta=delta,
            reason_code=movement_type.value,
            actor=actor,
            timestamp=now,
        )
        self._refresh_status()
        self.updated_at = now

        self.raise_(
            StockMoved(
                record_id=str(self.id),
                store_id=str(self.store_id),
                sku=self.sku,
                movement_type=movement_type.value,
                delta=delta,
                quantity_after=new_quantity,
                reason=reason,
                actor=actor,
                order_id=str(order_id) if order_id else None,
                counterpart_store_id=str(counterpart_store_id) if counterpart_store_id else None,
                reference=reference,
                occurred_at=now,
            )
        )
        if delta < 0:
            self._check_low_stock()

    # -------------------------------------------------------------------
    # Order reservations
    # -------------------------------------------------------------------
    def reserve(self, quantity, order_id, actor="system"):
        """Take stock for an order. Fails without side effects if stock is short."""
        self._assert_positive(quantity)
        self._assert_available(quantity)
        self._record_movement(
            MovementType.ORDER_RESERVE,
            self.quantity - quantity,
            reason="Reserved for order",
            actor=actor,
            order_id=order_id,
        )

    def restore(self, quantity, order_id, actor="system", reason="Restored from order"):
        """Return previously reserved stock. Always succeeds."""
        self._assert_positive(quantity)
        self._record_movement(
            MovementType.ORDER_RESTORE,
            self.quantity + quantity,
            reason=reason,
            actor=actor,
            order_id=order_id,
        )

    # -------------------------------------------------------------------
    # Manual adjustment
    # -------------------------------------------------------------------
    def adjust(self, adjustment_type, quantity, reason, actor):
        if not reason:
            raise ValidationError({"reason": ["Reason is required for stock adjustments"]})

        try:
            kind = AdjustmentType(adjustment_type)
        except ValueError:
            raise ValidationError({"adjustment_type": [f"Unknown adjustment type: {adjustment_type}"]}) from None

        if kind == AdjustmentType.SET:
            if quantity is None or quantity < 0:
                raise ValidationError({"quantity": ["Quantity cannot be negative"]})
            new_quantity = quantity
        else:
            self._assert_positive(quantity)
            if kind == AdjustmentType.ADD:
                new_quantity = self.quantity + quantity
            else:
                if self.quantity < quantity:
                    raise InsufficientStock(self.id, self.quantity, quantity)
                new_quantity = self.quantity - quantity

        self._record_movement(_ADJUSTMENT_MOVEMENTS[kind], new_quantity, reason=reason, actor=actor)

    # -------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------
    def transfer_out(self, quantity, to_store_id, reference, actor):
        self._assert_positive(quantity)
        self._assert_available(quantity)
        self._record_movement(
            MovementType.TRANSFER_OUT,
            self.quantity - quantity,
            reason=f"Transfer to store {to_store_id}",
            actor=actor,
            counterpart_store_id=to_store_id,
            reference=reference,
        )

    def transfer_in(self, quantity, from_store_id, reference, actor):
        self._assert_positive(quantity)
        self._record_movement(
            MovementType.TRANSFER_IN,
            self.quantity + quantity,
            reason=f"Transfer from store {from_store_id}",
            actor=actor,
            counterpart_store_id=from_store_id,
            reference=reference,
        )

    # -------------------------------------------------------------------
    # Counting and reconciliation
    # -------------------------------------------------------------------
    def count(self, counted_quantity, actor):
        """Apply a physical count. Returns the discrepancy (counted - system)."""
        if counted_quantity is None or counted_quantity < 0:
            raise ValidationError({"counted_quantity": ["Counted quantity cannot be negative"]})

        system_quantity = self.quantity
        discrepancy = counted_quantity - system_quantity
        if discrepancy != 0:
            self._record_movement(
                MovementType.STOCK_COUNT,
                counted_quantity,
                reason=f"Stock count: counted {counted_quantity}, system {system_quantity}",
                actor=actor,
            )
        return discrepancy

    def reconcile(self, quantity, reason, actor):
        if not reason:
            raise ValidationError({"reason": ["Reason is required for reconciliation"]})
        if quantity is None or quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})
        self._record_movement(MovementType.RECONCILIATION, quantity, reason=reason, actor=actor)

    # -------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------
    def update_alert(self, threshold=None, enabled=None):
        current = self.low_stock_alert or LowStockAlert()
        self.low_stock_alert = LowStockAlert(
            threshold=current.threshold if threshold is None else threshold,
            enabled=current.enabled if enabled is None else enabled,
        )
        self._refresh_status()
        self.updated_at = datetime.now(UTC)

    def discontinue(self):
        if self.is_discontinued:
            raise ValidationError({"status": ["Inventory record is already discontinued"]})

        now = datetime.now(UTC)
        self.status = InventoryStatus.DISCONTINUED.value
        self.updated_at = now
        self.raise_(
            InventoryDiscontinued(
                record_id=str(self.id),
                sku=self.sku,
                discontinued_at=now,
            )
        )
