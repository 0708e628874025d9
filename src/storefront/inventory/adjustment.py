"""Manual stock adjustment and reconciliation: commands and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.inventory.record import AdjustmentType, InventoryRecord


@storefront.command(part_of="InventoryRecord")
class AdjustInventory:
    record_id = Identifier(required=True)
    adjustment_type = String(required=True, choices=AdjustmentType)
    quantity = Integer(required=True, min_value=0)
    reason = String(required=True, max_length=500)
    adjusted_by = String(required=True, max_length=100)


@storefront.command(part_of="InventoryRecord")
class ReconcileInventory:
    """Overwrite the quantity after an external audit."""

    record_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)
    reason = String(required=True, max_length=500)
    reconciled_by = String(required=True, max_length=100)


@storefront.command_handler(part_of=InventoryRecord)
class InventoryAdjustmentHandler:
    @handle(AdjustInventory)
    def adjust(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.record_id)
        record.adjust(
            adjustment_type=command.adjustment_type,
            quantity=command.quantity,
            reason=command.reason,
            actor=command.adjusted_by,
        )
        repo.add(record)
        return record.quantity

    @handle(ReconcileInventory)
    def reconcile(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.record_id)
        record.reconcile(
            quantity=command.quantity,
            reason=command.reason,
            actor=command.reconciled_by,
        )
        repo.add(record)
        return record.quantity
