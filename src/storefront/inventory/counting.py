"""Physical stock counts: command and handler."""

from protean import handle
from protean.fields import Identifier, String, Text

from storefront.domain import storefront
from storefront.inventory import ledger
from storefront.inventory.record import InventoryRecord
from storefront.inventory.transfer import parse_stock_lines


@storefront.command(part_of="InventoryRecord")
class RecordStockCount:
    store_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, variant_id?, quantity}
    counted_by = String(required=True, max_length=100)


@storefront.command_handler(part_of=InventoryRecord)
class StockCountHandler:
    @handle(RecordStockCount)
    def record_count(self, command):
        results = ledger.count(
            store_id=command.store_id,
            counted=parse_stock_lines(command.items, store_id=command.store_id),
            actor=command.counted_by,
        )
        return [
            {
                "record_id": r.record_id,
                "sku": r.sku,
                "system_quantity": r.system_quantity,
                "counted_quantity": r.counted_quantity,
                "discrepancy": r.discrepancy,
            }
            for r in results
        ]
