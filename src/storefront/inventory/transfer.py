"""Stock transfer between stores: command and handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text

from storefront.domain import storefront
from storefront.inventory import ledger
from storefront.inventory.record import InventoryRecord


@storefront.command(part_of="InventoryRecord")
class TransferStock:
    from_store_id = Identifier(required=True)
    to_store_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, variant_id?, quantity}
    transferred_by = String(required=True, max_length=100)


def parse_stock_lines(raw, store_id=None):
    """Turn a JSON list of ``{product_id, variant_id?, quantity}`` into StockLines."""
    items = json.loads(raw) if isinstance(raw, str) else raw
    lines = []
    for item in items or []:
        quantity = item.get("quantity")
        if quantity is None or int(quantity) < 0:
            raise ValidationError({"items": ["Each item needs a non-negative quantity"]})
        lines.append(
            ledger.StockLine(
                product_id=str(item["product_id"]),
                variant_id=str(item["variant_id"]) if item.get("variant_id") else None,
                store_id=str(store_id or item.get("store_id")),
                quantity=int(quantity),
            )
        )
    return lines


@storefront.command_handler(part_of=InventoryRecord)
class TransferStockHandler:
    @handle(TransferStock)
    def transfer(self, command):
        lines = parse_stock_lines(command.items, store_id=command.from_store_id)
        if any(line.quantity == 0 for line in lines):
            raise ValidationError({"items": ["Transfer quantities must be positive"]})
        return ledger.transfer(
            from_store_id=command.from_store_id,
            to_store_id=command.to_store_id,
            lines=lines,
            actor=command.transferred_by,
        )
