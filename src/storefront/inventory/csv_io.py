"""CSV export and import of inventory records.

Import is an upsert keyed on (product_id, variant_id, store_id): existing
records are set to the imported quantity through a regular ``set``
adjustment, so the audit trail records the import; unknown keys are
provisioned. Bad rows are reported, not fatal.
"""

import csv
import io

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.inventory.record import AdjustmentType, InventoryRecord

logger = structlog.get_logger(__name__)

CSV_COLUMNS = ["product_id", "variant_id", "store_id", "sku", "quantity", "low_stock_threshold"]


def export_inventory_csv(records) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    for record in sorted(records, key=lambda r: (str(r.store_id), r.sku)):
        writer.writerow(
            {
                "product_id": record.product_id,
                "variant_id": record.variant_id or "",
                "store_id": record.store_id,
                "sku": record.sku,
                "quantity": record.quantity,
                "low_stock_threshold": record.low_stock_alert.threshold if record.low_stock_alert else "",
            }
        )
    return buffer.getvalue()


@storefront.command(part_of="InventoryRecord")
class ImportInventory:
    content = Text(required=True)
    imported_by = String(required=True, max_length=100)


def _int_or_none(value):
    value = (value or "").strip()
    return int(value) if value else None


@storefront.command_handler(part_of=InventoryRecord)
class ImportInventoryHandler:
    @handle(ImportInventory)
    def import_csv(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        reader = csv.DictReader(io.StringIO(command.content))
        missing = set(CSV_COLUMNS[:5]) - set(reader.fieldnames or [])
        if missing:
            raise ValidationError({"content": [f"Missing CSV columns: {', '.join(sorted(missing))}"]})

        created = updated = 0
        errors = []
        # Header is line 1
        for line_number, row in enumerate(reader, start=2):
            try:
                quantity = _int_or_none(row["quantity"])
                if quantity is None or quantity < 0:
                    raise ValidationError({"quantity": ["Quantity must be a non-negative integer"]})
                threshold = _int_or_none(row.get("low_stock_threshold"))
                variant_id = (row.get("variant_id") or "").strip() or None

                record = repo.find_for(row["product_id"], variant_id, row["store_id"])
                if record is None:
                    record = InventoryRecord.provision(
                        product_id=row["product_id"],
                        variant_id=variant_id,
                        store_id=row["store_id"],
                        sku=row["sku"],
                        quantity=quantity,
                        low_stock_threshold=threshold,
                        actor=command.imported_by,
                    )
                    created += 1
                else:
                    if record.quantity != quantity:
                        record.adjust(
                            AdjustmentType.SET.value,
                            quantity,
                            reason="CSV import",
                            actor=command.imported_by,
                        )
                    if threshold is not None:
                        record.update_alert(threshold=threshold)
                    updated += 1
                repo.add(record)
            except (ValidationError, ValueError, KeyError) as exc:
                message = exc.messages if isinstance(exc, ValidationError) else str(exc)
                errors.append({"line": line_number, "error": message})

        logger.info("Inventory CSV imported", created=created, updated=updated, errors=len(errors))
        return {"created": created, "updated": updated, "errors": errors}
