"""Repository for InventoryRecord with lookups by natural key."""

from storefront.domain import storefront
from storefront.inventory.record import InventoryRecord, InventoryStatus


@storefront.repository(part_of=InventoryRecord)
class InventoryRecordRepository:
    def find_for(self, product_id, variant_id, store_id) -> InventoryRecord | None:
        """Find the record for a (product, variant, store) key, if provisioned."""
        candidates = self._dao.query.filter(product_id=str(product_id), store_id=str(store_id)).all().items
        return next((r for r in candidates if r.matches(product_id, variant_id, store_id)), None)

    def for_store(self, store_id) -> list[InventoryRecord]:
        return self._dao.query.filter(store_id=str(store_id)).all().items

    def everything(self) -> list[InventoryRecord]:
        return self._dao.query.all().items

    def low_stock(self, store_id=None) -> list[InventoryRecord]:
        """Records with alerts enabled whose quantity is at or below threshold."""
        records = self.for_store(store_id) if store_id else self.everything()
        return [
            r
            for r in records
            if r.status != InventoryStatus.DISCONTINUED.value
            and r.low_stock_alert
            and r.low_stock_alert.enabled
            and r.quantity <= r.low_stock_alert.threshold
        ]

    def out_of_stock(self, store_id=None) -> list[InventoryRecord]:
        """Records with nothing on hand, least recently changed first."""
        records = self.for_store(store_id) if store_id else self.everything()
        return sorted((r for r in records if r.quantity == 0), key=lambda r: r.updated_at)
