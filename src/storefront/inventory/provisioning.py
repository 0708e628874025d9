"""Inventory provisioning and record maintenance: commands and handler."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.inventory.record import InventoryRecord
from storefront.projections.order_summary import OrderSummary, is_active_status

logger = structlog.get_logger(__name__)


@storefront.command(part_of="InventoryRecord")
class ProvisionInventory:
    """Create the stock record for a product (variant) at a store."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    store_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    quantity = Integer(default=0, min_value=0)
    low_stock_threshold = Integer(min_value=0)
    alerts_enabled = Boolean(default=True)
    provisioned_by = String(default="system", max_length=100)


@storefront.command(part_of="InventoryRecord")
class UpdateInventorySettings:
    record_id = Identifier(required=True)
    low_stock_threshold = Integer(min_value=0)
    alerts_enabled = Boolean()


@storefront.command(part_of="InventoryRecord")
class DiscontinueInventory:
    record_id = Identifier(required=True)


@storefront.command(part_of="InventoryRecord")
class DeleteInventory:
    record_id = Identifier(required=True)


@storefront.command_handler(part_of=InventoryRecord)
class InventoryProvisioningHandler:
    @handle(ProvisionInventory)
    def provision(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        if repo.find_for(command.product_id, command.variant_id, command.store_id) is not None:
            raise ValidationError({"store_id": ["Inventory already provisioned for this product at this store"]})

        record = InventoryRecord.provision(
            product_id=command.product_id,
            variant_id=command.variant_id,
            store_id=command.store_id,
            sku=command.sku,
            quantity=command.quantity or 0,
            low_stock_threshold=command.low_stock_threshold,
            alerts_enabled=command.alerts_enabled if command.alerts_enabled is not None else True,
            actor=command.provisioned_by,
        )
        repo.add(record)
        return str(record.id)

    @handle(UpdateInventorySettings)
    def update_settings(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.record_id)
        record.update_alert(
            threshold=command.low_stock_threshold,
            enabled=command.alerts_enabled,
        )
        repo.add(record)

    @handle(DiscontinueInventory)
    def discontinue(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.record_id)
        record.discontinue()
        repo.add(record)

    @handle(DeleteInventory)
    def delete(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.record_id)

        summaries = current_domain.repository_for(OrderSummary)._dao.query.all().items
        blocking = [
            s.order_number
            for s in summaries
            if is_active_status(s.status) and str(record.id) in s.inventory_record_id_list
        ]
        if blocking:
            raise ValidationError(
                {"record_id": [f"Inventory is referenced by active orders: {', '.join(sorted(blocking))}"]}
            )

        repo._dao.delete(record)
        logger.info("Inventory record deleted", record_id=str(record.id), sku=record.sku)
