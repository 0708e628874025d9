"""FastAPI routes for the inventory ledger."""

import json
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Query, Request
from fastapi.responses import PlainTextResponse
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AdjustInventoryRequest,
    CountLineView,
    ImportResponse,
    InventoryIdResponse,
    InventoryView,
    MovementSummaryView,
    ProvisionInventoryRequest,
    QuantityResponse,
    ReconcileInventoryRequest,
    StatusResponse,
    StockCountRequest,
    StockMovementView,
    TransferResponse,
    TransferStockRequest,
    UpdateInventoryRequest,
)
from storefront.inventory.adjustment import AdjustInventory, ReconcileInventory
from storefront.inventory.counting import RecordStockCount
from storefront.inventory.csv_io import ImportInventory, export_inventory_csv
from storefront.inventory.provisioning import (
    DeleteInventory,
    DiscontinueInventory,
    ProvisionInventory,
    UpdateInventorySettings,
)
from storefront.inventory.record import InventoryRecord
from storefront.inventory.reports import movement_history, movement_summary
from storefront.inventory.transfer import TransferStock

router = APIRouter(prefix="/inventory", tags=["inventory"])


def movement_view(movement) -> StockMovementView:
    return StockMovementView(
        movement_type=movement.movement_type,
        delta=movement.delta,
        quantity_after=movement.quantity_after,
        reason=movement.reason,
        actor=movement.actor,
        order_id=str(movement.order_id) if movement.order_id else None,
        reference=movement.reference,
        occurred_at=movement.occurred_at,
    )


def inventory_view(record, with_movements=False) -> InventoryView:
    movements = [movement_view(m) for m in movement_history(record)] if with_movements else []
    return InventoryView(
        id=str(record.id),
        product_id=str(record.product_id),
        variant_id=str(record.variant_id) if record.variant_id else None,
        store_id=str(record.store_id),
        sku=record.sku,
        quantity=record.quantity,
        status=record.status,
        low_stock_threshold=record.low_stock_alert.threshold if record.low_stock_alert else None,
        alerts_enabled=record.low_stock_alert.enabled if record.low_stock_alert else None,
        movements=movements,
    )


def _repo():
    return current_domain.repository_for(InventoryRecord)


@router.post("", status_code=201, response_model=InventoryIdResponse)
async def provision_inventory(body: ProvisionInventoryRequest) -> InventoryIdResponse:
    command = ProvisionInventory(**body.model_dump())
    result = current_domain.process(command, asynchronous=False)
    return InventoryIdResponse(record_id=result)


@router.get("", response_model=list[InventoryView])
async def list_inventory(store_id: str | None = Query(default=None)) -> list[InventoryView]:
    records = _repo().for_store(store_id) if store_id else _repo().everything()
    return [inventory_view(r) for r in sorted(records, key=lambda r: (str(r.store_id), r.sku))]


@router.get("/low-stock", response_model=list[InventoryView])
async def list_low_stock(store_id: str | None = Query(default=None)) -> list[InventoryView]:
    return [inventory_view(r) for r in _repo().low_stock(store_id)]


@router.get("/out-of-stock", response_model=list[InventoryView])
async def list_out_of_stock(store_id: str | None = Query(default=None)) -> list[InventoryView]:
    return [inventory_view(r) for r in _repo().out_of_stock(store_id)]


@router.get("/movements", response_model=list[MovementSummaryView])
async def movement_report(
    since: datetime | None = Query(default=None),
    until: datetime | None = Query(default=None),
    store_id: str | None = Query(default=None),
) -> list[MovementSummaryView]:
    """Net stock moved per product and movement type within a time window."""
    records = _repo().for_store(store_id) if store_id else _repo().everything()
    return [MovementSummaryView(**asdict(summary)) for summary in movement_summary(records, since, until)]


@router.get("/export", response_class=PlainTextResponse)
async def export_inventory(store_id: str | None = Query(default=None)) -> PlainTextResponse:
    records = _repo().for_store(store_id) if store_id else _repo().everything()
    return PlainTextResponse(
        export_inventory_csv(records),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=inventory.csv"},
    )


@router.post("/import", response_model=ImportResponse)
async def import_inventory(request: Request, imported_by: str = Query(default="system")) -> ImportResponse:
    content = (await request.body()).decode("utf-8-sig")
    result = current_domain.process(ImportInventory(content=content, imported_by=imported_by), asynchronous=False)
    return ImportResponse(**result)


@router.post("/transfer", response_model=TransferResponse)
async def transfer_stock(body: TransferStockRequest) -> TransferResponse:
    command = TransferStock(
        from_store_id=body.from_store_id,
        to_store_id=body.to_store_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        transferred_by=body.transferred_by,
    )
    return TransferResponse(reference=current_domain.process(command, asynchronous=False))


@router.post("/count", response_model=list[CountLineView])
async def record_count(body: StockCountRequest) -> list[CountLineView]:
    command = RecordStockCount(
        store_id=body.store_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        counted_by=body.counted_by,
    )
    return [CountLineView(**line) for line in current_domain.process(command, asynchronous=False)]


@router.get("/{record_id}", response_model=InventoryView)
async def get_inventory(record_id: str) -> InventoryView:
    return inventory_view(_repo().get(record_id), with_movements=True)


@router.get("/{record_id}/movements", response_model=list[StockMovementView])
async def list_movements(
    record_id: str,
    movement_type: str | None = Query(default=None),
    since: datetime | None = Query(default=None),
    until: datetime | None = Query(default=None),
) -> list[StockMovementView]:
    record = _repo().get(record_id)
    return [movement_view(m) for m in movement_history(record, movement_type, since, until)]


@router.put("/{record_id}", response_model=InventoryView)
async def update_inventory(record_id: str, body: UpdateInventoryRequest) -> InventoryView:
    if body.low_stock_threshold is not None or body.alerts_enabled is not None:
        current_domain.process(
            UpdateInventorySettings(
                record_id=record_id,
                low_stock_threshold=body.low_stock_threshold,
                alerts_enabled=body.alerts_enabled,
            ),
            asynchronous=False,
        )
    if body.discontinued:
        current_domain.process(DiscontinueInventory(record_id=record_id), asynchronous=False)
    return inventory_view(_repo().get(record_id))


@router.delete("/{record_id}", response_model=StatusResponse)
async def delete_inventory(record_id: str) -> StatusResponse:
    current_domain.process(DeleteInventory(record_id=record_id), asynchronous=False)
    return StatusResponse(status="deleted")


@router.post("/{record_id}/adjust", response_model=QuantityResponse)
async def adjust_inventory(record_id: str, body: AdjustInventoryRequest) -> QuantityResponse:
    command = AdjustInventory(record_id=record_id, **body.model_dump())
    quantity = current_domain.process(command, asynchronous=False)
    return QuantityResponse(record_id=record_id, quantity=quantity)


@router.post("/{record_id}/reconcile", response_model=QuantityResponse)
async def reconcile_inventory(record_id: str, body: ReconcileInventoryRequest) -> QuantityResponse:
    command = ReconcileInventory(record_id=record_id, **body.model_dump())
    quantity = current_domain.process(command, asynchronous=False)
    return QuantityResponse(record_id=record_id, quantity=quantity)
