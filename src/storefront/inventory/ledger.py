"""Inventory ledger: multi-record stock operations.

Reservations for an order and transfers between stores touch several records.
They run as ordered steps inside one unit of work. When a step fails, the
records already changed in the same call are explicitly compensated before the
error propagates, so the ledger stays balanced even on storage that cannot
roll back.

Single-record writes are retried on optimistic version conflicts: the record
is reloaded and the guard re-evaluated against the fresh quantity.
"""

from dataclasses import dataclass, replace
from uuid import uuid4

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront import settings
from storefront.errors import InsufficientInventory, InsufficientStock
from storefront.inventory.record import InventoryRecord

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    """One (product, variant, store) quantity, as used by reservations and transfers."""

    product_id: str
    store_id: str
    quantity: int
    variant_id: str | None = None
    sku: str | None = None


@dataclass(frozen=True)
class CountResult:
    record_id: str
    sku: str
    system_quantity: int
    counted_quantity: int
    discrepancy: int


def _repo():
    return current_domain.repository_for(InventoryRecord)


def find(product_id, variant_id, store_id) -> InventoryRecord | None:
    return _repo().find_for(product_id, variant_id, store_id)


def _require(product_id, variant_id, store_id) -> InventoryRecord:
    record = find(product_id, variant_id, store_id)
    if record is None:
        raise ObjectNotFoundError(f"No inventory for product {product_id} (variant {variant_id}) at store {store_id}")
    return record


def _save_with_retry(record, mutate):
    """Apply ``mutate`` to ``record`` and persist, reloading on version conflicts."""
    attempts = settings.reservation_retry_limit()
    for attempt in range(1, attempts + 1):
        mutate(record)
        try:
            _repo().add(record)
            return record
        except ExpectedVersionError:
            if attempt == attempts:
                raise
            logger.warning(
                "Inventory version conflict, retrying",
                record_id=str(record.id),
                attempt=attempt,
            )
            record = _repo().get(record.id)
    return record


# ---------------------------------------------------------------------------
# Order reservations
# ---------------------------------------------------------------------------
def reserve_lines(lines: list[StockLine], order_id: str, actor: str = "system") -> list[tuple[InventoryRecord, int]]:
    """Reserve every line for an order, or none of them.

    Returns the (record, quantity) pairs that were reserved. On a shortfall,
    lines already reserved in this call are restored and InsufficientInventory
    is raised.
    """
    reserved: list[tuple[InventoryRecord, int]] = []

    for line in lines:
        try:
            record = _require(line.product_id, line.variant_id, line.store_id)
            record = _save_with_retry(record, lambda r, q=line.quantity: r.reserve(q, order_id=order_id, actor=actor))
        except (InsufficientStock, ObjectNotFoundError) as exc:
            _compensate(reserved, order_id, actor)
            available = exc.available if isinstance(exc, InsufficientStock) else 0
            logger.info(
                "Order reservation failed",
                order_id=str(order_id),
                sku=line.sku,
                requested=line.quantity,
                available=available,
            )
            raise InsufficientInventory(line.sku or line.product_id, available, line.quantity) from exc
        reserved.append((record, line.quantity))

    logger.info("Inventory reserved for order", order_id=str(order_id), lines=len(reserved))
    return reserved


def _compensate(reserved, order_id, actor):
    for record, quantity in reversed(reserved):
        _save_with_retry(
            record,
            lambda r, q=quantity: r.restore(q, order_id=order_id, actor=actor, reason="Reservation rolled back"),
        )


def restore_lines(lines: list[StockLine], order_id: str, actor: str = "system") -> None:
    """Put reserved stock back. Callers guard against restoring an order twice."""
    for line in lines:
        record = _require(line.product_id, line.variant_id, line.store_id)
        _save_with_retry(record, lambda r, q=line.quantity: r.restore(q, order_id=order_id, actor=actor))
    logger.info("Inventory restored for order", order_id=str(order_id), lines=len(lines))


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------
def _merge_lines(lines: list[StockLine]) -> list[StockLine]:
    """Collapse lines naming the same product and variant into one, summing quantities."""
    merged: dict[tuple, StockLine] = {}
    for line in lines:
        key = (str(line.product_id), str(line.variant_id) if line.variant_id else None)
        if key in merged:
            line = replace(merged[key], quantity=merged[key].quantity + line.quantity)
        merged[key] = line
    return list(merged.values())


def transfer(from_store_id, to_store_id, lines: list[StockLine], actor: str) -> str:
    """Move stock between stores. Fails as a whole if any source line is short.

    Returns the transfer reference shared by all paired movements.
    """
    if str(from_store_id) == str(to_store_id):
        raise ValidationError({"to_store_id": ["Source and destination stores must differ"]})
    if not lines:
        raise ValidationError({"items": ["At least one item is required"]})

    sources = []
    for line in _merge_lines(lines):
        source = _require(line.product_id, line.variant_id, from_store_id)
        if source.available < line.quantity:
            raise InsufficientStock(source.id, source.available, line.quantity)
        sources.append((line, source))

    reference = f"TRF-{uuid4().hex[:10].upper()}"
    applied: list[tuple[InventoryRecord, InventoryRecord, int]] = []
    try:
        for line, source in sources:
            source.transfer_out(line.quantity, to_store_id=to_store_id, reference=reference, actor=actor)
            _repo().add(source)

            destination = _repo().find_for(line.product_id, line.variant_id, to_store_id)
            if destination is None:
                destination = InventoryRecord.provision(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    store_id=to_store_id,
                    sku=source.sku,
                    low_stock_threshold=source.low_stock_alert.threshold if source.low_stock_alert else None,
                    actor=actor,
                )
            destination.transfer_in(line.quantity, from_store_id=from_store_id, reference=reference, actor=actor)
            _repo().add(destination)
            applied.append((source, destination, line.quantity))
    except (ValidationError, ExpectedVersionError):
        for source, destination, quantity in reversed(applied):
            destination.transfer_out(quantity, to_store_id=from_store_id, reference=reference, actor=actor)
            source.transfer_in(quantity, from_store_id=to_store_id, reference=reference, actor=actor)
            _repo().add(destination)
            _repo().add(source)
        raise

    logger.info(
        "Stock transferred",
        reference=reference,
        from_store_id=str(from_store_id),
        to_store_id=str(to_store_id),
        lines=len(applied),
    )
    return reference


# ---------------------------------------------------------------------------
# Counting
# ---------------------------------------------------------------------------
def count(store_id, counted: list[StockLine], actor: str) -> list[CountResult]:
    """Apply a physical count for a store. Only discrepancies change stock."""
    results = []
    for line in counted:
        record = _require(line.product_id, line.variant_id, store_id)
        system_quantity = record.quantity
        discrepancy = record.count(line.quantity, actor=actor)
        if discrepancy != 0:
            _repo().add(record)
        results.append(
            CountResult(
                record_id=str(record.id),
                sku=record.sku,
                system_quantity=system_quantity,
                counted_quantity=line.quantity,
                discrepancy=discrepancy,
            )
        )

    logger.info(
        "Stock count applied",
        store_id=str(store_id),
        lines=len(results),
        discrepancies=sum(1 for r in results if r.discrepancy),
    )
    return results
