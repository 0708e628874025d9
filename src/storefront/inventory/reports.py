"""Read-side views over stock movement history.

Movements are stored on each record, so both views work from records already
loaded by the caller. Window bounds are inclusive.
"""

from dataclasses import dataclass
from datetime import UTC


@dataclass(frozen=True)
class MovementSummary:
    product_id: str
    variant_id: str | None
    movement_type: str
    total_delta: int
    movements: int


def _aware(moment):
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=UTC)


def _within(movement, since, until):
    occurred_at = _aware(movement.occurred_at)
    if since is not None and occurred_at < since:
        return False
    return not (until is not None and occurred_at > until)


def movement_history(record, movement_type=None, since=None, until=None) -> list:
    """Movements of one record in the window, oldest first."""
    since, until = _aware(since), _aware(until)
    return [
        m
        for m in sorted(record.movements, key=lambda m: _aware(m.occurred_at))
        if (movement_type is None or m.movement_type == movement_type) and _within(m, since, until)
    ]


def movement_summary(records, since=None, until=None) -> list[MovementSummary]:
    """Net quantity moved per product and movement type across ``records``."""
    since, until = _aware(since), _aware(until)
    totals: dict[tuple, list[int]] = {}
    for record in records:
        variant_id = str(record.variant_id) if record.variant_id else None
        for movement in record.movements:
            if not _within(movement, since, until):
                continue
            bucket = totals.setdefault((str(record.product_id), variant_id, movement.movement_type), [0, 0])
            bucket[0] += movement.delta
            bucket[1] += 1

    return [
        MovementSummary(
            product_id=product_id,
            variant_id=variant_id,
            movement_type=movement_type,
            total_delta=total,
            movements=count,
        )
        for (product_id, variant_id, movement_type), (total, count) in sorted(
            totals.items(), key=lambda item: (item[0][0], item[0][1] or "", item[0][2])
        )
    ]
