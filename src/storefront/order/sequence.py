"""Order numbering: ``ORD-{YY}{MM}-{seq:04d}`` from a per-month counter.

Each month has its own OrderSequence record keyed by the ``YYMM`` period.
Allocating a number increments the counter and persists it under the
optimistic version check, retrying on conflicts, so two orders never share a
number even when created concurrently.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from storefront import settings
from storefront.domain import storefront

logger = structlog.get_logger(__name__)


@storefront.aggregate
class OrderSequence:
    period = Identifier(identifier=True)  # YYMM
    last_value = Integer(default=0, min_value=0)

    def next_value(self):
        self.last_value += 1
        return self.last_value


def format_order_number(period, value):
    return f"ORD-{period}-{value:04d}"


def next_order_number(at=None):
    period = (at or datetime.now(UTC)).strftime("%y%m")
    repo = current_domain.repository_for(OrderSequence)

    attempts = settings.reservation_retry_limit()
    for attempt in range(1, attempts + 1):
        try:
            sequence = repo.get(period)
        except ObjectNotFoundError:
            sequence = OrderSequence(period=period)

        value = sequence.next_value()
        try:
            repo.add(sequence)
        except ExpectedVersionError:
            logger.warning("Order sequence conflict, retrying", period=period, attempt=attempt)
            continue
        return format_order_number(period, value)

    raise ValidationError({"order_number": ["Could not allocate an order number, please retry"]})
