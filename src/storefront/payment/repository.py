"""Repository for Payment with lookups by order and by gateway intent."""

from storefront.domain import storefront
from storefront.payment.payment import Payment


@storefront.repository(part_of=Payment)
class PaymentRepository:
    def for_order(self, order_id) -> Payment | None:
        """The most recent payment opened for ``order_id``."""
        payments = self._dao.query.filter(order_id=str(order_id)).all().items
        if not payments:
            return None
        return sorted(payments, key=lambda p: p.created_at)[-1]

    def by_intent(self, intent_id) -> Payment | None:
        return self._dao.query.filter(external_intent_id=intent_id).all().first
