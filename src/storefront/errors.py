"""Business error taxonomy.

Every error a caller can act on is a ``ValidationError`` subclass so the
FastAPI exception handlers registered by Protean turn it into a 400 with the
usual ``{field: [message]}`` body. ``InvariantViolation`` is the exception:
it signals a bug, is logged, and never reaches a client verbatim.
"""

from protean.exceptions import ValidationError


class InsufficientStock(ValidationError):
    """A single inventory record cannot cover the requested quantity."""

    def __init__(self, record_id, available, requested):
        self.record_id = str(record_id)
        self.available = available
        self.requested = requested
        super().__init__(
            {"quantity": [f"Insufficient stock for {record_id}: {available} available, {requested} requested"]}
        )


class InsufficientInventory(ValidationError):
    """An order could not reserve every line and was rolled back."""

    def __init__(self, sku, available, requested):
        self.sku = sku
        self.available = available
        self.requested = requested
        super().__init__({"items": [f"Insufficient inventory for {sku}: {available} available, {requested} requested"]})


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CouponError(ValidationError):
    """Base class for coupon rejections."""

    def __init__(self, message):
        super().__init__({"coupon_code": [message]})


class CouponInvalid(CouponError):
    pass


class MinimumPurchaseNotMet(CouponError):
    pass


class CouponExhausted(CouponError):
    pass


class UserLimitReached(CouponError):
    pass


class CouponNotApplicable(CouponError):
    pass


# ---------------------------------------------------------------------------
# Shipping
# ---------------------------------------------------------------------------
class NoShippingAvailable(ValidationError):
    def __init__(self, message="No shipping available for this destination"):
        super().__init__({"shipping": [message]})


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class PaymentFailed(ValidationError):
    """The payment provider did not capture funds. The order stays pending."""

    retryable = False

    def __init__(self, message):
        super().__init__({"payment": [message]})


class PaymentDeclined(PaymentFailed):
    pass


class PaymentTimeout(PaymentFailed):
    retryable = True


class GatewayTimeout(Exception):
    """Raised by gateway adapters when a call exceeds its timeout."""


# ---------------------------------------------------------------------------
# Carriers
# ---------------------------------------------------------------------------
class CarrierUnavailable(Exception):
    """Raised by carrier adapters. Tracking falls back to cached history."""


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------
class InvariantViolation(Exception):
    """An internal consistency check failed. Never shown to clients."""
