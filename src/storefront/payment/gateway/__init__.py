"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations. The
``PAYMENT_GATEWAY`` environment variable names the default adapter; only
``fake`` ships with the project.
"""

import os

from storefront.payment.gateway.port import ConfirmResult, IntentResult, PaymentGateway, RefundResult

__all__ = [
    "ConfirmResult",
    "IntentResult",
    "PaymentGateway",
    "RefundResult",
    "get_gateway",
    "reset_gateway",
    "set_gateway",
]

_current_gateway: PaymentGateway | None = None


def _default_gateway() -> PaymentGateway:
    name = os.getenv("PAYMENT_GATEWAY", "fake").lower()
    if name != "fake":
        raise ValueError(f"Unknown payment gateway adapter: {name}")

    from storefront.payment.gateway.fake_adapter import FakeGateway

    return FakeGateway()


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _default_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
