"""Runtime settings read from the environment.

Values are read on every call so that tests can override them with
``monkeypatch.setenv`` without reloading modules.
"""

import os
from decimal import Decimal


def _decimal(name: str, default: str) -> Decimal:
    return Decimal(os.getenv(name, default))


def tax_rate() -> Decimal:
    """Sales tax as a percentage of the discounted subtotal."""
    return _decimal("TAX_RATE", "0")


def insurance_rate() -> Decimal:
    """Insurance surcharge as a percentage of the subtotal."""
    return _decimal("INSURANCE_RATE", "1")


def min_shipping_cost() -> Decimal:
    return _decimal("MIN_SHIPPING_COST", "0")


def dimensional_divisor() -> Decimal:
    return _decimal("DIMENSIONAL_DIVISOR", "5000")


def external_call_timeout() -> float:
    """Seconds allowed for a single payment or carrier call."""
    return float(os.getenv("EXTERNAL_CALL_TIMEOUT", "10"))


def reservation_retry_limit() -> int:
    return int(os.getenv("RESERVATION_RETRY_LIMIT", "3"))


def default_currency() -> str:
    return os.getenv("DEFAULT_CURRENCY", "USD")


def low_stock_threshold() -> int:
    return int(os.getenv("LOW_STOCK_THRESHOLD", "5"))


def webhook_secret() -> str:
    return os.getenv("PAYMENT_WEBHOOK_SECRET", "whsec_test")


def operations_email() -> str:
    """Recipient of stock and order-review alerts."""
    return os.getenv("OPERATIONS_EMAIL", "operations@storefront.local")
