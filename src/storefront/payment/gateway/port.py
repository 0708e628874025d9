"""Payment gateway port (abstract interface).

Defines the contract every payment gateway adapter implements, so the
coordinator never depends on a specific provider. Each call takes a
``timeout`` in seconds; adapters raise ``GatewayTimeout`` when it elapses,
which is distinct from a definitive decline reported through the result.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class IntentResult:
    """Result of creating a payment intent."""

    success: bool
    intent_id: str | None = None
    client_secret: str | None = None
    status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class ConfirmResult:
    """Result of confirming (capturing) a payment intent."""

    success: bool
    intent_id: str | None = None
    status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    refund_id: str | None = None
    status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_intent(
        self,
        amount: float,
        currency: str,
        idempotency_key: str,
        metadata: dict | None = None,
        timeout: float | None = None,
    ) -> IntentResult:
        """Create a payment intent for ``amount`` in ``currency``."""
        ...

    @abstractmethod
    def confirm_intent(self, intent_id: str, timeout: float | None = None) -> ConfirmResult:
        """Capture funds for a previously created intent."""
        ...

    @abstractmethod
    def create_refund(
        self,
        intent_id: str,
        amount: float,
        reason: str,
        timeout: float | None = None,
    ) -> RefundResult:
        """Refund (part of) a captured intent."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
