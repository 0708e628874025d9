"""Configurable fake payment gateway for development and testing.

Simulates a card processor without any external calls. It can be configured
at runtime to succeed, decline, or time out, and records every call it
receives so tests can assert on the exact traffic.

Webhook signatures are checked the way Stripe does it: an HMAC-SHA256 of the
raw request body keyed with the shared webhook secret, sent as ``v1=<hex>``
in the signature header.
"""

import hashlib
import hmac
from uuid import uuid4

from storefront import settings
from storefront.errors import GatewayTimeout
from storefront.payment.gateway.port import ConfirmResult, IntentResult, PaymentGateway, RefundResult


def sign_payload(payload: bytes | str, secret: str | None = None) -> str:
    """Signature header value for ``payload``."""
    if isinstance(payload, str):
        payload = payload.encode()
    key = (secret or settings.webhook_secret()).encode()
    return "v1=" + hmac.new(key, payload, hashlib.sha256).hexdigest()


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, secret: str | None = None) -> None:
        self.secret = secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.simulate_timeout: bool = False
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Card declined",
        simulate_timeout: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.simulate_timeout = simulate_timeout

    def _record(self, method: str, timeout: float | None, **kwargs) -> None:
        self.calls.append({"method": method, "timeout": timeout, **kwargs})
        if self.simulate_timeout:
            raise GatewayTimeout(f"{method} exceeded {timeout}s")

    def create_intent(
        self,
        amount: float,
        currency: str,
        idempotency_key: str,
        metadata: dict | None = None,
        timeout: float | None = None,
    ) -> IntentResult:
        self._record(
            "create_intent",
            timeout,
            amount=amount,
            currency=currency,
            idempotency_key=idempotency_key,
            metadata=metadata or {},
        )
        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        return IntentResult(
            success=True,
            intent_id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}",
            status="requires_confirmation",
        )

    def confirm_intent(self, intent_id: str, timeout: float | None = None) -> ConfirmResult:
        self._record("confirm_intent", timeout, intent_id=intent_id)
        if self.should_succeed:
            return ConfirmResult(success=True, intent_id=intent_id, status="succeeded")
        return ConfirmResult(
            success=False,
            intent_id=intent_id,
            status="failed",
            failure_reason=self.failure_reason,
        )

    def create_refund(
        self,
        intent_id: str,
        amount: float,
        reason: str,
        timeout: float | None = None,
    ) -> RefundResult:
        self._record("create_refund", timeout, intent_id=intent_id, amount=amount, reason=reason)
        if self.should_succeed:
            return RefundResult(
                success=True,
                refund_id=f"re_fake_{uuid4().hex[:12]}",
                status="succeeded",
            )
        return RefundResult(success=False, status="failed", failure_reason=self.failure_reason)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        if not signature:
            return False
        provided = [part.split("=", 1)[1] for part in signature.split(",") if part.strip().startswith("v1=")]
        expected = sign_payload(payload, self.secret).split("=", 1)[1]
        return any(hmac.compare_digest(candidate.strip(), expected) for candidate in provided)
