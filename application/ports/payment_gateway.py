"""
Payment gateway ports (application/ports) exposing replaceable protocols.

Application depends on these Protocols; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from application.dtos.webhooks import SSLCommerzValidation, StripeEvent


@runtime_checkable
class StripeWebhookVerifier(Protocol):
    """Verifies the signature over the raw body and returns the parsed event.

    Raises PaymentSignatureError when the signature does not match.
    """

    provider: str

    def parse_webhook(self, headers: Mapping[str, Any], body: bytes) -> StripeEvent: ...


@runtime_checkable
class SSLCommerzValidator(Protocol):
    """Server-to-server transaction validation.

    Returns None when the validation API could not be reached in time;
    callers treat that as "not yet resolved".
    """

    provider: str

    async def validate(self, val_id: str) -> Optional[SSLCommerzValidation]: ...
