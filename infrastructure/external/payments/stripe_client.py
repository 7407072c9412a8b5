"""
Stripe webhook adapter using the official stripe-python SDK.

Verification uses `stripe.Webhook.construct_event` with the
`Stripe-Signature` header over the untouched request body. Only after the
signature holds is the body parsed into a typed `StripeEvent`. The adapter
never calls the Stripe API, so it holds no API key and no HTTP client.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

import stripe
from pydantic import ValidationError

from application.dtos.webhooks import StripeEvent
from core.logging_config import get_logger
from core.settings import StripeSettings
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentSignatureError


logger = get_logger(__name__)


def _header(headers: Mapping[str, Any], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return str(value) if value else None


class StripeClient:
    provider = "stripe"

    def __init__(self, settings: StripeSettings):
        self._settings = settings

    def parse_webhook(self, headers: Mapping[str, Any], body: bytes) -> StripeEvent:
        secret = self._settings.webhook_secret
        if not secret:
            raise PaymentSignatureError("Missing STRIPE__WEBHOOK_SECRET", provider=self.provider)
        sig = _header(headers, "Stripe-Signature")
        if not sig:
            raise PaymentSignatureError("Missing Stripe-Signature header", provider=self.provider)
        try:
            stripe.Webhook.construct_event(
                payload=body,
                sig_header=sig,
                secret=secret,
                tolerance=self._settings.tolerance_seconds,
            )
        except stripe.SignatureVerificationError as exc:
            raise PaymentSignatureError(str(exc), provider=self.provider) from exc
        except ValueError as exc:
            # body is not JSON
            raise PaymentSignatureError(f"Invalid payload: {exc}", provider=self.provider) from exc

        try:
            event = StripeEvent.model_validate_json(body)
        except ValidationError as exc:
            raise PaymentProviderError("Signed payload is not a Stripe event", provider=self.provider) from exc
        logger.info("stripe_webhook_verified", provider=self.provider, event_id=event.id, event_type=event.type)
        return event
