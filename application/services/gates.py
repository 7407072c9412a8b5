"""
Signature / validation gates.

A gate decides, per inbound delivery, whether it is authentic and what domain
fact it represents. Gates have no side effects beyond the validation call
itself: they never touch the idempotency store or the queue.
"""
from __future__ import annotations

import hmac
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional

from pydantic import ValidationError

from application.dtos.messages import (
    QueueMessage,
    ShipmentStatusChanged,
    SSLCommerzPaymentConfirmed,
    SSLCommerzPaymentFailed,
    StripeChargeDisputed,
    StripeChargeRefunded,
    StripePaymentCanceled,
    StripePaymentConfirmed,
    StripePaymentFailed,
)
from application.dtos.webhooks import (
    PathaoStatusPush,
    SSLCommerzIPN,
    SteadfastStatusPush,
    StripeCharge,
    StripeDispute,
    StripeEvent,
    StripePaymentIntent,
)
from application.ports.idempotency import producer_key
from application.ports.payment_gateway import SSLCommerzValidator, StripeWebhookVerifier
from core.logging_config import get_logger
from core.settings import CourierSettings, SSLCommerzSettings, StripeSettings
from domain.common.exceptions import BusinessException
from domain.payment.money import to_minor_units
from domain.shipment.entity import Shipment
from shared.codes.payment_codes import (
    PaymentCode,
    SSLCOMMERZ_INVALID_STATUSES,
    SSLCOMMERZ_TERMINAL_FAILURE_STATUSES,
    SSLCOMMERZ_VALID_STATUSES,
    STRIPE_HANDLED_EVENTS,
)


logger = get_logger(__name__)


class GateDecision(str, Enum):
    ACTIONABLE = "actionable"
    UNRESOLVED = "unresolved"
    INAUTHENTIC = "inauthentic"
    UNRESOLVABLE = "unresolvable"


@dataclass(frozen=True)
class GateResult:
    gateway: str
    decision: GateDecision
    idempotency_key: Optional[str] = None
    message: Optional[QueueMessage] = None
    reason: str = ""

    @property
    def actionable(self) -> bool:
        return self.decision is GateDecision.ACTIONABLE


ShipmentLookup = Callable[[str, Optional[str], Optional[str]], Awaitable[Optional[Shipment]]]


class StripeGate:
    gateway = "stripe"

    def __init__(self, verifier: Optional[StripeWebhookVerifier], settings: StripeSettings):
        self._verifier = verifier
        self._settings = settings

    @property
    def configured(self) -> bool:
        return self._verifier is not None and self._settings.configured

    def evaluate(self, headers: Mapping[str, Any], body: bytes) -> GateResult:
        if not self.configured:
            return GateResult(self.gateway, GateDecision.UNRESOLVABLE, reason="not_configured")
        try:
            event = self._verifier.parse_webhook(headers, body)  # type: ignore[union-attr]
        except BusinessException as exc:
            if exc.code == PaymentCode.SIGNATURE_ERROR:
                logger.warning("webhook_signature_invalid", gateway=self.gateway, error=exc.message)
                return GateResult(self.gateway, GateDecision.INAUTHENTIC, reason="invalid_signature")
            logger.warning("stripe_event_malformed", error=exc.message)
            return GateResult(self.gateway, GateDecision.UNRESOLVABLE, reason="malformed_event")

        key = producer_key(self.gateway, event.id)
        if event.type not in STRIPE_HANDLED_EVENTS:
            logger.info("stripe_event_unhandled", event_id=event.id, event_type=event.type)
            return GateResult(self.gateway, GateDecision.UNRESOLVABLE, key, reason="unhandled_event_type")

        try:
            message = self._to_message(event)
        except ValidationError as exc:
            logger.warning("stripe_event_malformed", event_id=event.id, event_type=event.type, errors=exc.errors())
            return GateResult(self.gateway, GateDecision.UNRESOLVABLE, key, reason="malformed_object")
        if message is None:
            logger.warning("stripe_event_without_order", event_id=event.id, event_type=event.type)
            return GateResult(self.gateway, GateDecision.UNRESOLVABLE, key, reason="missing_order_id")
        return GateResult(self.gateway, GateDecision.ACTIONABLE, key, message)

    @staticmethod
    def _to_message(event: StripeEvent) -> Optional[QueueMessage]:
        if event.type.startswith("payment_intent."):
            pi = StripePaymentIntent.model_validate(event.object)
            if not pi.order_id:
                return None
            if event.type == "payment_intent.succeeded":
                return StripePaymentConfirmed(
                    event_id=event.id,
                    order_id=pi.order_id,
                    payment_intent_id=pi.id,
                    # amount_received is minor units; conversion happens in the processor
                    amount=pi.amount_received or pi.amount,
                    currency=pi.currency,
                    payment_type=pi.payment_type,
                    charge_id=pi.latest_charge,
                    metadata={k: str(v) for k, v in pi.metadata.items()},
                )
            if event.type == "payment_intent.payment_failed":
                error = pi.last_payment_error
                return StripePaymentFailed(
                    event_id=event.id,
                    order_id=pi.order_id,
                    payment_intent_id=pi.id,
                    currency=pi.currency,
                    failure_code=error.code if error else None,
                    failure_message=error.message if error else None,
                )
            return StripePaymentCanceled(
                event_id=event.id,
                order_id=pi.order_id,
                payment_intent_id=pi.id,
                cancellation_reason=pi.cancellation_reason,
            )
        if event.type == "charge.refunded":
            charge = StripeCharge.model_validate(event.object)
            if not charge.order_id:
                return None
            return StripeChargeRefunded(
                event_id=event.id,
                order_id=charge.order_id,
                payment_intent_id=charge.payment_intent or "",
                charge_id=charge.id,
                amount_refunded=charge.amount_refunded,
                currency=charge.currency,
            )
        dispute = StripeDispute.model_validate(event.object)
        if not dispute.order_id:
            return None
        return StripeChargeDisputed(
            event_id=event.id,
            order_id=dispute.order_id,
            payment_intent_id=dispute.payment_intent or "",
            dispute_id=dispute.id,
            charge_id=dispute.charge,
            amount=dispute.amount,
            currency=dispute.currency,
            reason=dispute.reason,
        )


class SSLCommerzGate:
    """IPN gate. The IPN body is never trusted: every delivery is re-validated
    server to server, and only the validation response's figures are used."""

    gateway = "sslcommerz"

    def __init__(self, validator: Optional[SSLCommerzValidator], settings: SSLCommerzSettings):
        self._validator = validator
        self._settings = settings

    @property
    def configured(self) -> bool:
        return self._validator is not None and self._settings.configured

    @staticmethod
    def parse(form: Mapping[str, Any]) -> Optional[SSLCommerzIPN]:
        try:
            return SSLCommerzIPN.model_validate(dict(form))
        except ValidationError:
            return None

    def idempotency_key(self, ipn: SSLCommerzIPN) -> str:
        return producer_key(self.gateway, f"{ipn.tran_id}_{ipn.val_id}")

    async def evaluate(self, ipn: SSLCommerzIPN) -> GateResult:
        if not self.configured:
            return GateResult(self.gateway, GateDecision.UNRESOLVABLE, reason="not_configured")
        key = self.idempotency_key(ipn)

        validation = await self._validator.validate(ipn.val_id)  # type: ignore[union-attr]
        if validation is None:
            logger.warning("sslcommerz_validation_unreachable", tran_id=ipn.tran_id, val_id=ipn.val_id)
            return GateResult(self.gateway, GateDecision.UNRESOLVED, key, reason="validation_unreachable")

        status = validation.status
        if status in SSLCOMMERZ_INVALID_STATUSES:
            logger.warning("webhook_validation_failed", gateway=self.gateway, tran_id=ipn.tran_id, status=status)
            return GateResult(self.gateway, GateDecision.INAUTHENTIC, key, reason=status.lower())
        if validation.tran_id and validation.tran_id != ipn.tran_id:
            logger.warning(
                "webhook_validation_failed",
                gateway=self.gateway,
                tran_id=ipn.tran_id,
                validated_tran_id=validation.tran_id,
                reason="tran_id_mismatch",
            )
            return GateResult(self.gateway, GateDecision.INAUTHENTIC, key, reason="tran_id_mismatch")

        # tran_id is the order id the checkout flow handed to the gateway
        order_id = ipn.tran_id
        if status in SSLCOMMERZ_VALID_STATUSES:
            currency = (validation.currency or "BDT").upper()
            amount_text = validation.amount
            if not amount_text:
                logger.warning("sslcommerz_validation_without_amount", tran_id=ipn.tran_id)
                return GateResult(self.gateway, GateDecision.UNRESOLVED, key, reason="missing_amount")
            message = SSLCommerzPaymentConfirmed(
                order_id=order_id,
                tran_id=ipn.tran_id,
                val_id=ipn.val_id,
                bank_tran_id=validation.bank_tran_id,
                amount=to_minor_units(amount_text, currency),
                currency=currency,
                payment_type=validation.payment_type,
                card_type=validation.card_type,
                card_brand=validation.card_brand,
                metadata={"store_amount": validation.store_amount} if validation.store_amount else {},
            )
            return GateResult(self.gateway, GateDecision.ACTIONABLE, key, message)
        if status in SSLCOMMERZ_TERMINAL_FAILURE_STATUSES:
            message = SSLCommerzPaymentFailed(
                order_id=order_id, tran_id=ipn.tran_id, val_id=ipn.val_id, status=status,
            )
            return GateResult(self.gateway, GateDecision.ACTIONABLE, key, message)

        logger.info("sslcommerz_validation_pending", tran_id=ipn.tran_id, status=status)
        return GateResult(self.gateway, GateDecision.UNRESOLVED, key, reason=status.lower() or "unknown")


class CourierGate:
    """Courier status push gate.

    Couriers do not sign their pushes. Trust comes from the consignment
    matching one of our own shipments, plus an optional shared secret.
    """

    _payload_models = {
        "steadfast": SteadfastStatusPush,
        "pathao": PathaoStatusPush,
    }

    def __init__(self, gateway: str, settings: CourierSettings, lookup: ShipmentLookup):
        if gateway not in self._payload_models:
            raise ValueError(f"Unsupported courier: {gateway}")
        self.gateway = gateway
        self._settings = settings
        self._lookup = lookup

    @property
    def configured(self) -> bool:
        return self._settings.enabled

    def parse(self, payload: Any):
        """Raises pydantic.ValidationError for malformed pushes."""
        return self._payload_models[self.gateway].model_validate(payload)

    def authenticate(self, headers: Mapping[str, Any]) -> bool:
        secret = self._settings.shared_secret
        if not secret:
            return True
        supplied = str(headers.get("authorization") or headers.get("Authorization") or "")
        if supplied.lower().startswith("bearer "):
            supplied = supplied[7:]
        return hmac.compare_digest(supplied.strip().encode(), secret.encode())

    async def evaluate(self, headers: Mapping[str, Any], push) -> GateResult:
        if not self.configured:
            return GateResult(self.gateway, GateDecision.UNRESOLVABLE, reason="not_configured")
        if not self.authenticate(headers):
            logger.warning("webhook_signature_invalid", gateway=self.gateway, reason="shared_secret_mismatch")
            return GateResult(self.gateway, GateDecision.INAUTHENTIC, reason="shared_secret_mismatch")

        consignment = push.consignment_id or push.tracking_code
        raw_status = push.raw_status
        key = producer_key(self.gateway, f"{consignment}_{raw_status}")

        shipment = await self._lookup(self.gateway, push.consignment_id, push.tracking_code)
        if shipment is None:
            logger.warning(
                "courier_shipment_not_found",
                gateway=self.gateway,
                consignment_id=push.consignment_id,
                tracking_code=push.tracking_code,
            )
            return GateResult(self.gateway, GateDecision.UNRESOLVABLE, key, reason="shipment_not_found")

        message = ShipmentStatusChanged(
            type=f"shipment.{self.gateway}.status_changed",
            order_id=shipment.order_id,
            shipment_id=shipment.id,
            consignment_id=str(consignment),
            tracking_code=push.tracking_code,
            raw_status=raw_status,
            payload=push.model_dump(mode="json"),
        )
        return GateResult(self.gateway, GateDecision.ACTIONABLE, key, message)
