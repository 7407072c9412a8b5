import json

import pytest
import stripe

from application.dtos.messages import StripeChargeRefunded, StripePaymentConfirmed, StripePaymentFailed
from application.services.gates import GateDecision, StripeGate
from core.settings import StripeSettings
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentSignatureError
from infrastructure.external.payments.stripe_client import StripeClient


SECRET = "whsec_test_secret"


@pytest.fixture
def stripe_settings():
    return StripeSettings(webhook_secret=SECRET)


@pytest.fixture
def client(stripe_settings):
    return StripeClient(stripe_settings)


@pytest.fixture
def gate(client, stripe_settings):
    return StripeGate(client, stripe_settings)


def _intent(**overrides):
    obj = {
        "id": "pi_123",
        "object": "payment_intent",
        "amount": 10000,
        "amount_received": 10000,
        "currency": "usd",
        "latest_charge": "ch_123",
        "metadata": {"orderId": "ORD-1"},
    }
    obj.update(overrides)
    return obj


def test_parse_webhook_verifies_signature(client, stripe_event, sign_stripe):
    body = stripe_event("payment_intent.succeeded", _intent())
    event = client.parse_webhook({"Stripe-Signature": sign_stripe(body)}, body)
    assert event.id == "evt_test_1"
    assert event.type == "payment_intent.succeeded"
    assert event.object["id"] == "pi_123"


def test_parse_webhook_accepts_lowercase_header(client, stripe_event, sign_stripe):
    body = stripe_event("payment_intent.succeeded", _intent())
    event = client.parse_webhook({"stripe-signature": sign_stripe(body)}, body)
    assert event.type == "payment_intent.succeeded"


def test_parse_webhook_rejects_wrong_secret(client, stripe_event, sign_stripe):
    body = stripe_event("payment_intent.succeeded", _intent())
    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({"Stripe-Signature": sign_stripe(body, secret="whsec_other")}, body)


def test_parse_webhook_rejects_tampered_body(client, stripe_event, sign_stripe):
    body = stripe_event("payment_intent.succeeded", _intent())
    tampered = body.replace(b"10000", b"99999")
    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({"Stripe-Signature": sign_stripe(body)}, tampered)


def test_parse_webhook_requires_header(client, stripe_event):
    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({}, stripe_event("payment_intent.succeeded", _intent()))


def test_signed_payload_that_is_not_an_event(client, sign_stripe):
    body = json.dumps({"id": "evt_no_type"}).encode()
    with pytest.raises(PaymentProviderError):
        client.parse_webhook({"Stripe-Signature": sign_stripe(body)}, body)


def test_gate_builds_confirmed_message_in_minor_units(gate, stripe_event, sign_stripe):
    body = stripe_event("payment_intent.succeeded", _intent(metadata={"orderId": "ORD-1", "paymentType": "deposit"}))
    result = gate.evaluate({"Stripe-Signature": sign_stripe(body)}, body)

    assert result.decision is GateDecision.ACTIONABLE
    assert result.idempotency_key == "stripe_wh:evt_test_1"
    message = result.message
    assert isinstance(message, StripePaymentConfirmed)
    assert message.order_id == "ORD-1"
    assert message.amount == 10000
    assert message.payment_type == "deposit"
    assert message.charge_id == "ch_123"
    assert message.natural_key == "evt_test_1"


def test_gate_maps_charge_refunded(gate, stripe_event, sign_stripe):
    charge = {
        "id": "ch_123",
        "object": "charge",
        "amount": 10000,
        "amount_refunded": 2500,
        "currency": "usd",
        "payment_intent": "pi_123",
        "metadata": {"order_id": "ORD-1"},
    }
    body = stripe_event("charge.refunded", charge, event_id="evt_refund")
    result = gate.evaluate({"Stripe-Signature": sign_stripe(body)}, body)

    assert result.actionable
    assert isinstance(result.message, StripeChargeRefunded)
    assert result.message.amount_refunded == 2500
    assert result.message.charge_id == "ch_123"


def test_gate_inauthentic_on_bad_signature(gate, stripe_event):
    body = stripe_event("payment_intent.succeeded", _intent())
    result = gate.evaluate({"Stripe-Signature": "t=1,v1=deadbeef"}, body)
    assert result.decision is GateDecision.INAUTHENTIC
    assert result.message is None


def test_gate_ignores_unhandled_event_types(gate, stripe_event, sign_stripe):
    body = stripe_event("customer.created", {"id": "cus_1"})
    result = gate.evaluate({"Stripe-Signature": sign_stripe(body)}, body)
    assert result.decision is GateDecision.UNRESOLVABLE
    assert result.reason == "unhandled_event_type"


def test_gate_requires_order_id(gate, stripe_event, sign_stripe):
    body = stripe_event("payment_intent.succeeded", _intent(metadata={}))
    result = gate.evaluate({"Stripe-Signature": sign_stripe(body)}, body)
    assert result.decision is GateDecision.UNRESOLVABLE
    assert result.reason == "missing_order_id"


def test_gate_not_configured(stripe_event):
    gate = StripeGate(None, StripeSettings())
    result = gate.evaluate({}, stripe_event("payment_intent.succeeded", _intent()))
    assert result.decision is GateDecision.UNRESOLVABLE
    assert result.reason == "not_configured"


def test_client_leaves_global_api_key_alone(monkeypatch):
    monkeypatch.setattr(stripe, "api_key", None)

    StripeClient(StripeSettings(webhook_secret=SECRET))

    assert stripe.api_key is None
    assert not hasattr(StripeClient, "aclose")


def test_gate_carries_intent_currency_on_failure(gate, stripe_event, sign_stripe):
    obj = _intent(currency="bdt", amount_received=0, last_payment_error={"code": "card_declined"})
    body = stripe_event("payment_intent.payment_failed", obj)

    message = gate.evaluate({"Stripe-Signature": sign_stripe(body)}, body).message

    assert isinstance(message, StripePaymentFailed)
    assert message.currency == "bdt"
    assert message.failure_code == "card_declined"
