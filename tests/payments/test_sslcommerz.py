from typing import Optional

import httpx
import pytest

from application.dtos.messages import SSLCommerzPaymentConfirmed, SSLCommerzPaymentFailed
from application.dtos.webhooks import SSLCommerzValidation
from application.services.gates import GateDecision, SSLCommerzGate
from core.settings import SSLCommerzSettings
from infrastructure.external.payments.sslcommerz_client import SSLCommerzClient


@pytest.fixture
def ssl_settings():
    return SSLCommerzSettings(store_id="teststore", store_password="teststore@ssl", sandbox=True)


class StubValidator:
    provider = "sslcommerz"

    def __init__(self, validation: Optional[SSLCommerzValidation]):
        self.validation = validation
        self.calls = []

    async def validate(self, val_id: str) -> Optional[SSLCommerzValidation]:
        self.calls.append(val_id)
        return self.validation


IPN = {
    "tran_id": "T6UWMI",
    "val_id": "2505171200001",
    "status": "VALID",
    "amount": "1.00",
    "currency": "BDT",
    "bank_tran_id": "BANK-1",
}


# ------------------------------------------------------------ client

@pytest.mark.asyncio
async def test_validate_calls_validation_api(ssl_settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "VALID", "tran_id": "T6UWMI", "amount": 5208, "currency": "BDT"})

    client = SSLCommerzClient(ssl_settings, transport=httpx.MockTransport(handler))
    try:
        validation = await client.validate("2505171200001")
    finally:
        await client.aclose()

    assert validation.status == "VALID"
    assert validation.amount == "5208"
    request = seen[0]
    assert request.url.host == "sandbox.sslcommerz.com"
    assert request.url.path == "/validator/api/validationserverAPI.php"
    assert request.url.params["val_id"] == "2505171200001"
    assert request.url.params["store_id"] == "teststore"
    assert request.url.params["store_passwd"] == "teststore@ssl"
    assert request.url.params["format"] == "json"


@pytest.mark.asyncio
async def test_validate_uses_live_host_outside_sandbox():
    hosts = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        return httpx.Response(200, json={"status": "VALID"})

    settings = SSLCommerzSettings(store_id="live", store_password="pw", sandbox=False)
    client = SSLCommerzClient(settings, transport=httpx.MockTransport(handler))
    await client.validate("v1")
    await client.aclose()
    assert hosts == ["securepay.sslcommerz.com"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500, text="boom"),
        lambda request: httpx.Response(200, text="<html>not json</html>"),
        lambda request: httpx.Response(200, json={"no_status": True}),
    ],
    ids=["http_500", "not_json", "missing_status"],
)
async def test_validate_returns_none_on_bad_response(ssl_settings, handler):
    client = SSLCommerzClient(ssl_settings, transport=httpx.MockTransport(handler))
    assert await client.validate("v1") is None
    await client.aclose()


@pytest.mark.asyncio
async def test_validate_returns_none_on_timeout(ssl_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    client = SSLCommerzClient(ssl_settings, transport=httpx.MockTransport(handler))
    assert await client.validate("v1") is None
    await client.aclose()


# ------------------------------------------------------------ gate

@pytest.mark.asyncio
async def test_valid_uses_validated_amount_not_ipn_amount(ssl_settings):
    validator = StubValidator(SSLCommerzValidation(status="VALID", tran_id="T6UWMI", amount="5208.00", currency="BDT"))
    gate = SSLCommerzGate(validator, ssl_settings)
    result = await gate.evaluate(gate.parse(IPN))

    assert result.decision is GateDecision.ACTIONABLE
    assert result.idempotency_key == "ssl_wh:T6UWMI_2505171200001"
    message = result.message
    assert isinstance(message, SSLCommerzPaymentConfirmed)
    assert message.order_id == "T6UWMI"
    assert message.amount == 520800
    assert message.currency == "BDT"
    assert message.natural_key == "T6UWMI_2505171200001"
    assert validator.calls == ["2505171200001"]


@pytest.mark.asyncio
async def test_validated_status_is_actionable(ssl_settings):
    validator = StubValidator(SSLCommerzValidation(status="validated", amount="10"))
    gate = SSLCommerzGate(validator, ssl_settings)
    result = await gate.evaluate(gate.parse(IPN))
    assert result.actionable
    assert result.message.amount == 1000


@pytest.mark.asyncio
async def test_invalid_transaction_is_inauthentic(ssl_settings):
    gate = SSLCommerzGate(StubValidator(SSLCommerzValidation(status="INVALID_TRANSACTION")), ssl_settings)
    result = await gate.evaluate(gate.parse(IPN))
    assert result.decision is GateDecision.INAUTHENTIC


@pytest.mark.asyncio
async def test_tran_id_mismatch_is_inauthentic(ssl_settings):
    validation = SSLCommerzValidation(status="VALID", tran_id="OTHER", amount="5208.00")
    gate = SSLCommerzGate(StubValidator(validation), ssl_settings)
    result = await gate.evaluate(gate.parse(IPN))
    assert result.decision is GateDecision.INAUTHENTIC
    assert result.reason == "tran_id_mismatch"


@pytest.mark.asyncio
@pytest.mark.parametrize("validation", [None, SSLCommerzValidation(status="PENDING")])
async def test_pending_or_unreachable_is_unresolved(ssl_settings, validation):
    gate = SSLCommerzGate(StubValidator(validation), ssl_settings)
    result = await gate.evaluate(gate.parse(IPN))
    assert result.decision is GateDecision.UNRESOLVED
    assert result.message is None


@pytest.mark.asyncio
async def test_failed_status_becomes_failed_message(ssl_settings):
    gate = SSLCommerzGate(StubValidator(SSLCommerzValidation(status="FAILED")), ssl_settings)
    result = await gate.evaluate(gate.parse(IPN))
    assert result.actionable
    assert isinstance(result.message, SSLCommerzPaymentFailed)
    assert result.message.status == "FAILED"


def test_parse_rejects_ipn_without_identifiers():
    assert SSLCommerzGate.parse({"tran_id": "T6UWMI"}) is None
    assert SSLCommerzGate.parse({"tran_id": "", "val_id": "v"}) is None


@pytest.mark.asyncio
async def test_unconfigured_gate(ssl_settings):
    gate = SSLCommerzGate(None, ssl_settings)
    assert not gate.configured
    result = await gate.evaluate(gate.parse(IPN))
    assert result.decision is GateDecision.UNRESOLVABLE


@pytest.mark.asyncio
async def test_valid_without_validated_amount_ignores_ipn_amount(ssl_settings):
    gate = SSLCommerzGate(StubValidator(SSLCommerzValidation(status="VALID")), ssl_settings)
    result = await gate.evaluate(gate.parse({**IPN, "amount": "999999.00"}))

    assert result.decision is GateDecision.UNRESOLVED
    assert result.reason == "missing_amount"
    assert result.message is None


@pytest.mark.asyncio
async def test_payment_details_come_from_validation_response(ssl_settings):
    validation = SSLCommerzValidation(status="VALID", amount="500.00", value_a="deposit", bank_tran_id="BANK-V")
    gate = SSLCommerzGate(StubValidator(validation), ssl_settings)
    ipn = {**IPN, "currency": "USD", "value_a": "balance", "bank_tran_id": "BANK-IPN", "card_type": "VISA"}

    message = (await gate.evaluate(gate.parse(ipn))).message

    assert message.amount == 50000
    assert message.currency == "BDT"
    assert message.payment_type == "deposit"
    assert message.bank_tran_id == "BANK-V"
    assert message.card_type is None
