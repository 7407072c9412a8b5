import httpx
import pytest

import main
from api.middleware.logging import decode_body, sanitize
from core.exceptions import business_code_to_http_status
from core.logging_config import mask_secrets
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


def test_mask_secrets_hides_gateway_credentials():
    event = mask_secrets(None, "info", {"event": "x", "store_passwd": "pw", "Authorization": "Bearer t", "val_id": "1"})

    assert event == {"event": "x", "store_passwd": "***", "Authorization": "***", "val_id": "1"}


def test_ipn_body_is_decoded_and_masked():
    raw = b"tran_id=T1&val_id=V1&verify_sign=abc&store_passwd=pw"

    body = sanitize(decode_body(raw, "application/x-www-form-urlencoded"))

    assert body == {"tran_id": "T1", "val_id": "V1", "verify_sign": "***", "store_passwd": "***"}


def test_json_body_masking_is_recursive():
    body = sanitize(decode_body(b'{"data": {"object": {"signature": "s", "id": "pi_1"}}}', "application/json"))

    assert body == {"data": {"object": {"signature": "***", "id": "pi_1"}}}


def test_unparseable_json_is_kept_as_text():
    assert decode_body(b"{oops", "application/json") == "{oops"


@pytest.mark.parametrize(
    "code, status",
    [
        (BusinessCode.VARIANT_NOT_FOUND, 404),
        (BusinessCode.CONCURRENT_MODIFICATION, 409),
        (PaymentCode.SIGNATURE_ERROR, 400),
        (PaymentCode.QUEUE_UNAVAILABLE, 503),
        (PaymentCode.ALREADY_PAID, 409),
        (BusinessCode.SYSTEM_ERROR, 500),
        (99999, 400),
    ],
)
def test_business_code_status_mapping(code, status):
    assert business_code_to_http_status(code) == status


@pytest.mark.asyncio
async def test_request_id_is_echoed():
    transport = httpx.ASGITransport(app=main.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        given = await client.get("/health", headers={"X-Request-ID": "req-123"})
        generated = await client.get("/health")

    assert given.headers["X-Request-ID"] == "req-123"
    assert generated.headers["X-Request-ID"]
    assert "X-Process-Time" not in given.headers
