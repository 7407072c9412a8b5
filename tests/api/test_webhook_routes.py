from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from application.ports.idempotency import producer_key


@pytest_asyncio.fixture
async def client(container):
    from main import app

    app.state.container = container
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    del app.state.container


async def _order(container, order_id):
    async with container.uow(readonly=True) as uow:
        return await uow.orders.get_by_id(order_id)


def _intent(order_id="ORD-1", amount=10000):
    return {
        "id": "pi_1",
        "object": "payment_intent",
        "amount": amount,
        "amount_received": amount,
        "currency": "usd",
        "latest_charge": "ch_1",
        "metadata": {"orderId": order_id},
    }


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"status": "healthy"}


# ------------------------------------------------------------ stripe

@pytest.mark.asyncio
async def test_stripe_webhook_enqueues_and_applies(client, container, seed, idempotency, stripe_event, sign_stripe):
    await seed.order("ORD-1", "100.00")
    body = stripe_event("payment_intent.succeeded", _intent())

    resp = await client.post(
        "/api/v1/webhooks/stripe",
        content=body,
        headers={"Stripe-Signature": sign_stripe(body), "Content-Type": "application/json"},
    )

    assert resp.status_code == 200
    assert resp.json()["data"] == {"received": True, "outcome": "enqueued"}
    assert await idempotency.seen(producer_key("stripe", "evt_test_1"))

    assert await container.queue.drain(timeout=5)
    order = await _order(container, "ORD-1")
    assert order.paid_amount == Decimal("100.00")
    assert order.payment_intent_reference == "pi_1"

    again = await client.post(
        "/api/v1/webhooks/stripe",
        content=body,
        headers={"Stripe-Signature": sign_stripe(body), "Content-Type": "application/json"},
    )
    assert again.status_code == 200
    assert again.json()["data"]["outcome"] == "duplicate"


@pytest.mark.asyncio
async def test_stripe_bad_signature_is_400(client, stripe_event, sign_stripe):
    body = stripe_event("payment_intent.succeeded", _intent())
    resp = await client.post(
        "/api/v1/webhooks/stripe",
        content=body,
        headers={"Stripe-Signature": sign_stripe(body, secret="whsec_wrong")},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_stripe_unhandled_event_is_acknowledged(client, idempotency, stripe_event, sign_stripe):
    body = stripe_event("customer.created", {"id": "cus_1"}, event_id="evt_cus")
    resp = await client.post("/api/v1/webhooks/stripe", content=body, headers={"Stripe-Signature": sign_stripe(body)})
    assert resp.status_code == 200
    assert resp.json()["data"]["handled"] is False
    assert not await idempotency.seen(producer_key("stripe", "evt_cus"))


@pytest.mark.asyncio
async def test_stripe_queue_down_is_503_without_key(client, container, idempotency, stripe_event, sign_stripe):
    await container.queue.stop()
    body = stripe_event("payment_intent.succeeded", _intent())

    resp = await client.post("/api/v1/webhooks/stripe", content=body, headers={"Stripe-Signature": sign_stripe(body)})

    assert resp.status_code == 503
    assert not await idempotency.seen(producer_key("stripe", "evt_test_1"))


# ------------------------------------------------------------ sslcommerz

IPN = {
    "tran_id": "T6UWMI",
    "val_id": "2505171200001",
    "status": "VALID",
    "amount": "5208.00",
    "currency": "BDT",
    "bank_tran_id": "BANK-1",
    "store_passwd": "must-not-matter",
}


@pytest.mark.asyncio
async def test_sslcommerz_ipn_validates_and_applies(client, container, seed, validation_api):
    await seed.order("T6UWMI", "5208.00")
    validation_api.respond("2505171200001", tran_id="T6UWMI", amount="5208.00", currency="BDT")

    resp = await client.post("/api/v1/webhooks/sslcommerz", data=IPN)

    assert resp.status_code == 200
    assert resp.text == "OK"
    assert await container.queue.drain(timeout=5)
    order = await _order(container, "T6UWMI")
    assert order.paid_amount == Decimal("5208.00")
    assert len(validation_api.calls) == 1

    # redelivery is answered from the idempotency store without re-validating
    again = await client.post("/api/v1/webhooks/sslcommerz", data=IPN)
    assert again.text == "OK"
    assert len(validation_api.calls) == 1


@pytest.mark.asyncio
async def test_sslcommerz_pending_then_valid(client, container, seed, idempotency, validation_api):
    await seed.order("T6UWMI", "5208.00")
    validation_api.respond("2505171200001", status="PENDING", tran_id="T6UWMI")

    first = await client.post("/api/v1/webhooks/sslcommerz", data=IPN)
    assert first.text == "OK"
    assert not await idempotency.seen(producer_key("sslcommerz", "T6UWMI_2505171200001"))

    validation_api.respond("2505171200001", status="VALID", tran_id="T6UWMI", amount="5208.00", currency="BDT")
    second = await client.post("/api/v1/webhooks/sslcommerz", data=IPN)
    assert second.text == "OK"
    assert await idempotency.seen("ssl_wh:T6UWMI_2505171200001")

    assert await container.queue.drain(timeout=5)
    assert (await _order(container, "T6UWMI")).paid_amount == Decimal("5208.00")


@pytest.mark.asyncio
async def test_sslcommerz_invalid_transaction_is_acknowledged_but_dropped(client, container, seed, validation_api):
    await seed.order("T6UWMI", "5208.00")
    validation_api.respond("2505171200001", status="INVALID_TRANSACTION")

    resp = await client.post("/api/v1/webhooks/sslcommerz", data=IPN)

    assert resp.text == "OK"
    assert await container.queue.drain(timeout=5)
    assert (await _order(container, "T6UWMI")).paid_amount == Decimal("0")


@pytest.mark.asyncio
async def test_sslcommerz_malformed_ipn(client, validation_api):
    resp = await client.post("/api/v1/webhooks/sslcommerz", data={"status": "VALID"})
    assert resp.status_code == 200
    assert resp.text == "OK"
    assert validation_api.calls == []


# ------------------------------------------------------------ couriers

@pytest.mark.asyncio
async def test_steadfast_push_updates_order(client, container, seed):
    await seed.order("ORD-1", "10.00")
    await seed.shipment("SHP-1", "ORD-1", external_id="1001")

    resp = await client.post("/api/v1/webhooks/steadfast", json={"consignment_id": 1001, "status": "in_transit"})

    assert resp.status_code == 200
    assert resp.json()["data"]["outcome"] == "enqueued"
    assert await container.queue.drain(timeout=5)
    assert (await _order(container, "ORD-1")).status.value == "shipped"


@pytest.mark.asyncio
async def test_pathao_unknown_consignment_is_acknowledged(client):
    resp = await client.post(
        "/api/v1/webhooks/pathao", json={"consignment_id": "X-1", "order_status_slug": "Delivered"}
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {"received": True, "handled": False, "reason": "shipment_not_found"}


@pytest.mark.asyncio
async def test_courier_malformed_payload_is_400(client):
    resp = await client.post("/api/v1/webhooks/steadfast", json={"consignment_id": "1001"})
    assert resp.status_code == 400
    resp = await client.post(
        "/api/v1/webhooks/pathao", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_courier_wrong_secret_is_401(client, container, seed):
    container.settings.steadfast.shared_secret = "s3cret"
    await seed.order("ORD-1", "10.00")
    await seed.shipment("SHP-1", "ORD-1", external_id="1001")

    resp = await client.post(
        "/api/v1/webhooks/steadfast",
        json={"consignment_id": "1001", "status": "delivered"},
        headers={"Authorization": "Bearer nope"},
    )
    assert resp.status_code == 401


# ------------------------------------------------------------ source checks

@pytest.mark.asyncio
async def test_ip_allowlist_rejects_other_sources(client, container, stripe_event, sign_stripe):
    container.settings.webhook.ip_allowlist = ["10.0.0.0/8"]
    body = stripe_event("payment_intent.succeeded", _intent())
    resp = await client.post("/api/v1/webhooks/stripe", content=body, headers={"Stripe-Signature": sign_stripe(body)})
    assert resp.status_code == 403

    container.settings.webhook.ip_allowlist = ["127.0.0.1"]
    resp = await client.post("/api/v1/webhooks/stripe", content=body, headers={"Stripe-Signature": sign_stripe(body)})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_webhooks_unavailable_without_pipeline():
    from main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        resp = await ac.post("/api/v1/webhooks/stripe", content=b"{}")
    assert resp.status_code == 503
