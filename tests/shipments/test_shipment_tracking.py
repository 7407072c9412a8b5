import pytest

from application.dtos.messages import ShipmentStatusChanged
from application.dtos.webhooks import PathaoStatusPush, SteadfastStatusPush
from application.services.gates import CourierGate, GateDecision
from application.services.payment_processor import ProcessOutcome
from core.settings import CourierSettings
from domain.order.entity import OrderStatus


def _status_changed(raw_status, provider="steadfast", consignment="CN-1"):
    return ShipmentStatusChanged(
        type=f"shipment.{provider}.status_changed",
        order_id="ORD-1",
        shipment_id="SHP-1",
        consignment_id=consignment,
        tracking_code="TRK-1",
        raw_status=raw_status,
        payload={"status": raw_status},
    )


async def _order_status(container):
    async with container.uow(readonly=True) as uow:
        return (await uow.orders.get_by_id("ORD-1")).status


@pytest.mark.asyncio
async def test_transit_then_delivery_moves_order(container, seed, notifier):
    await seed.order("ORD-1", "10.00")
    await seed.shipment("SHP-1", "ORD-1", external_id="CN-1", tracking_id="TRK-1")

    transit = await container.processor.process(_status_changed("in_transit"))
    assert transit.outcome is ProcessOutcome.APPLIED
    assert transit.details["normalized_status"] == "in_transit"
    assert await _order_status(container) is OrderStatus.SHIPPED

    await container.processor.process(_status_changed("delivered"))
    assert await _order_status(container) is OrderStatus.DELIVERED

    await container.queue.drain(timeout=5)
    assert [n.notification_type for n in notifier.sent] == ["order_shipped", "order_delivered"]

    async with container.uow(readonly=True) as uow:
        shipment = await uow.shipments.get_by_id("SHP-1")
    assert shipment.status == "delivered"
    assert shipment.raw_status == "delivered"
    assert shipment.metadata["last_webhook_payload"] == {"status": "delivered"}


@pytest.mark.asyncio
async def test_same_normalized_status_leaves_order_alone(container, seed, notifier):
    await seed.order("ORD-1", "10.00")
    await seed.shipment("SHP-1", "ORD-1", external_id="CN-1")

    await container.processor.process(_status_changed("in_transit"))
    result = await container.processor.process(_status_changed("in_transit_hub"))

    assert result.details["previous_status"] == "in_transit"
    assert "order_status" not in result.details
    await container.queue.drain(timeout=5)
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_missing_shipment_is_skipped(container, seed):
    await seed.order("ORD-1", "10.00")
    result = await container.processor.process(_status_changed("delivered"))
    assert result.details["skipped"] == "shipment_not_found"
    assert await _order_status(container) is OrderStatus.PENDING


# ------------------------------------------------------------ courier gate

@pytest.mark.asyncio
async def test_gate_finds_shipment_by_tracking_code(container, seed):
    await seed.order("ORD-1", "10.00")
    await seed.shipment("SHP-1", "ORD-1", external_id="CN-1", tracking_id="TRK-1")
    gate = container.courier_gates["steadfast"]

    push = SteadfastStatusPush(tracking_code="TRK-1", status="delivered")
    result = await gate.evaluate({}, push)

    assert result.decision is GateDecision.ACTIONABLE
    assert result.idempotency_key == "steadfast_wh:TRK-1_delivered"
    assert result.message.shipment_id == "SHP-1"
    assert result.message.order_id == "ORD-1"


@pytest.mark.asyncio
async def test_gate_unknown_consignment(container):
    gate = container.courier_gates["pathao"]
    push = PathaoStatusPush(consignment_id="404", order_status_slug="Delivered")
    result = await gate.evaluate({}, push)
    assert result.decision is GateDecision.UNRESOLVABLE
    assert result.reason == "shipment_not_found"


@pytest.mark.asyncio
async def test_gate_shared_secret():
    async def lookup(provider, consignment_id, tracking_code):
        raise AssertionError("lookup must not run for unauthenticated pushes")

    gate = CourierGate("steadfast", CourierSettings(shared_secret="s3cret"), lookup)
    push = SteadfastStatusPush(consignment_id="CN-1", status="delivered")

    result = await gate.evaluate({"Authorization": "Bearer wrong"}, push)
    assert result.decision is GateDecision.INAUTHENTIC
    assert gate.authenticate({"authorization": "Bearer s3cret"})


def test_payload_needs_a_reference():
    with pytest.raises(ValueError):
        SteadfastStatusPush(status="delivered")
    with pytest.raises(ValueError):
        PathaoStatusPush(consignment_id="1")


def test_unsupported_courier():
    with pytest.raises(ValueError):
        CourierGate("redx", CourierSettings(), lambda *a: None)
