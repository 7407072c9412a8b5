import pytest

from domain.common.exceptions import DomainValidationException, VariantNotFoundException
from domain.inventory.entity import AlertStatus, MovementType, Variant


async def _movements(container, variant_id):
    async with container.uow(readonly=True) as uow:
        return await uow.movements.list_by_variant(variant_id)


async def _variant(container, variant_id):
    async with container.uow(readonly=True) as uow:
        return await uow.variants.get_by_id(variant_id)


def test_variant_stock_never_goes_negative():
    variant = Variant(id="V1", sku="SKU-1", stock=3, reserved_stock=5)
    change = variant.commit_sale(7)
    assert (change.previous_stock, change.new_stock) == (3, 0)
    assert variant.reserved_stock == 0
    assert variant.available == 0


@pytest.mark.asyncio
async def test_adjustment_is_floored_at_zero(container, seed):
    await seed.variant("V1", stock=5)

    change = await container.inventory.adjust("V1", -1000000, reason="shrinkage", actor_id="admin-1")

    assert (change.previous_stock, change.new_stock) == (5, 0)
    assert (await _variant(container, "V1")).stock == 0
    movements = await _movements(container, "V1")
    assert len(movements) == 1
    movement = movements[0]
    assert movement.movement_type is MovementType.ADJUSTED
    assert movement.quantity == -1000000
    assert (movement.previous_stock, movement.new_stock) == (5, 0)
    assert movement.actor_id == "admin-1"


@pytest.mark.asyncio
async def test_every_adjustment_writes_one_movement(container, seed):
    await seed.variant("V1", stock=20)

    for delta in (5, -3, 0, -100):
        await container.inventory.adjust("V1", delta)

    movements = await _movements(container, "V1")
    assert len(movements) == 4
    assert (await _variant(container, "V1")).stock == 0
    # each row links to the one before it
    ordered = sorted(movements, key=lambda m: m.id)
    for earlier, later in zip(ordered, ordered[1:]):
        assert later.previous_stock == earlier.new_stock


@pytest.mark.asyncio
async def test_unknown_variant(container):
    with pytest.raises(VariantNotFoundException):
        await container.inventory.adjust("NOPE", 1)


@pytest.mark.asyncio
@pytest.mark.parametrize("delta", [True, 1.5, "3"])
async def test_delta_must_be_an_integer(container, seed, delta):
    await seed.variant("V1", stock=5)
    with pytest.raises(DomainValidationException):
        await container.inventory.adjust("V1", delta)


@pytest.mark.asyncio
async def test_low_stock_alert_lifecycle(container, seed, alert_hook):
    await seed.variant("V1", stock=10)

    await container.inventory.adjust("V1", -6)
    await container.tasks.drain(timeout=5)

    alerts = await container.inventory.list_alerts(status=AlertStatus.ACTIVE)
    assert [(a.variant_id, a.available, a.threshold) for a in alerts] == [("V1", 4, 5)]
    assert [a.variant_id for a in alert_hook.alerts] == ["V1"]

    # still low: the existing alert is refreshed, the hook is not fired again
    await container.inventory.adjust("V1", -1)
    await container.tasks.drain(timeout=5)
    assert len(alert_hook.alerts) == 1

    acknowledged = await container.inventory.acknowledge_alert("V1", actor_id="ops")
    assert acknowledged.status is AlertStatus.ACKNOWLEDGED
    assert acknowledged.acknowledged_by == "ops"

    await container.inventory.adjust("V1", 50)
    resolved = await container.inventory.list_alerts(status=AlertStatus.RESOLVED)
    assert [a.variant_id for a in resolved] == ["V1"]

    # dropping low again reactivates the same alert
    await container.inventory.adjust("V1", -52)
    await container.tasks.drain(timeout=5)
    active = await container.inventory.list_alerts(status=AlertStatus.ACTIVE)
    assert [a.available for a in active] == [1]
    assert len(alert_hook.alerts) == 2


@pytest.mark.asyncio
async def test_variant_threshold_overrides_default(container, seed, alert_hook):
    await seed.variant("V1", stock=30, threshold=25)

    await container.inventory.adjust("V1", -4)
    await container.tasks.drain(timeout=5)

    alerts = await container.inventory.list_alerts()
    assert alerts == []
    assert alert_hook.alerts == []

    await container.inventory.adjust("V1", -1)
    await container.tasks.drain(timeout=5)
    alerts = await container.inventory.list_alerts(status=AlertStatus.ACTIVE)
    assert [(a.available, a.threshold) for a in alerts] == [(25, 25)]


@pytest.mark.asyncio
async def test_acknowledging_unknown_alert_returns_none(container):
    assert await container.inventory.acknowledge_alert("V404") is None


@pytest.mark.asyncio
async def test_release_is_idempotent(container, seed):
    await seed.variant("V1", stock=10, reserved=2)
    await seed.order("ORD-1", "10.00", items=(("V1", 2),))

    first = await container.inventory.release("ORD-1", reason="checkout expired")
    second = await container.inventory.release("ORD-1", reason="checkout expired")

    assert len(first) == 1
    assert second == []
    variant = await _variant(container, "V1")
    assert (variant.stock, variant.reserved_stock) == (10, 0)
    movements = await _movements(container, "V1")
    assert [m.movement_type for m in movements] == [MovementType.RELEASED]


@pytest.mark.asyncio
async def test_release_does_not_open_alert_and_next_decrease_fires(container, seed, alert_hook):
    await seed.variant("V1", stock=3, reserved=2, threshold=5)
    await seed.order("ORD-A", "10.00", items=(("V1", 2),))

    await container.inventory.release("ORD-A")
    await container.tasks.drain(timeout=5)

    assert await container.inventory.list_alerts() == []
    assert alert_hook.alerts == []

    await container.inventory.adjust("V1", -1)
    await container.tasks.drain(timeout=5)

    active = await container.inventory.list_alerts(status=AlertStatus.ACTIVE)
    assert [(a.variant_id, a.available) for a in active] == [("V1", 2)]
    assert [a.variant_id for a in alert_hook.alerts] == ["V1"]


@pytest.mark.asyncio
async def test_increase_that_stays_low_opens_no_alert(container, seed, alert_hook):
    await seed.variant("V1", stock=0)

    await container.inventory.adjust("V1", 2, reason="partial restock")
    await container.tasks.drain(timeout=5)

    assert await container.inventory.list_alerts() == []
    assert alert_hook.alerts == []
