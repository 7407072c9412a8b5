import asyncio

import pytest

from application.dtos.messages import OrderNotification, StripePaymentConfirmed
from application.ports.work_queue import QueueUnavailableError
from application.services.payment_processor import ProcessOutcome, ProcessResult
from application.services.queue_consumer import Delivery, DeliveryAction, QueueConsumer
from application.utils.background import BackgroundTaskGroup
from core.settings import QueueSettings
from infrastructure.queues import InProcessWorkQueue


def _message(n: int) -> StripePaymentConfirmed:
    return StripePaymentConfirmed(
        event_id=f"evt_{n}", order_id=f"ORD-{n}", payment_intent_id=f"pi_{n}", amount=100, currency="usd"
    )


class ScriptedProcessor:
    """Fails the listed natural keys a fixed number of times, then applies."""

    def __init__(self, failures=None):
        self.failures = dict(failures or {})
        self.calls = []
        self.recorded = []

    async def process(self, message, attempt=1):
        self.calls.append((message.natural_key, attempt))
        remaining = self.failures.get(message.natural_key, 0)
        if remaining:
            self.failures[message.natural_key] = remaining - 1
            raise RuntimeError("database unavailable")
        return ProcessResult(ProcessOutcome.APPLIED, {})

    async def record_failure(self, message, error, attempt):
        self.recorded.append((message.natural_key, attempt, str(error)))


class FlakyNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def notify(self, notification):
        if self.fail:
            raise ConnectionError("smtp down")
        self.sent.append(notification)


@pytest.fixture
def queue_settings():
    return QueueSettings(max_attempts=3, retry_delay_seconds=0.01, batch_size=10)


@pytest.mark.asyncio
async def test_one_failure_does_not_block_the_batch(queue_settings):
    processor = ScriptedProcessor(failures={"evt_2": 1})
    consumer = QueueConsumer(processor, FlakyNotifier(), queue_settings)

    results = await consumer.handle_batch([Delivery(_message(n)) for n in (1, 2, 3)])

    assert [r.action for r in results] == [DeliveryAction.ACK, DeliveryAction.RETRY, DeliveryAction.ACK]
    assert results[1].delay == queue_settings.retry_delay_seconds
    assert "database unavailable" in results[1].error
    assert processor.recorded == []


@pytest.mark.asyncio
async def test_exhausted_retries_are_recorded_and_dropped(queue_settings):
    processor = ScriptedProcessor(failures={"evt_1": 99})
    consumer = QueueConsumer(processor, FlakyNotifier(), queue_settings)

    result = await consumer.handle(Delivery(_message(1), attempt=3))

    assert result.action is DeliveryAction.DEAD
    assert processor.recorded == [("evt_1", 3, "database unavailable")]


@pytest.mark.asyncio
async def test_notifications_go_to_the_notifier(queue_settings):
    notifier = FlakyNotifier()
    processor = ScriptedProcessor()
    consumer = QueueConsumer(processor, notifier, queue_settings)
    notification = OrderNotification(order_id="ORD-1", notification_type="order_confirmed", reference="evt_1")

    result = await consumer.handle(Delivery(notification))

    assert result.action is DeliveryAction.ACK
    assert notifier.sent == [notification]
    assert processor.calls == []


@pytest.mark.asyncio
async def test_failed_notification_is_not_logged_as_event(queue_settings):
    processor = ScriptedProcessor()
    consumer = QueueConsumer(processor, FlakyNotifier(fail=True), queue_settings)
    notification = OrderNotification(order_id="ORD-1", notification_type="order_confirmed")

    retry = await consumer.handle(Delivery(notification))
    dead = await consumer.handle(Delivery(notification, attempt=3))

    assert retry.action is DeliveryAction.RETRY
    assert dead.action is DeliveryAction.DEAD
    assert processor.recorded == []


# ------------------------------------------------------------ in-process queue

@pytest.mark.asyncio
async def test_inprocess_queue_redelivers_until_success(queue_settings):
    tasks = BackgroundTaskGroup("test")
    processor = ScriptedProcessor(failures={"evt_2": 2})
    consumer = QueueConsumer(processor, FlakyNotifier(), queue_settings)
    queue = InProcessWorkQueue(queue_settings, tasks)
    queue.start(consumer.handle_batch)
    try:
        for n in (1, 2, 3):
            await queue.enqueue(_message(n))
        assert await queue.drain(timeout=5)
    finally:
        await queue.stop()
        await tasks.aclose(timeout=1)

    attempts = [attempt for key, attempt in processor.calls if key == "evt_2"]
    assert attempts == [1, 2, 3]
    assert queue.outstanding == 0
    assert processor.recorded == []


@pytest.mark.asyncio
async def test_inprocess_queue_gives_up_after_max_attempts(queue_settings):
    tasks = BackgroundTaskGroup("test")
    processor = ScriptedProcessor(failures={"evt_1": 99})
    queue = InProcessWorkQueue(queue_settings, tasks)
    queue.start(QueueConsumer(processor, FlakyNotifier(), queue_settings).handle_batch)
    try:
        await queue.enqueue(_message(1))
        assert await queue.drain(timeout=5)
    finally:
        await queue.stop()
        await tasks.aclose(timeout=1)

    assert [attempt for _, attempt in processor.calls] == [1, 2, 3]
    assert processor.recorded == [("evt_1", 3, "database unavailable")]


@pytest.mark.asyncio
async def test_inprocess_queue_batches(queue_settings):
    batches = []

    async def handler(deliveries):
        batches.append(len(deliveries))
        consumer = QueueConsumer(ScriptedProcessor(), FlakyNotifier(), queue_settings)
        return await consumer.handle_batch(deliveries)

    settings = queue_settings.model_copy(update={"batch_size": 2})
    tasks = BackgroundTaskGroup("test")
    queue = InProcessWorkQueue(settings, tasks)
    queue.start(handler)
    for n in range(5):
        await queue.enqueue(_message(n))
    assert await queue.drain(timeout=5)
    await queue.stop()
    await tasks.aclose(timeout=1)

    assert sum(batches) == 5
    assert max(batches) <= 2


@pytest.mark.asyncio
async def test_enqueue_after_stop_fails(queue_settings):
    tasks = BackgroundTaskGroup("test")
    queue = InProcessWorkQueue(queue_settings, tasks)
    queue.start(QueueConsumer(ScriptedProcessor(), FlakyNotifier(), queue_settings).handle_batch)
    await queue.stop()

    with pytest.raises(QueueUnavailableError):
        await queue.enqueue(_message(1))


@pytest.mark.asyncio
async def test_drain_times_out_while_work_is_pending(queue_settings):
    gate = asyncio.Event()

    async def handler(deliveries):
        await gate.wait()
        return await QueueConsumer(ScriptedProcessor(), FlakyNotifier(), queue_settings).handle_batch(deliveries)

    tasks = BackgroundTaskGroup("test")
    queue = InProcessWorkQueue(queue_settings, tasks)
    queue.start(handler)
    await queue.enqueue(_message(1))

    assert await queue.drain(timeout=0.05) is False
    gate.set()
    assert await queue.drain(timeout=5) is True
    await queue.stop()
    await tasks.aclose(timeout=1)
