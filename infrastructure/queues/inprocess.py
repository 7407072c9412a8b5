"""
In-process work queue.

An asyncio.Queue pumped in batches into the batch consumer. Retries are
scheduled on the tracked BackgroundTaskGroup, so `drain()` can wait for every
delivery, including ones still waiting out their retry delay.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence

from application.dtos.messages import QueueMessage
from application.ports.work_queue import QueueUnavailableError, WorkQueue
from application.services.queue_consumer import Delivery, DeliveryAction, DeliveryResult
from application.utils.background import BackgroundTaskGroup
from core.logging_config import get_logger
from core.settings import QueueSettings


logger = get_logger(__name__)

BatchHandler = Callable[[Sequence[Delivery]], Awaitable[List[DeliveryResult]]]


class InProcessWorkQueue(WorkQueue):
    backend = "inprocess"

    def __init__(self, settings: QueueSettings, tasks: BackgroundTaskGroup) -> None:
        self._settings = settings
        self._tasks = tasks
        self._queue: asyncio.Queue[Delivery] = asyncio.Queue()
        self._handler: Optional[BatchHandler] = None
        self._pump: Optional[asyncio.Task] = None
        self._outstanding = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False

    @property
    def outstanding(self) -> int:
        return self._outstanding

    def start(self, handler: BatchHandler) -> None:
        if self._pump is not None:
            return
        self._handler = handler
        self._pump = asyncio.create_task(self._run(), name="inprocess-queue-pump")
        logger.info("work_queue_started", backend=self.backend, batch_size=self._settings.batch_size)

    async def enqueue(self, message: QueueMessage) -> None:
        if self._closed:
            raise QueueUnavailableError("In-process queue is stopped", backend=self.backend)
        self._track(+1)
        await self._queue.put(Delivery(message))

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until every enqueued message is acknowledged or dead-lettered."""
        try:
            await asyncio.wait_for(self._idle.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning("work_queue_drain_timeout", backend=self.backend, outstanding=self._outstanding)
            return False
        return True

    async def stop(self) -> None:
        self._closed = True
        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
            self._pump = None
        logger.info("work_queue_stopped", backend=self.backend, outstanding=self._outstanding)

    # ------------------------------------------------------------ internals

    def _track(self, delta: int) -> None:
        self._outstanding += delta
        if self._outstanding <= 0:
            self._outstanding = 0
            self._idle.set()
        else:
            self._idle.clear()

    async def _next_batch(self) -> List[Delivery]:
        batch = [await self._queue.get()]
        while len(batch) < max(1, self._settings.batch_size):
            try:
                batch.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return batch

    async def _run(self) -> None:
        assert self._handler is not None
        while True:
            batch = await self._next_batch()
            try:
                results = await self._handler(batch)
            except Exception as exc:
                logger.error("work_queue_batch_failed", backend=self.backend, size=len(batch), error=str(exc))
                results = [
                    DeliveryResult(d, DeliveryAction.RETRY, delay=self._settings.retry_delay_seconds, error=str(exc))
                    for d in batch
                ]
            for result in results:
                if result.action is DeliveryAction.RETRY:
                    self._tasks.spawn(
                        self._redeliver(result.delivery.next_attempt(), result.delay),
                        name=f"redeliver-{result.delivery.message.natural_key}",
                    )
                else:
                    self._track(-1)
            for _ in batch:
                self._queue.task_done()

    async def _redeliver(self, delivery: Delivery, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self._track(-1)
            raise
        if self._closed:
            logger.error(
                "work_queue_redelivery_dropped",
                event_type=delivery.message.type,
                natural_key=delivery.message.natural_key,
                attempt=delivery.attempt,
            )
            self._track(-1)
            return
        await self._queue.put(delivery)
