"""
Composition root for the payment-event pipeline.

Builds gates, services, queue and stores from an explicit GatewaySettings
instance. The FastAPI lifespan keeps one container on `app.state`; each
Celery task builds a short-lived one inside its own event loop.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from application.ports.idempotency import IdempotencyStore
from application.ports.notifier import LowStockAlertHook, OrderNotifier
from application.ports.work_queue import WorkQueue
from application.services.gates import CourierGate, SSLCommerzGate, StripeGate
from application.services.inventory_ledger import InventoryLedger
from application.services.payment_processor import PaymentEventProcessor
from application.services.queue_consumer import QueueConsumer
from application.services.shipment_tracker import ShipmentTracker
from application.services.webhook_ingestion import WebhookIngestion
from application.utils.background import BackgroundTaskGroup
from core.logging_config import get_logger
from core.settings import GatewaySettings
from domain.shipment.entity import Shipment
from infrastructure.adapters.idempotency import InMemoryIdempotencyStore
from infrastructure.adapters.notifier import LoggingLowStockHook, LoggingOrderNotifier
from infrastructure.external.payments import build_sslcommerz_client, build_stripe_client
from infrastructure.queues import InProcessWorkQueue, build_work_queue
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)


@dataclass
class PipelineContainer:
    settings: GatewaySettings
    session_factory: async_sessionmaker[AsyncSession]
    idempotency: IdempotencyStore
    queue: WorkQueue
    tasks: BackgroundTaskGroup
    stripe_gate: StripeGate
    sslcommerz_gate: SSLCommerzGate
    courier_gates: dict[str, CourierGate]
    ingestion: WebhookIngestion
    inventory: InventoryLedger
    processor: PaymentEventProcessor
    consumer: QueueConsumer
    _closers: list = field(default_factory=list)

    def uow(self, *, readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(self.session_factory, readonly=readonly)

    async def find_shipment(
        self, provider: str, consignment_id: Optional[str], tracking_code: Optional[str]
    ) -> Optional[Shipment]:
        async with self.uow(readonly=True) as uow:
            return await uow.shipments.find_by_reference(provider, consignment_id, tracking_code)

    async def start(self) -> None:
        if isinstance(self.queue, InProcessWorkQueue):
            self.queue.start(self.consumer.handle_batch)

    async def aclose(self, timeout: Optional[float] = None) -> None:
        if isinstance(self.queue, InProcessWorkQueue):
            await self.queue.drain(timeout)
            await self.queue.stop()
        await self.tasks.aclose(timeout)
        for close in self._closers:
            await close()


def build_container(
    cfg: GatewaySettings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    idempotency: Optional[IdempotencyStore] = None,
    queue: Optional[WorkQueue] = None,
    notifier: Optional[OrderNotifier] = None,
    alert_hook: Optional[LowStockAlertHook] = None,
    sslcommerz_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PipelineContainer:
    tasks = BackgroundTaskGroup("pipeline")
    if idempotency is None:
        idempotency = InMemoryIdempotencyStore(cfg.webhook.idempotency_ttl_seconds)
    if queue is None:
        queue = build_work_queue(cfg.queue, tasks)
    if alert_hook is None:
        alert_hook = LoggingLowStockHook()
    if notifier is None:
        notifier = LoggingOrderNotifier()

    uow_factory: Callable[[], SQLAlchemyUnitOfWork] = lambda: SQLAlchemyUnitOfWork(session_factory)
    inventory = InventoryLedger(
        uow_factory,
        settings=cfg.inventory,
        alert_hook=alert_hook,
        tasks=tasks,
    )
    processor = PaymentEventProcessor(
        uow_factory,
        idempotency,
        inventory,
        settings=cfg.inventory,
        idempotency_ttl=cfg.webhook.idempotency_ttl_seconds,
        shipments=ShipmentTracker(),
        follow_up=queue,
    )
    consumer = QueueConsumer(processor, notifier, cfg.queue)

    stripe_client = build_stripe_client(cfg)
    sslcommerz_client = build_sslcommerz_client(cfg, transport=sslcommerz_transport)
    closers = [sslcommerz_client.aclose] if sslcommerz_client is not None else []

    container = PipelineContainer(
        settings=cfg,
        session_factory=session_factory,
        idempotency=idempotency,
        queue=queue,
        tasks=tasks,
        stripe_gate=StripeGate(stripe_client, cfg.stripe),
        sslcommerz_gate=SSLCommerzGate(sslcommerz_client, cfg.sslcommerz),
        courier_gates={},
        ingestion=WebhookIngestion(idempotency, queue, cfg.webhook),
        inventory=inventory,
        processor=processor,
        consumer=consumer,
        _closers=closers,
    )
    container.courier_gates = {
        "steadfast": CourierGate("steadfast", cfg.steadfast, container.find_shipment),
        "pathao": CourierGate("pathao", cfg.pathao, container.find_shipment),
    }
    logger.info(
        "pipeline_container_built",
        queue_backend=queue.backend,
        stripe_configured=container.stripe_gate.configured,
        sslcommerz_configured=container.sslcommerz_gate.configured,
    )
    return container
