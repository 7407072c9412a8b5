"""Pytest bootstrap configuration.

Environment is pinned before any application module is imported: settings
are read once at import time.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///./.pytest-storefront.db")
os.environ.setdefault("DEBUG", "false")

import hashlib
import hmac
import json
import time
from decimal import Decimal
from typing import Optional

import httpx
import pytest
import pytest_asyncio

from application.dtos.messages import OrderNotification
from core.settings import (
    GatewaySettings,
    InventorySettings,
    QueueSettings,
    SSLCommerzSettings,
    StripeSettings,
)
from infrastructure.adapters.idempotency import InMemoryIdempotencyStore
from infrastructure.container import build_container
from infrastructure.database import build_engine, build_session_factory, create_tables, drop_tables
from infrastructure.models import (
    DeliveryShipmentModel,
    OrderItemModel,
    OrderModel,
    ProductVariantModel,
)


STRIPE_WEBHOOK_SECRET = "whsec_test_secret"


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[OrderNotification] = []

    async def notify(self, notification: OrderNotification) -> None:
        self.sent.append(notification)


class RecordingAlertHook:
    def __init__(self) -> None:
        self.alerts = []

    async def __call__(self, alert) -> None:
        self.alerts.append(alert)


class ValidationResponder:
    """Stands in for the SSLCommerz validation API behind httpx.MockTransport."""

    def __init__(self) -> None:
        self.responses: dict[str, dict] = {}
        self.calls: list[httpx.Request] = []
        self.default_status = "VALID"

    def respond(self, val_id: str, **fields) -> None:
        self.responses[val_id] = fields

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        val_id = request.url.params.get("val_id", "")
        body = {"status": self.default_status, "val_id": val_id}
        body.update(self.responses.get(val_id, {}))
        return httpx.Response(200, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class Seeder:
    """Inserts fixture rows straight through the ORM models."""

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    async def variant(self, variant_id: str, *, stock: int = 10, reserved: int = 0,
                      threshold: Optional[int] = None) -> None:
        async with self._session_factory() as session:
            session.add(ProductVariantModel(
                id=variant_id,
                sku=f"SKU-{variant_id}",
                stock=stock,
                reserved_stock=reserved,
                low_stock_threshold=threshold,
                version=1,
            ))
            await session.commit()

    async def order(self, order_id: str, total: str, *, items: tuple = (),
                    customer_email: Optional[str] = "buyer@example.com") -> None:
        total_amount = Decimal(total)
        async with self._session_factory() as session:
            session.add(OrderModel(
                id=order_id,
                total_amount=total_amount,
                paid_amount=Decimal("0"),
                balance_due=total_amount,
                payment_status="unpaid",
                status="pending",
                inventory_state="reserved",
                customer_name="Test Buyer",
                customer_email=customer_email,
                version=1,
            ))
            await session.flush()
            for variant_id, quantity in items:
                session.add(OrderItemModel(order_id=order_id, variant_id=variant_id, quantity=quantity))
            await session.commit()

    async def shipment(self, shipment_id: str, order_id: str, *, provider: str = "steadfast",
                       external_id: Optional[str] = None, tracking_id: Optional[str] = None) -> None:
        async with self._session_factory() as session:
            session.add(DeliveryShipmentModel(
                id=shipment_id,
                order_id=order_id,
                provider=provider,
                external_id=external_id,
                tracking_id=tracking_id,
                status="pending",
            ))
            await session.commit()


def _stripe_signature(payload: bytes, secret: str = STRIPE_WEBHOOK_SECRET,
                      timestamp: Optional[int] = None) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


@pytest.fixture
def sign_stripe():
    return _stripe_signature


@pytest.fixture
def stripe_event():
    """Builds a Stripe event body as raw bytes."""

    def _build(event_type: str, obj: dict, event_id: str = "evt_test_1") -> bytes:
        return json.dumps({"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}).encode()

    return _build


@pytest.fixture
def gateway_cfg() -> GatewaySettings:
    return GatewaySettings(
        queue=QueueSettings(backend="inprocess", max_attempts=3, retry_delay_seconds=0.01, batch_size=10),
        inventory=InventorySettings(default_low_stock_threshold=5, optimistic_retries=5,
                                    optimistic_backoff_seconds=0.001),
        stripe=StripeSettings(webhook_secret=STRIPE_WEBHOOK_SECRET),
        sslcommerz=SSLCommerzSettings(store_id="teststore", store_password="teststore@ssl", sandbox=True),
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'pipeline.db'}", echo=False)
    await create_tables(engine)
    yield engine
    await drop_tables(engine)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def idempotency() -> InMemoryIdempotencyStore:
    return InMemoryIdempotencyStore(default_ttl=3600)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def alert_hook() -> RecordingAlertHook:
    return RecordingAlertHook()


@pytest.fixture
def validation_api() -> ValidationResponder:
    return ValidationResponder()


@pytest_asyncio.fixture
async def container(gateway_cfg, session_factory, idempotency, notifier, alert_hook, validation_api):
    container = build_container(
        gateway_cfg,
        session_factory,
        idempotency=idempotency,
        notifier=notifier,
        alert_hook=alert_hook,
        sslcommerz_transport=validation_api.transport,
    )
    await container.start()
    yield container
    await container.aclose(timeout=5.0)
