"""Per-task pipeline runtime for Celery workers.

Each task body runs under its own `asyncio.run()`, so the engine, Redis
connection and container are built inside that loop and torn down before it
closes. The engine uses NullPool because connections cannot outlive a loop.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from core.config import settings
from core.logging_config import get_logger
from core.settings import gateway_settings
from infrastructure.adapters.idempotency import InMemoryIdempotencyStore, RedisIdempotencyStore
from infrastructure.container import PipelineContainer, build_container
from infrastructure.database import build_engine, build_session_factory
from infrastructure.external.cache import create_redis_client

from .dispatcher import TaskDispatcher


logger = get_logger(__name__)


@asynccontextmanager
async def worker_container() -> AsyncIterator[PipelineContainer]:
    engine = build_engine(null_pool=True)
    redis = None
    if settings.redis.url:
        redis = await create_redis_client()
        idempotency = RedisIdempotencyStore(redis)
    else:
        logger.warning("worker_idempotency_in_memory", reason="REDIS__URL not set")
        idempotency = InMemoryIdempotencyStore(gateway_settings.webhook.idempotency_ttl_seconds)

    container = build_container(
        gateway_settings,
        build_session_factory(engine),
        idempotency=idempotency,
        queue=TaskDispatcher(),
    )
    try:
        yield container
    finally:
        await container.aclose(timeout=10.0)
        if redis is not None:
            await redis.close()
        await engine.dispose()
