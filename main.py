"""
FastAPI应用主入口：网关回调接入 + 库存管理接口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import inventory as inventory_routes
from api.routes import webhooks as webhook_routes
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from core.settings import gateway_settings
from infrastructure.adapters.idempotency import InMemoryIdempotencyStore, RedisIdempotencyStore
from infrastructure.container import build_container
from infrastructure.database import AsyncSessionLocal, create_tables, engine
from infrastructure.external.cache import init_redis_client, shutdown_redis_client


configure_logging()
logger = get_logger(__name__)

SHUTDOWN_DRAIN_SECONDS = 25.0


async def _idempotency_store(app: FastAPI):
    if settings.redis.url:
        try:
            redis = await init_redis_client()
        except Exception as exc:
            logger.error("redis_init_failed", error=str(exc))
        else:
            app.state.redis = redis
            return RedisIdempotencyStore(redis)
    # 单进程部署：事件日志仍然兜底去重
    logger.warning("idempotency_store_in_memory")
    return InMemoryIdempotencyStore(gateway_settings.webhook.idempotency_ttl_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DEBUG:
        await create_tables()
        logger.info("database_tables_created", environment=settings.ENVIRONMENT)
    else:
        logger.info("database_migrations_expected", hint="alembic upgrade head")

    container = build_container(gateway_settings, AsyncSessionLocal, idempotency=await _idempotency_store(app))
    await container.start()
    app.state.container = container
    logger.info("pipeline_started", queue_backend=gateway_settings.queue.backend)

    yield

    # 先排空后台任务与进程内队列，再释放连接
    await container.aclose(timeout=SHUTDOWN_DRAIN_SECONDS)
    if getattr(app.state, "redis", None) is not None:
        await shutdown_redis_client()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="支付网关回调接入与异步支付事件处理",
)

# add_middleware 后添加者先执行：RequestID -> Logging -> CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)

register_exception_handlers(app)

app.include_router(webhook_routes.router, prefix="/api/v1")
app.include_router(inventory_routes.router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    data = {"status": "healthy"}
    redis = getattr(app.state, "redis", None)
    if redis is not None:
        data["redis"] = "ok" if await redis.health_check() else "unavailable"
    return success_response(data=data)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
