"""
Redis客户端 - 命名空间隔离的字符串键操作

The payment pipeline only needs TTL-keyed markers, so this client keeps the
string/keys subset: set (with NX/EX), exists and a health check.
Every call degrades to a miss on RedisError instead of raising.
"""
from __future__ import annotations

import asyncio
import socket
from typing import Any, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class RedisClient:
    """
    命名空间隔离的Redis客户端

    特性:
    - 键自动加命名空间前缀
    - RedisError 不向上抛出，按未命中处理
    """

    def __init__(self, client: aioredis.Redis, namespace: str = "", default_ttl: Optional[int] = None):
        self._client = client
        self._namespace = namespace.strip(":")
        self._default_ttl = default_ttl

    def _format_key(self, key: str) -> str:
        """格式化键名，添加命名空间前缀"""
        if not self._namespace:
            return key
        return f"{self._namespace}:{key}"

    async def set(self, key: str, value: Any, ttl: Optional[int] = None, nx: bool = False) -> bool:
        """设置字符串值；nx=True 时仅在键不存在时写入"""
        formatted_key = self._format_key(key)
        expire = ttl if ttl is not None else self._default_ttl
        try:
            result = await self._client.set(
                formatted_key,
                str(value),
                ex=expire if expire and expire > 0 else None,
                nx=nx,
            )
        except RedisError as e:
            logger.error("redis_set_failed", key=formatted_key, error=str(e))
            return False
        return bool(result)

    async def exists(self, *keys: str) -> int:
        formatted_keys = [self._format_key(k) for k in keys]
        try:
            return await self._client.exists(*formatted_keys)
        except RedisError as e:
            logger.error("redis_exists_failed", keys=formatted_keys, error=str(e))
            return 0

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error("redis_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        await self._client.aclose()


# ============= 全局实例管理 =============

_cache_instance: Optional[RedisClient] = None
_lock = asyncio.Lock()


def _keepalive_options() -> dict:
    # 跨平台 keepalive 选项（若可用）
    if hasattr(socket, "TCP_KEEPIDLE") and hasattr(socket, "TCP_KEEPINTVL") and hasattr(socket, "TCP_KEEPCNT"):
        return {socket.TCP_KEEPIDLE: 1, socket.TCP_KEEPINTVL: 1, socket.TCP_KEEPCNT: 3}
    return {}


async def init_redis_client(namespace: Optional[str] = None, **kwargs) -> RedisClient:
    """
    初始化Redis客户端

    Args:
        namespace: 命名空间，默认取 settings.redis.namespace
        **kwargs: 其他Redis连接参数
    """
    global _cache_instance

    if _cache_instance is not None:
        return _cache_instance

    async with _lock:
        if _cache_instance is not None:
            return _cache_instance

        if not settings.redis.url:
            raise RuntimeError("REDIS__URL 未配置，无法初始化Redis客户端")

        client = aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
            socket_keepalive=True,
            socket_keepalive_options=_keepalive_options(),
            **kwargs,
        )
        try:
            await client.ping()
        except RedisError as e:
            logger.error("redis_init_failed", error=str(e))
            await client.aclose()
            raise

        _cache_instance = RedisClient(
            client=client,
            namespace=namespace or settings.redis.namespace,
            default_ttl=settings.redis.default_ttl,
        )
        logger.info("redis_initialized", namespace=namespace or settings.redis.namespace)
        return _cache_instance


async def shutdown_redis_client() -> None:
    """关闭Redis连接"""
    global _cache_instance

    if _cache_instance is not None:
        try:
            await _cache_instance.close()
            logger.info("redis_closed")
        except RedisError as e:
            logger.error("redis_close_failed", error=str(e))
        finally:
            _cache_instance = None


async def create_redis_client(namespace: Optional[str] = None, **kwargs) -> RedisClient:
    """
    创建独立的Redis客户端实例（非单例）

    Celery 任务每次在新的事件循环中运行，不能复用全局实例。
    """
    if not settings.redis.url:
        raise RuntimeError("REDIS__URL 未配置")

    client = aioredis.from_url(
        settings.redis.url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.redis.max_connections,
        **kwargs,
    )
    await client.ping()
    return RedisClient(
        client=client,
        namespace=namespace or settings.redis.namespace,
        default_ttl=settings.redis.default_ttl,
    )


__all__ = [
    "RedisClient",
    "init_redis_client",
    "shutdown_redis_client",
    "create_redis_client",
]
