"""
Redis connection manager for the Matchday sync engine.
Provides the async connection pool, key namespaces, and typed helpers for
JSON documents and atomic day-scoped counters.
"""
from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Key namespaces ──────────────────────────────────────────────────────
DOCUMENT_KEY = "doc:{kind}:{key}"
COUNTER_KEY = "counter:{kind}:{key}"


def _fmt(template: str, **kwargs: str) -> str:
    return template.format(**kwargs)


class RedisManager:
    """Manages the async Redis connection pool and provides typed helpers."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._pool: Optional[Redis] = None

    async def connect(self) -> None:
        """Initialize the connection pool."""
        self._pool = aioredis.from_url(
            self._settings.redis_url_str,
            max_connections=self._settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        await self._pool.ping()
        logger.info("redis_connected", url=self._settings.redis_url_str)

    async def disconnect(self) -> None:
        """Graceful shutdown."""
        if self._pool:
            await self._pool.aclose()
            self._pool = None
            logger.info("redis_disconnected")

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise RuntimeError("RedisManager not connected. Call connect() first.")
        return self._pool

    # ── Documents ───────────────────────────────────────────────────────
    async def get_document(self, kind: str, key: str) -> Optional[str]:
        """Retrieve a raw JSON document."""
        return await self.client.get(_fmt(DOCUMENT_KEY, kind=kind, key=key))

    async def set_document(self, kind: str, key: str, data: str) -> None:
        """Replace a JSON document in full. Documents do not expire."""
        await self.client.set(_fmt(DOCUMENT_KEY, kind=kind, key=key), data)

    async def scan_documents(self, kind: str) -> list[str]:
        """Return every raw document of a kind."""
        pattern = _fmt(DOCUMENT_KEY, kind=kind, key="*")
        keys = [k async for k in self.client.scan_iter(match=pattern, count=200)]
        if not keys:
            return []
        values = await self.client.mget(keys)
        return [v for v in values if v is not None]

    # ── Counters ────────────────────────────────────────────────────────
    async def increment_counter(self, kind: str, key: str, ttl_s: int) -> int:
        """Atomically increment a counter and refresh its TTL. Returns the new value."""
        counter_key = _fmt(COUNTER_KEY, kind=kind, key=key)
        pipe = self.client.pipeline(transaction=True)
        pipe.incr(counter_key)
        pipe.expire(counter_key, ttl_s)
        results = await pipe.execute()
        return int(results[0])

    async def set_counter(self, kind: str, key: str, value: int, ttl_s: int) -> None:
        await self.client.set(_fmt(COUNTER_KEY, kind=kind, key=key), value, ex=ttl_s)

    async def get_counter(self, kind: str, key: str) -> int:
        val = await self.client.get(_fmt(COUNTER_KEY, kind=kind, key=key))
        return int(val) if val else 0
