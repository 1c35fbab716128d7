"""
Cache store: typed-document persistence plus atomic counters.

Documents are replaced in full on every write (no partial field updates).
Counters change only through ``increment`` (atomic) or ``set_counter``.
"""
from __future__ import annotations

import abc
import json
from collections.abc import Mapping
from typing import Any, Optional

from redis.exceptions import RedisError

from shared.config import CacheBackend, Settings
from shared.utils.logging import get_logger
from shared.utils.redis_manager import RedisManager

logger = get_logger(__name__)

Document = dict[str, Any]


class CacheStoreError(Exception):
    """The cache store could not be reached or returned unreadable data."""


def _matches(doc: Document, filters: Mapping[str, Any]) -> bool:
    return all(doc.get(field) == value for field, value in filters.items())


class CacheStore(abc.ABC):
    """Key/value + query collaborator for snapshots, analyses and quota counters."""

    @abc.abstractmethod
    async def get(self, kind: str, key: str) -> Optional[Document]:
        ...

    @abc.abstractmethod
    async def put(self, kind: str, key: str, document: Document) -> bool:
        ...

    @abc.abstractmethod
    async def query(self, kind: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        """All documents of ``kind`` whose fields equal every value in ``filters``."""

    @abc.abstractmethod
    async def increment(self, kind: str, key: str) -> int:
        """Atomically add one to a counter and return the new value."""

    @abc.abstractmethod
    async def set_counter(self, kind: str, key: str, value: int) -> None:
        ...

    @abc.abstractmethod
    async def get_counter(self, kind: str, key: str) -> int:
        ...

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None


class RedisCacheStore(CacheStore):
    """Cache store backed by Redis. Counters expire after ``counter_ttl_s``."""

    def __init__(self, redis: RedisManager, counter_ttl_s: int = 2 * 86400) -> None:
        self._redis = redis
        self._counter_ttl_s = counter_ttl_s

    async def get(self, kind: str, key: str) -> Optional[Document]:
        try:
            raw = await self._redis.get_document(kind, key)
        except RedisError as exc:
            raise CacheStoreError(f"get {kind}/{key} failed: {exc}") from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CacheStoreError(f"corrupt document {kind}/{key}") from exc

    async def put(self, kind: str, key: str, document: Document) -> bool:
        try:
            await self._redis.set_document(kind, key, json.dumps(document, default=str))
        except RedisError as exc:
            raise CacheStoreError(f"put {kind}/{key} failed: {exc}") from exc
        return True

    async def query(self, kind: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        try:
            raws = await self._redis.scan_documents(kind)
        except RedisError as exc:
            raise CacheStoreError(f"query {kind} failed: {exc}") from exc
        docs: list[Document] = []
        for raw in raws:
            try:
                doc = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("cache_store_corrupt_document", kind=kind)
                continue
            if _matches(doc, filters or {}):
                docs.append(doc)
        return docs

    async def increment(self, kind: str, key: str) -> int:
        try:
            return await self._redis.increment_counter(kind, key, self._counter_ttl_s)
        except RedisError as exc:
            raise CacheStoreError(f"increment {kind}/{key} failed: {exc}") from exc

    async def set_counter(self, kind: str, key: str, value: int) -> None:
        try:
            await self._redis.set_counter(kind, key, value, self._counter_ttl_s)
        except RedisError as exc:
            raise CacheStoreError(f"set_counter {kind}/{key} failed: {exc}") from exc

    async def get_counter(self, kind: str, key: str) -> int:
        try:
            return await self._redis.get_counter(kind, key)
        except RedisError as exc:
            raise CacheStoreError(f"get_counter {kind}/{key} failed: {exc}") from exc

    async def connect(self) -> None:
        await self._redis.connect()

    async def close(self) -> None:
        await self._redis.disconnect()


class MemoryCacheStore(CacheStore):
    """In-process cache store for dev runs and tests. Documents are copied on the way in and out."""

    def __init__(self) -> None:
        self._documents: dict[tuple[str, str], str] = {}
        self._counters: dict[tuple[str, str], int] = {}

    async def get(self, kind: str, key: str) -> Optional[Document]:
        raw = self._documents.get((kind, key))
        return json.loads(raw) if raw is not None else None

    async def put(self, kind: str, key: str, document: Document) -> bool:
        self._documents[(kind, key)] = json.dumps(document, default=str)
        return True

    async def query(self, kind: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        docs = [json.loads(raw) for (k, _), raw in self._documents.items() if k == kind]
        return [d for d in docs if _matches(d, filters or {})]

    async def increment(self, kind: str, key: str) -> int:
        value = self._counters.get((kind, key), 0) + 1
        self._counters[(kind, key)] = value
        return value

    async def set_counter(self, kind: str, key: str, value: int) -> None:
        self._counters[(kind, key)] = value

    async def get_counter(self, kind: str, key: str) -> int:
        return self._counters.get((kind, key), 0)


def build_cache_store(settings: Settings) -> CacheStore:
    """Create the configured store. Call ``connect()`` before use."""
    if settings.cache_backend == CacheBackend.MEMORY:
        return MemoryCacheStore()
    return RedisCacheStore(RedisManager(settings), counter_ttl_s=settings.quota_counter_ttl_s)
