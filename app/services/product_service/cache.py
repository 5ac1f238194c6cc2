# app/services/product_service/cache.py
from __future__ import annotations

import time
from typing import Callable, Optional, Protocol

import redis.asyncio as redis
from pydantic import ValidationError

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_lookup
from app.schemas.product import ProductDetail

logger = get_logger("app.catalog.cache")


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryCacheBackend:
    """Process-local backend. Values are strings, so entries cannot be mutated in place."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._store: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._store.get(key)
        if not entry:
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            self._store.pop(key, None)
            return None
        return payload

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (self._clock() + ttl_seconds, value)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisCacheBackend:
    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheBackend":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.setex(key, ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)


class DetailCache:
    """Read-through cache of product detail views keyed by product id.

    Backend failures never fail the caller: a failed read is a miss, a failed
    write or eviction is logged and left to the TTL.
    """

    def __init__(
        self,
        backend: CacheBackend,
        ttl_seconds: int = settings.PRODUCT_DETAIL_CACHE_TTL,
        prefix: str = settings.PRODUCT_DETAIL_CACHE_PREFIX,
    ) -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def key(self, product_id: int) -> str:
        return f"{self.prefix}{product_id}"

    async def get(self, product_id: int) -> Optional[ProductDetail]:
        try:
            payload = await self.backend.get(self.key(product_id))
        except Exception:
            record_cache_lookup("error")
            logger.exception("Detail cache read failed", extra={"product_id": product_id})
            return None
        if payload is None:
            record_cache_lookup("miss")
            return None
        try:
            detail = ProductDetail.model_validate_json(payload)
        except ValidationError:
            # entrada corrupta o de otra versión del schema: se descarta
            record_cache_lookup("error")
            logger.warning("Discarding unreadable detail cache entry", extra={"product_id": product_id})
            await self.invalidate(product_id)
            return None
        record_cache_lookup("hit")
        return detail

    async def set(self, product_id: int, detail: ProductDetail) -> None:
        try:
            await self.backend.set(self.key(product_id), detail.model_dump_json(), self.ttl_seconds)
        except Exception:
            logger.exception("Detail cache write failed", extra={"product_id": product_id})

    async def invalidate(self, product_id: int) -> None:
        try:
            await self.backend.delete(self.key(product_id))
        except Exception:
            logger.exception("Detail cache eviction failed", extra={"product_id": product_id})


def build_detail_cache() -> DetailCache:
    if settings.REDIS_URL:
        return DetailCache(RedisCacheBackend.from_url(settings.REDIS_URL))
    return DetailCache(MemoryCacheBackend())
