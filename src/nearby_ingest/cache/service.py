"""Redis-backed JSON cache with stale-while-revalidate and tag invalidation.

Key layout (``ns`` is the namespace version, bumped to drop everything):

    <ns>:<prefix>:<sha256 of key parts>      cached payload
    <key>:fresh                              freshness marker (SWR)
    <key>:lock                               refresh lock (SET NX EX)
    <ns>:index:<tag>                         set of keys carrying a tag

Every Redis failure is logged and degrades to a miss or a no-op, so the
caller always falls through to computing the result itself.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import redis.asyncio as aioredis
import structlog

from nearby_ingest.config.settings import Settings

logger = structlog.get_logger()

T = TypeVar("T")

INDEX_MIN_TTL = 600
CITY_SCOPES = ("search", "catalog:places", "catalog:events")


@dataclass
class CachedValue:
    data: Any
    stale: bool


class CacheService:
    def __init__(self, redis: Any, settings: Settings) -> None:
        """
        Args:
            redis: A ``redis.asyncio`` client, or ``None`` to run uncached.
            settings: Supplies the namespace, lock TTL and the enable flag.
        """
        self._redis = redis
        self.enabled = redis is not None and settings.cache_enabled
        self.namespace = settings.cache_namespace
        self.lock_ttl = settings.cache_lock_ttl

    def build_key(self, prefix: str, parts: Any) -> str:
        raw = json.dumps(parts if parts is not None else {}, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
        return f"{self.namespace}:{prefix}:{digest}"

    def _index_key(self, tag: str) -> str:
        return f"{self.namespace}:index:{tag}"

    async def get_json(self, key: str) -> Any | None:
        if not self.enabled:
            return None
        try:
            raw = await self._redis.get(key)
        except Exception:
            logger.warning("cache_get_failed", key=key, exc_info=True)
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("cache_payload_invalid", key=key)
            return None

    async def set_json(self, key: str, data: Any, ttl_seconds: int, tags: list[str] | None = None) -> None:
        if not self.enabled:
            return
        payload = json.dumps(data, default=str)
        try:
            if ttl_seconds > 0:
                await self._redis.set(key, payload, ex=ttl_seconds)
            else:
                await self._redis.set(key, payload)
            await self._index_tags(key, tags, ttl_seconds)
        except Exception:
            logger.warning("cache_set_failed", key=key, exc_info=True)

    async def get_json_swr(self, key: str) -> CachedValue | None:
        """Return the cached value and whether its freshness marker has expired."""
        if not self.enabled:
            return None
        try:
            raw = await self._redis.get(key)
            if not raw:
                return None
            fresh = await self._redis.exists(f"{key}:fresh")
        except Exception:
            logger.warning("cache_get_failed", key=key, exc_info=True)
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("cache_payload_invalid", key=key)
            return None
        return CachedValue(data=data, stale=not fresh)

    async def set_json_swr(
        self,
        key: str,
        data: Any,
        ttl_seconds: int,
        swr_seconds: int,
        tags: list[str] | None = None,
    ) -> None:
        """Store ``data`` for ``ttl + swr`` seconds with a ``ttl``-second freshness marker."""
        if not self.enabled:
            return
        payload = json.dumps(data, default=str)
        total_ttl = max(0, ttl_seconds + max(0, swr_seconds))
        try:
            if total_ttl > 0:
                await self._redis.set(key, payload, ex=total_ttl)
            else:
                await self._redis.set(key, payload)
            if ttl_seconds > 0:
                await self._redis.set(f"{key}:fresh", "1", ex=ttl_seconds)
            else:
                await self._redis.set(f"{key}:fresh", "1")
            await self._index_tags(key, tags, total_ttl)
        except Exception:
            logger.warning("cache_set_failed", key=key, exc_info=True)

    async def _index_tags(self, key: str, tags: list[str] | None, ttl_seconds: int) -> None:
        for tag in [t for t in tags or [] if t]:
            index_key = self._index_key(tag)
            await self._redis.sadd(index_key, key)
            if ttl_seconds > 0:
                await self._redis.expire(index_key, max(ttl_seconds, INDEX_MIN_TTL))

    async def with_lock(self, lock_key: str, fn: Callable[[], Awaitable[T]]) -> T | None:
        """Run ``fn`` while holding ``lock_key``.

        Returns ``None`` without calling ``fn`` when another caller holds
        the lock.  With the cache disabled or unreachable ``fn`` runs
        unguarded.  The lock is released even if ``fn`` raises.
        """
        if not self.enabled:
            return await fn()
        try:
            acquired = await self._redis.set(lock_key, "1", ex=self.lock_ttl, nx=True)
        except Exception:
            logger.warning("cache_lock_failed", key=lock_key, exc_info=True)
            return await fn()
        if not acquired:
            logger.debug("cache_lock_busy", key=lock_key)
            return None
        try:
            return await fn()
        finally:
            try:
                await self._redis.delete(lock_key)
            except Exception:
                logger.warning("cache_unlock_failed", key=lock_key, exc_info=True)

    async def invalidate_by_tags(self, tags: list[str]) -> int:
        """Delete every key indexed under ``tags`` plus their markers and the index sets."""
        if not self.enabled or not tags:
            return 0
        deleted = 0
        try:
            for tag in tags:
                index_key = self._index_key(tag)
                members = await self._redis.smembers(index_key)
                keys = [m.decode() if isinstance(m, bytes) else m for m in members or []]
                if keys:
                    deleted += await self._redis.delete(*keys, *(f"{k}:fresh" for k in keys))
                await self._redis.delete(index_key)
        except Exception:
            logger.warning("cache_invalidate_failed", tags=tags, exc_info=True)
        logger.info("cache_invalidated", tags=tags, deleted=deleted)
        return deleted

    async def invalidate_by_city(self, city_id: str, scopes: list[str] | None = None) -> int:
        scope_list = list(scopes) if scopes else list(CITY_SCOPES)
        return await self.invalidate_by_tags([f"city:{city_id}:{scope}" for scope in scope_list])

    async def flush_namespace(self, batch_size: int = 500) -> int:
        """Delete every key under the current namespace using SCAN."""
        if not self.enabled:
            return 0
        deleted = 0
        batch: list = []
        try:
            async for key in self._redis.scan_iter(match=f"{self.namespace}:*", count=batch_size):
                batch.append(key)
                if len(batch) >= batch_size:
                    deleted += await self._redis.delete(*batch)
                    batch = []
            if batch:
                deleted += await self._redis.delete(*batch)
        except Exception:
            logger.warning("cache_flush_failed", namespace=self.namespace, exc_info=True)
        logger.info("cache_flushed", namespace=self.namespace, deleted=deleted)
        return deleted

    async def aclose(self) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.aclose()
        except Exception:
            logger.warning("cache_close_failed", exc_info=True)


def create_redis(settings: Settings) -> Any:
    """Build a ``redis.asyncio`` client from settings, or ``None`` when unconfigured."""
    if not settings.redis_url or not settings.cache_enabled:
        return None
    return aioredis.from_url(settings.redis_url, decode_responses=True)
