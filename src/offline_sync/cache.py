"""Cache store - strategy-driven reads over a persistent key-value store.

Provides:
- fetch(): read through one of the five cache strategies
- get(), put(), remove(): raw escape hatches
- purge_expired(), evict_to_budget(): garbage collection used by sync
"""

from __future__ import annotations

import asyncio
import json
import logging
import weakref
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, cast

from offline_sync.adapters.base import AsyncKeyValueStore
from offline_sync.config import CachePolicy, CacheStrategy
from offline_sync.duration import parse_optional_duration
from offline_sync.errors import CacheMiss, store_errors
from offline_sync.metadata import MetadataTracker
from offline_sync.types import CacheEntry, CacheMetadata, Duration

T = TypeVar("T")

logger = logging.getLogger(__name__)


def estimate_size(value: Any) -> int:
    """Approximate payload size in bytes."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return len(value)
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    return len(json.dumps(value, default=str).encode("utf-8"))


class CacheStore:
    """Maps cache keys to values, with metadata kept in step.

    Values live in the cache namespace wrapped as ``{"value": ...}`` so a
    cached ``None`` is distinguishable from a miss. Writes to the same key
    are serialised; different keys proceed in parallel.
    """

    def __init__(
        self,
        store: AsyncKeyValueStore,
        metadata: MetadataTracker,
        *,
        default_policy: CachePolicy | None = None,
        default_ttl: int | None = None,
    ) -> None:
        self._store = store
        self._metadata = metadata
        self._default_policy = default_policy or CachePolicy()
        self._default_ttl = default_ttl
        # Entries vanish once no writer holds or awaits the lock
        self._key_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def metadata(self) -> MetadataTracker:
        return self._metadata

    async def fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        policy: CachePolicy | None = None,
        *,
        etag: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> T:
        """Read ``key`` using the policy's strategy.

        Args:
            key: Cache key
            fetcher: Async function producing a fresh value from the network
            policy: Strategy and TTL (default: store default)
            etag: Stored with the metadata of a freshly fetched value
            headers: Stored with the metadata of a freshly fetched value

        Returns:
            Cached or fresh value

        Raises:
            CacheMiss: cache-only read with nothing stored
            Exception: whatever ``fetcher`` raised, when no fallback applies
        """
        policy = policy or self._default_policy
        ttl = policy.ttl if policy.ttl is not None else self._default_ttl
        strategy = policy.strategy

        if strategy is CacheStrategy.NETWORK_ONLY:
            return await fetcher()

        if strategy is CacheStrategy.CACHE_ONLY:
            entry = await self.get_entry(key)
            if entry is None:
                raise CacheMiss(key)
            await self._metadata.record_access(key)
            return cast(T, entry.value)

        if strategy is CacheStrategy.CACHE_FIRST:
            entry = await self.get_entry(key)
            if entry is not None and not entry.metadata.is_expired_at(
                self._metadata.clock()
            ):
                logger.debug("Cache hit for %r", key)
                await self._metadata.record_access(key)
                return cast(T, entry.value)
            logger.debug("Cache miss for %r", key)
            return await self._fetch_and_store(key, fetcher, ttl, etag, headers)

        if strategy is CacheStrategy.STALE_WHILE_REVALIDATE:
            entry = await self.get_entry(key)
            if entry is not None:
                await self._metadata.record_access(key)
                self._refresh_in_background(key, fetcher, ttl, etag, headers)
                return cast(T, entry.value)
            return await self._fetch_and_store(key, fetcher, ttl, etag, headers)

        # Network first - fall back to any cached value, fresh or not.
        # Only the fetch falls back; a failed write-back surfaces.
        try:
            value = await fetcher()
        except Exception:
            entry = await self.get_entry(key)
            if entry is None:
                raise
            logger.debug("Network failed for %r, serving cached value", key)
            await self._metadata.record_access(key)
            return cast(T, entry.value)
        await self.put(key, value, ttl=ttl, etag=etag, headers=headers)
        return value

    async def get(self, key: str) -> Any | None:
        """Raw get - returns the cached value (fresh or stale) or None."""
        entry = await self.get_entry(key)
        if entry is None:
            return None
        await self._metadata.record_access(key)
        return entry.value

    async def get_entry(self, key: str) -> CacheEntry[Any] | None:
        """Value and metadata for ``key`` without counting an access.

        A value whose metadata has gone missing is reported with metadata
        that is already expired, so it never counts as fresh.
        """
        with store_errors(f"read cache {key!r}"):
            wrapped = await self._store.get(key)
        if wrapped is None:
            return None
        value = wrapped["value"]
        metadata = await self._metadata.get(key)
        if metadata is None:
            metadata = CacheMetadata(
                key=key,
                created_at=0,
                expires_at=0,
                size_in_bytes=estimate_size(value),
            )
        return CacheEntry(key=key, value=value, metadata=metadata)

    async def put(
        self,
        key: str,
        value: Any,
        *,
        ttl: Duration | None = None,
        etag: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> CacheMetadata:
        """Raw set - store a value and its metadata together.

        ``ttl=None`` uses the store default.
        """
        ttl_ms = parse_optional_duration(ttl)
        if ttl_ms is None:
            ttl_ms = self._default_ttl
        async with self._lock_for(key):
            with store_errors(f"write cache {key!r}"):
                await self._store.put(key, {"value": value})
            return await self._metadata.record_write(
                key, estimate_size(value), ttl_ms, etag=etag, headers=headers
            )

    async def remove(self, key: str) -> None:
        """Raw delete - drop the value and its metadata. Idempotent."""
        async with self._lock_for(key):
            with store_errors(f"delete cache {key!r}"):
                await self._store.delete(key)
            await self._metadata.remove(key)

    async def keys(self) -> list[str]:
        with store_errors("list cache keys"):
            return await self._store.keys()

    async def clear(self) -> None:
        """Drop every value and every piece of metadata."""
        with store_errors("clear cache"):
            await self._store.clear()
        await self._metadata.clear()

    async def purge_expired(self) -> int:
        """Remove expired entries and values without metadata."""
        now = self._metadata.clock()
        tracked = {m.key: m for m in await self._metadata.all()}
        doomed = [key for key, m in tracked.items() if m.is_expired_at(now)]
        doomed.extend(key for key in await self.keys() if key not in tracked)
        for key in doomed:
            await self.remove(key)
        if doomed:
            logger.debug("Purged %d expired cache entries", len(doomed))
        return len(doomed)

    async def evict_to_budget(self, max_bytes: int, max_entries: int) -> int:
        """Evict least-accessed entries until both limits hold.

        Ties on access count go to the least recently accessed entry.
        """
        entries = await self._metadata.all()
        total = sum(m.size_in_bytes for m in entries)
        count = len(entries)
        entries.sort(
            key=lambda m: (
                m.access_count,
                m.last_accessed_at if m.last_accessed_at is not None else m.created_at,
            )
        )

        evicted = 0
        for metadata in entries:
            if total <= max_bytes and count <= max_entries:
                break
            await self.remove(metadata.key)
            total -= metadata.size_in_bytes
            count -= 1
            evicted += 1
        if evicted:
            logger.info("Evicted %d cache entries to stay within budget", evicted)
        return evicted

    async def join_background(self) -> None:
        """Wait for in-flight background refreshes to finish."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel background refreshes."""
        for task in list(self._background_tasks):
            task.cancel()
        await self.join_background()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._key_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._key_locks[key] = lock
        return lock

    async def _fetch_and_store(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: int | None,
        etag: str | None,
        headers: dict[str, str] | None,
    ) -> T:
        value = await fetcher()
        await self.put(key, value, ttl=ttl, etag=etag, headers=headers)
        return value

    def _refresh_in_background(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        ttl: int | None,
        etag: str | None,
        headers: dict[str, str] | None,
    ) -> None:
        """Refresh a cache entry in a detached task; failures are logged."""

        async def refresh() -> None:
            try:
                await self._fetch_and_store(key, fetcher, ttl, etag, headers)
            except Exception as exc:
                logger.warning("Background refresh of %r failed: %s", key, exc)

        task = asyncio.create_task(refresh())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
