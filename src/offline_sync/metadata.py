"""Metadata tracker - freshness and usage statistics per cache key."""

from __future__ import annotations

import asyncio
import dataclasses
import logging

from offline_sync.adapters.base import AsyncKeyValueStore
from offline_sync.errors import store_errors
from offline_sync.types import CacheMetadata, CacheStats, Clock, now_ms

logger = logging.getLogger(__name__)


class MetadataTracker:
    """Single source of truth for cache entry freshness and usage.

    Backed by the metadata namespace of the persistent store. Every
    mutation is one ``put`` or ``delete`` of a single key.
    """

    def __init__(self, store: AsyncKeyValueStore, *, clock: Clock = now_ms) -> None:
        self._store = store
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def clock(self) -> Clock:
        return self._clock

    async def record_write(
        self,
        key: str,
        size_in_bytes: int,
        ttl: int | None = None,
        *,
        etag: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> CacheMetadata:
        """Create or replace metadata for a freshly written value.

        ``ttl`` is in milliseconds; None means the entry never expires.
        """
        now = self._clock()
        metadata = CacheMetadata(
            key=key,
            created_at=now,
            expires_at=now + ttl if ttl is not None else None,
            size_in_bytes=max(0, size_in_bytes),
            access_count=0,
            last_accessed_at=now,
            etag=etag,
            headers=headers,
        )
        async with self._lock:
            with store_errors(f"write metadata {key!r}"):
                await self._store.put(key, metadata.to_dict())
        return metadata

    async def record_access(self, key: str) -> CacheMetadata | None:
        """Bump the access count. Missing metadata is silently ignored."""
        async with self._lock:
            metadata = await self._load(key)
            if metadata is None:
                return None
            metadata = dataclasses.replace(
                metadata,
                access_count=metadata.access_count + 1,
                last_accessed_at=self._clock(),
            )
            with store_errors(f"write metadata {key!r}"):
                await self._store.put(key, metadata.to_dict())
        return metadata

    async def get(self, key: str) -> CacheMetadata | None:
        return await self._load(key)

    async def is_expired(self, key: str) -> bool:
        """True iff metadata exists, has an expiry and that expiry has passed."""
        metadata = await self._load(key)
        if metadata is None:
            return False
        return metadata.is_expired_at(self._clock())

    async def remove(self, key: str) -> None:
        async with self._lock:
            with store_errors(f"delete metadata {key!r}"):
                await self._store.delete(key)

    async def all(self) -> list[CacheMetadata]:
        with store_errors("list metadata"):
            keys = await self._store.keys()
        found = []
        for key in keys:
            metadata = await self._load(key)
            if metadata is not None:
                found.append(metadata)
        return found

    async def stats(self) -> CacheStats:
        """Aggregate entry count, estimated bytes and expired count."""
        entries = await self.all()
        now = self._clock()
        return CacheStats(
            total_entries=len(entries),
            total_bytes=sum(m.size_in_bytes for m in entries),
            expired_entries=sum(1 for m in entries if m.is_expired_at(now)),
        )

    async def clear(self) -> None:
        async with self._lock:
            with store_errors("clear metadata"):
                await self._store.clear()

    async def _load(self, key: str) -> CacheMetadata | None:
        with store_errors(f"read metadata {key!r}"):
            data = await self._store.get(key)
        if data is None:
            return None
        return CacheMetadata.from_dict(data)
