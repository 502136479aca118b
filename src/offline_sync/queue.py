"""Request queue - durable, priority-ordered pending mutations."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any

from offline_sync.adapters.base import AsyncKeyValueStore
from offline_sync.errors import QueueFullError, store_errors
from offline_sync.events import EventStream
from offline_sync.types import Clock, OfflineRequest, now_ms

logger = logging.getLogger(__name__)


class RequestQueue:
    """Pending requests awaiting the network, ordered by priority then age.

    The queue never sleeps or retries by itself; it only records attempts.
    With persistence on, every mutation is a single ``put`` or ``delete``
    against the queue namespace before the call returns.
    """

    def __init__(
        self,
        store: AsyncKeyValueStore,
        *,
        max_queue_size: int,
        max_retries: int,
        persistence: bool = True,
        clock: Clock = now_ms,
    ) -> None:
        self._store = store
        self._max_queue_size = max_queue_size
        self._max_retries = max_retries
        self._persistence = persistence
        self._clock = clock
        self._requests: dict[str, OfflineRequest] = {}
        self._next_sequence = 0
        self._lock = asyncio.Lock()
        self.changes: EventStream[int] = EventStream("queue-changed")

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def size(self) -> int:
        return len(self._requests)

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._requests

    async def restore(self) -> int:
        """Reload persisted requests, e.g. after a restart.

        Returns the number of requests restored.
        """
        if not self._persistence:
            return 0
        async with self._lock:
            with store_errors("restore queue"):
                keys = await self._store.keys()
                loaded = [await self._store.get(key) for key in keys]
            for data in loaded:
                if data is None:
                    continue
                request = OfflineRequest.from_dict(data)
                self._requests[request.id] = request
                self._next_sequence = max(self._next_sequence, request.sequence + 1)
        logger.info("Restored %d queued requests", len(self._requests))
        self._notify()
        return len(self._requests)

    async def enqueue(self, request: OfflineRequest) -> OfflineRequest:
        """Add a request to the queue.

        Raises:
            QueueFullError: the queue already holds ``max_queue_size`` requests
            ValueError: a request with the same id is already queued
        """
        async with self._lock:
            if len(self._requests) >= self._max_queue_size:
                raise QueueFullError(self._max_queue_size)
            if request.id in self._requests:
                raise ValueError(f"Request {request.id!r} is already queued")
            request = dataclasses.replace(request, sequence=self._next_sequence)
            await self._persist(request)
            self._next_sequence += 1
            self._requests[request.id] = request
        logger.debug(
            "Queued %s %s (%s, id=%s)",
            request.method.value,
            request.url,
            request.priority.value,
            request.id,
        )
        self._notify()
        return request

    def dequeue_ordered(self) -> list[OfflineRequest]:
        """Snapshot of pending requests: high before normal before low, FIFO within."""
        return sorted(self._requests.values(), key=lambda r: r.sort_key)

    def get(self, request_id: str) -> OfflineRequest | None:
        return self._requests.get(request_id)

    async def mark_succeeded(self, request_id: str) -> bool:
        """Remove a request for good. Returns False if it was not queued."""
        async with self._lock:
            if request_id not in self._requests:
                return False
            await self._discard(request_id)
        logger.debug("Request %s succeeded", request_id)
        self._notify()
        return True

    async def mark_failed(self, request_id: str, error: str) -> OfflineRequest | None:
        """Record a failed attempt.

        Once the retry count reaches ``max_retries`` the request is removed
        instead of kept. Returns the updated request (also when it was just
        removed), or None if it was not queued.
        """
        async with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                return None
            request = dataclasses.replace(
                request,
                retry_count=request.retry_count + 1,
                last_error=error,
                last_attempt_at=self._clock(),
            )
            if request.should_retry(self._max_retries):
                await self._persist(request)
                self._requests[request_id] = request
            else:
                await self._discard(request_id)
                logger.warning(
                    "Dropping request %s after %d attempts: %s",
                    request_id,
                    request.retry_count,
                    error,
                )
        self._notify()
        return request

    async def update(self, request_id: str, **changes: Any) -> OfflineRequest | None:
        """Replace fields of a queued request, keeping its place in line."""
        changes.pop("id", None)
        changes.pop("created_at", None)
        changes.pop("sequence", None)
        async with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                return None
            request = dataclasses.replace(request, **changes)
            await self._persist(request)
            self._requests[request_id] = request
        return request

    async def drop(self, request_id: str, reason: str) -> bool:
        """Remove a request that can never succeed, regardless of retries left."""
        async with self._lock:
            if request_id not in self._requests:
                return False
            await self._discard(request_id)
        logger.warning("Dropping request %s: %s", request_id, reason)
        self._notify()
        return True

    async def clear(self) -> None:
        """Drop every pending request."""
        async with self._lock:
            if self._persistence:
                with store_errors("clear queue"):
                    await self._store.clear()
            self._requests.clear()
        logger.debug("Queue cleared")
        self._notify()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _persist(self, request: OfflineRequest) -> None:
        if self._persistence:
            with store_errors(f"persist request {request.id!r}"):
                await self._store.put(request.id, request.to_dict())

    async def _discard(self, request_id: str) -> None:
        if self._persistence:
            with store_errors(f"delete request {request_id!r}"):
                await self._store.delete(request_id)
        del self._requests[request_id]

    def _notify(self) -> None:
        self.changes.emit(len(self._requests))
