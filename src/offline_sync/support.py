"""OfflineSupport - wires the cache, queue and sync coordinator together.

The application owns the instance returned by ``create_offline_support``
and passes it (or its parts) to whatever needs them.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from offline_sync.adapters.base import (
    AsyncKeyValueStore,
    ChargingSignal,
    ConnectivitySignal,
    NetworkExecutor,
)
from offline_sync.adapters.memory import AsyncMemoryStore
from offline_sync.cache import CacheStore
from offline_sync.config import CachePolicy, OfflineConfig
from offline_sync.errors import NetworkError
from offline_sync.metadata import MetadataTracker
from offline_sync.queue import RequestQueue
from offline_sync.sync import MergeFunction, SyncCoordinator
from offline_sync.types import (
    Clock,
    ConnectivityStatus,
    ExecutorResponse,
    HttpMethod,
    OfflineRequest,
    RequestPriority,
    SyncResult,
    now_ms,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)


class OfflineSupport:
    """Facade over one cache store, request queue and sync coordinator."""

    def __init__(
        self,
        *,
        config: OfflineConfig,
        cache: CacheStore,
        queue: RequestQueue,
        coordinator: SyncCoordinator,
        executor: NetworkExecutor,
        connectivity: ConnectivitySignal | None = None,
        stores: tuple[AsyncKeyValueStore, ...] = (),
    ) -> None:
        self.config = config
        self.cache = cache
        self.queue = queue
        self.coordinator = coordinator
        self._executor = executor
        self._connectivity = connectivity
        self._stores = stores

    @property
    def metadata(self) -> MetadataTracker:
        return self.cache.metadata

    async def start(self) -> None:
        """Reload persisted requests and start auto-sync if configured."""
        await self.queue.restore()
        if self.config.auto_sync:
            self.coordinator.start_auto_sync()

    async def fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        policy: CachePolicy | None = None,
    ) -> T:
        """Read through the cache. See ``CacheStore.fetch``."""
        return await self.cache.fetch(key, fetcher, policy)

    async def queue_request(
        self,
        method: HttpMethod | str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        body: Any = None,
        priority: RequestPriority | str = RequestPriority.NORMAL,
        metadata: dict[str, Any] | None = None,
    ) -> OfflineRequest:
        """Queue a mutation for the next sync pass."""
        request = OfflineRequest(
            method=method,  # type: ignore[arg-type]
            url=url,
            headers=headers,
            body=body,
            priority=priority,  # type: ignore[arg-type]
            created_at=self.queue.clock(),
            metadata=metadata,
        )
        return await self.queue.enqueue(request)

    async def send(
        self,
        method: HttpMethod | str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        body: Any = None,
        priority: RequestPriority | str = RequestPriority.NORMAL,
        metadata: dict[str, Any] | None = None,
    ) -> ExecutorResponse | OfflineRequest:
        """Send a mutation now, or queue it when the network is unavailable.

        Returns the executor's response, or the queued ``OfflineRequest``
        when the device is offline or the executor raised ``NetworkError``.
        """
        queued = {
            "headers": headers,
            "body": body,
            "priority": priority,
            "metadata": metadata,
        }
        if not await self._is_online():
            logger.debug("Offline, queueing %s %s", method, url)
            return await self.queue_request(method, url, **queued)

        request_method = (
            method if isinstance(method, HttpMethod) else HttpMethod(method.upper())
        )
        try:
            return await self._executor(request_method, url, headers, body)
        except NetworkError as exc:
            logger.debug("Send of %s %s failed (%s), queueing", method, url, exc)
            return await self.queue_request(method, url, **queued)

    async def sync(self) -> SyncResult:
        return await self.coordinator.sync()

    async def clear_all_data(self) -> None:
        """Wipe cached values, their metadata and every queued request."""
        for request_id in self.coordinator.deferred:
            await self.coordinator.discard_deferred(request_id)
        await self.cache.clear()
        await self.queue.clear()
        logger.info("Cleared all offline data")

    async def aclose(self) -> None:
        """Stop background work and disconnect the stores."""
        await self.coordinator.aclose()
        await self.cache.aclose()
        for store in self._stores:
            await store.disconnect()

    async def _is_online(self) -> bool:
        if self._connectivity is None:
            return True
        try:
            status = ConnectivityStatus(await self._connectivity())
        except Exception as exc:
            logger.warning("Connectivity signal failed: %s", exc)
            return True
        return status.is_online


def create_offline_support(
    *,
    executor: NetworkExecutor,
    config: OfflineConfig | None = None,
    cache_store: AsyncKeyValueStore | None = None,
    metadata_store: AsyncKeyValueStore | None = None,
    queue_store: AsyncKeyValueStore | None = None,
    connectivity: ConnectivitySignal | None = None,
    charging: ChargingSignal | None = None,
    merge: MergeFunction | None = None,
    clock: Clock = now_ms,
) -> OfflineSupport:
    """Create an offline support instance.

    Args:
        executor: Network executor used for sync passes and ``send``
        config: Module configuration (default: ``OfflineConfig()``)
        cache_store: Store for cached values (default: in-memory)
        metadata_store: Store for cache metadata (default: in-memory)
        queue_store: Store for queued requests (default: in-memory)
        connectivity: Async connectivity signal
        charging: Async charging signal
        merge: Merge function for the merge conflict resolution
        clock: Current time in Unix milliseconds

    Returns:
        OfflineSupport instance; call ``start()`` before use
    """
    config = config or OfflineConfig()
    if config.enable_logging:
        logging.getLogger("offline_sync").setLevel(logging.DEBUG)

    if cache_store is None:
        cache_store = AsyncMemoryStore()
    if metadata_store is None:
        metadata_store = AsyncMemoryStore()
    if queue_store is None:
        queue_store = AsyncMemoryStore()

    metadata = MetadataTracker(metadata_store, clock=clock)
    cache = CacheStore(
        cache_store,
        metadata,
        default_policy=config.default_cache_policy,
        default_ttl=config.cache_duration,  # type: ignore[arg-type]
    )
    queue = RequestQueue(
        queue_store,
        max_queue_size=config.max_queue_size,
        max_retries=config.max_retries,
        persistence=config.queue_persistence,
        clock=clock,
    )
    coordinator = SyncCoordinator(
        queue,
        executor,
        config=config,
        cache=cache,
        connectivity=connectivity,
        charging=charging,
        merge=merge,
        clock=clock,
    )
    return OfflineSupport(
        config=config,
        cache=cache,
        queue=queue,
        coordinator=coordinator,
        executor=executor,
        connectivity=connectivity,
        stores=(cache_store, metadata_store, queue_store),
    )


__all__ = ["OfflineSupport", "create_offline_support"]
