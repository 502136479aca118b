"""Storage adapters and network executors for offline_sync (async only)."""

from contextlib import suppress

from offline_sync.adapters.base import (
    CACHE_NAMESPACE,
    METADATA_NAMESPACE,
    QUEUE_NAMESPACE,
    AsyncKeyValueStore,
    ChargingSignal,
    ConnectivitySignal,
    NetworkExecutor,
)
from offline_sync.adapters.memory import AsyncMemoryStore

# Optional adapters - only available when dependencies are installed
with suppress(ImportError):
    from offline_sync.adapters.redis import AsyncRedisStore

with suppress(ImportError):
    from offline_sync.adapters.http import HttpxExecutor

__all__ = [
    "CACHE_NAMESPACE",
    "METADATA_NAMESPACE",
    "QUEUE_NAMESPACE",
    "AsyncKeyValueStore",
    "AsyncMemoryStore",
    "AsyncRedisStore",
    "ChargingSignal",
    "ConnectivitySignal",
    "HttpxExecutor",
    "NetworkExecutor",
]
