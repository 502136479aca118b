"""offline_sync - Offline cache, request queue and sync engine for Python."""

from contextlib import suppress

# Adapters (async only)
from offline_sync.adapters import (
    AsyncKeyValueStore,
    AsyncMemoryStore,
    NetworkExecutor,
)

# Components
from offline_sync.cache import CacheStore

# Configuration
from offline_sync.config import (
    CachePolicy,
    CacheStrategy,
    ConflictResolution,
    OfflineConfig,
    SyncPolicy,
)

# Duration parsing
from offline_sync.duration import parse_duration

# Errors
from offline_sync.errors import (
    CacheMiss,
    ConfigValidationError,
    ConflictUnresolved,
    NetworkError,
    OfflineError,
    PersistenceError,
    QueueFullError,
)
from offline_sync.events import EventStream
from offline_sync.metadata import MetadataTracker
from offline_sync.queue import RequestQueue
from offline_sync.support import OfflineSupport, create_offline_support
from offline_sync.sync import SyncCoordinator

# Core types
from offline_sync.types import (
    CacheEntry,
    CacheMetadata,
    CacheStats,
    ConnectivityStatus,
    Duration,
    ExecutorResponse,
    HttpMethod,
    OfflineRequest,
    RequestPriority,
    SyncResult,
)

# Optional adapter imports - only available when dependencies are installed
with suppress(ImportError):
    from offline_sync.adapters import AsyncRedisStore

with suppress(ImportError):
    from offline_sync.adapters import HttpxExecutor

__version__ = "0.1.0"

__all__ = [
    "AsyncKeyValueStore",
    "AsyncMemoryStore",
    "AsyncRedisStore",
    "CacheEntry",
    "CacheMetadata",
    "CacheMiss",
    "CachePolicy",
    "CacheStats",
    "CacheStore",
    "CacheStrategy",
    "ConfigValidationError",
    "ConflictResolution",
    "ConflictUnresolved",
    "ConnectivityStatus",
    "Duration",
    "EventStream",
    "ExecutorResponse",
    "HttpMethod",
    "HttpxExecutor",
    "MetadataTracker",
    "NetworkError",
    "NetworkExecutor",
    "OfflineConfig",
    "OfflineError",
    "OfflineRequest",
    "OfflineSupport",
    "PersistenceError",
    "QueueFullError",
    "RequestPriority",
    "RequestQueue",
    "SyncCoordinator",
    "SyncPolicy",
    "SyncResult",
    "create_offline_support",
    "parse_duration",
]
