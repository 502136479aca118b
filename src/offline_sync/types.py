"""Core types for the offline cache, request queue and sync engine."""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# Duration type alias
Duration = str | int | timedelta  # "30s", "5m", "2h", "1d", milliseconds or timedelta

# Returns the current time as Unix milliseconds
Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in Unix milliseconds."""
    return int(time.time() * 1000)


class RequestPriority(str, Enum):
    """Priority band of a queued request."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank, lower drains first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    RequestPriority.HIGH: 0,
    RequestPriority.NORMAL: 1,
    RequestPriority.LOW: 2,
}


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class ConnectivityStatus(str, Enum):
    """Connectivity as reported by the host platform."""

    WIFI = "wifi"
    ETHERNET = "ethernet"
    CELLULAR = "cellular"
    NONE = "none"

    @property
    def is_online(self) -> bool:
        return self is not ConnectivityStatus.NONE

    @property
    def is_unmetered(self) -> bool:
        return self in (ConnectivityStatus.WIFI, ConnectivityStatus.ETHERNET)


@dataclass(frozen=True, slots=True)
class CacheMetadata:
    """Freshness and usage statistics for one cache key."""

    key: str
    created_at: int  # Unix timestamp ms of the last write
    expires_at: int | None  # None means the entry never expires
    size_in_bytes: int
    access_count: int = 0
    last_accessed_at: int | None = None
    etag: str | None = None
    headers: dict[str, str] | None = None

    def is_expired_at(self, now: int) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def age_at(self, now: int) -> int:
        return max(0, now - self.created_at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "size_in_bytes": self.size_in_bytes,
            "access_count": self.access_count,
            "last_accessed_at": self.last_accessed_at,
            "etag": self.etag,
            "headers": self.headers,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheMetadata:
        return cls(
            key=data["key"],
            created_at=data["created_at"],
            expires_at=data.get("expires_at"),
            size_in_bytes=data["size_in_bytes"],
            access_count=data.get("access_count", 0),
            last_accessed_at=data.get("last_accessed_at"),
            etag=data.get("etag"),
            headers=data.get("headers"),
        )


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A cached value together with its metadata."""

    key: str
    value: T
    metadata: CacheMetadata


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Aggregate view over all tracked cache entries."""

    total_entries: int
    total_bytes: int
    expired_entries: int


@dataclass(frozen=True, slots=True)
class OfflineRequest:
    """A mutation waiting for the network to come back."""

    method: HttpMethod
    url: str
    headers: dict[str, str] | None = None
    body: Any = None
    priority: RequestPriority = RequestPriority.NORMAL
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: int = field(default_factory=now_ms)
    retry_count: int = 0
    last_error: str | None = None
    last_attempt_at: int | None = None
    metadata: dict[str, Any] | None = None
    sequence: int = 0  # insertion order, assigned by the queue

    def __post_init__(self) -> None:
        # Accept plain strings from callers ("POST", "high")
        if not isinstance(self.method, HttpMethod):
            object.__setattr__(self, "method", HttpMethod(self.method.upper()))
        object.__setattr__(self, "priority", RequestPriority(self.priority))
        if self.retry_count < 0:
            raise ValueError("retry_count must be non-negative")

    def should_retry(self, max_retries: int) -> bool:
        return self.retry_count < max_retries

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (self.priority.rank, self.created_at, self.sequence)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "method": self.method.value,
            "url": self.url,
            "headers": self.headers,
            "body": self.body,
            "created_at": self.created_at,
            "priority": self.priority.value,
            "retry_count": self.retry_count,
            "last_error": self.last_error,
            "last_attempt_at": self.last_attempt_at,
            "metadata": self.metadata,
            "sequence": self.sequence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OfflineRequest:
        return cls(
            id=data["id"],
            method=HttpMethod(data["method"]),
            url=data["url"],
            headers=data.get("headers"),
            body=data.get("body"),
            created_at=data["created_at"],
            priority=RequestPriority(data.get("priority", "normal")),
            retry_count=data.get("retry_count", 0),
            last_error=data.get("last_error"),
            last_attempt_at=data.get("last_attempt_at"),
            metadata=data.get("metadata"),
            sequence=data.get("sequence", 0),
        )


@dataclass(frozen=True, slots=True)
class ExecutorResponse:
    """What a network executor reports for one request."""

    success: bool
    body: Any = None
    error: str | None = None
    conflict: bool = False  # server state diverged from the client's
    status_code: int | None = None


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Outcome of one sync pass. Transient, never persisted."""

    success: bool
    synced_count: int
    timestamp: int
    error_message: str | None = None
    failed_count: int = 0
    deferred: tuple[str, ...] = ()  # request ids awaiting a user decision
    evicted_count: int = 0
    cancelled: bool = False

    @classmethod
    def aborted(cls, message: str, timestamp: int) -> SyncResult:
        return cls(
            success=False,
            synced_count=0,
            timestamp=timestamp,
            error_message=message,
        )
