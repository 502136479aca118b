"""Cache policy, sync policy and module configuration.

All three are immutable value objects. ``OfflineConfig`` validates itself
once at construction and raises ``ConfigValidationError`` naming every
offending field.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from offline_sync.duration import parse_duration
from offline_sync.errors import ConfigValidationError
from offline_sync.types import Duration

_BYTES_PER_MB = 1024 * 1024


class CacheStrategy(str, Enum):
    CACHE_FIRST = "cache_first"
    NETWORK_FIRST = "network_first"
    CACHE_ONLY = "cache_only"
    NETWORK_ONLY = "network_only"
    STALE_WHILE_REVALIDATE = "stale_while_revalidate"


class ConflictResolution(str, Enum):
    SERVER_WINS = "server_wins"
    CLIENT_WINS = "client_wins"
    MERGE = "merge"
    PROMPT_USER = "prompt_user"


@dataclass(frozen=True, slots=True)
class CachePolicy:
    """Which cache strategy a read uses, and how long a written value lives.

    ``ttl=None`` defers to ``OfflineConfig.cache_duration``.
    """

    strategy: CacheStrategy = CacheStrategy.NETWORK_FIRST
    ttl: Duration | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "strategy", CacheStrategy(self.strategy))
        if self.ttl is None:
            return
        try:
            ttl = parse_duration(self.ttl)
        except ValueError as exc:
            raise ConfigValidationError({"ttl": str(exc)}) from exc
        if ttl < 0:
            raise ConfigValidationError({"ttl": "must be >= 0"})
        object.__setattr__(self, "ttl", ttl)

    @classmethod
    def cache_first(cls, ttl: Duration | None = None) -> CachePolicy:
        return cls(CacheStrategy.CACHE_FIRST, ttl)

    @classmethod
    def network_first(cls, ttl: Duration | None = None) -> CachePolicy:
        return cls(CacheStrategy.NETWORK_FIRST, ttl)

    @classmethod
    def cache_only(cls) -> CachePolicy:
        return cls(CacheStrategy.CACHE_ONLY)

    @classmethod
    def network_only(cls) -> CachePolicy:
        return cls(CacheStrategy.NETWORK_ONLY)

    @classmethod
    def stale_while_revalidate(cls, ttl: Duration | None = None) -> CachePolicy:
        return cls(CacheStrategy.STALE_WHILE_REVALIDATE, ttl)


@dataclass(frozen=True, slots=True)
class SyncPolicy:
    """How a sync pass resolves conflicts and when it is allowed to run."""

    conflict_resolution: ConflictResolution = ConflictResolution.SERVER_WINS
    sync_only_on_wifi: bool = False
    sync_only_when_charging: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "conflict_resolution", ConflictResolution(self.conflict_resolution)
        )


# Fields normalised from Duration to milliseconds
_DURATION_FIELDS = (
    "cache_duration",
    "retry_delay",
    "max_retry_delay",
    "sync_interval",
    "sync_timeout",
)


@dataclass(frozen=True, slots=True)
class OfflineConfig:
    """Every numeric and policy knob of the offline module.

    Duration fields accept "30s"-style strings, milliseconds or a
    ``timedelta`` and hold milliseconds after construction.
    """

    cache_duration: Duration = "1h"
    max_cache_size_mb: float = 50
    max_cache_entries: int = 1000
    max_retries: int = 3
    retry_delay: Duration = "1s"
    retry_multiplier: float = 2.0
    max_retry_delay: Duration = "1m"
    max_queue_size: int = 500
    queue_persistence: bool = True
    sync_interval: Duration = "15m"
    sync_timeout: Duration = "30s"
    auto_sync: bool = True
    sync_on_reconnect: bool = True
    default_cache_policy: CachePolicy = field(default_factory=CachePolicy)
    sync_policy: SyncPolicy = field(default_factory=SyncPolicy)
    enable_logging: bool = False

    def __post_init__(self) -> None:
        problems: dict[str, str] = {}

        for name in _DURATION_FIELDS:
            try:
                value = parse_duration(getattr(self, name))
            except ValueError as exc:
                problems[name] = str(exc)
                continue
            if value < 0:
                problems[name] = "must be >= 0"
            object.__setattr__(self, name, value)

        def check(name: str, ok: bool, reason: str) -> None:
            if name not in problems and not ok:
                problems[name] = reason

        check("max_retries", self.max_retries >= 0, "must be >= 0")
        check("max_cache_size_mb", self.max_cache_size_mb > 0, "must be > 0")
        check("max_cache_entries", self.max_cache_entries > 0, "must be > 0")
        check("max_queue_size", self.max_queue_size > 0, "must be > 0")
        check("retry_multiplier", self.retry_multiplier >= 1, "must be >= 1")
        if "retry_delay" not in problems:
            check("retry_delay", self.retry_delay > 0, "must be > 0")
        if not {"retry_delay", "max_retry_delay"} & problems.keys():
            check(
                "max_retry_delay",
                self.max_retry_delay >= self.retry_delay,
                "must be >= retry_delay",
            )
        if "sync_interval" not in problems:
            check("sync_interval", self.sync_interval > 0, "must be > 0")
        if "sync_timeout" not in problems:
            check("sync_timeout", self.sync_timeout > 0, "must be > 0")

        if problems:
            raise ConfigValidationError(problems)

    @property
    def max_cache_bytes(self) -> int:
        return int(self.max_cache_size_mb * _BYTES_PER_MB)

    def backoff_delay(self, attempt: int) -> int:
        """Milliseconds to wait before retry number ``attempt + 1``."""
        delay = self.retry_delay * self.retry_multiplier**attempt
        return int(min(self.max_retry_delay, delay))

    @classmethod
    def development(cls, **overrides: Any) -> OfflineConfig:
        """Short timers and small caps, logging on."""
        values: dict[str, Any] = {
            "cache_duration": "5m",
            "max_cache_size_mb": 10,
            "max_cache_entries": 200,
            "max_retries": 2,
            "retry_delay": "500ms",
            "max_retry_delay": "10s",
            "max_queue_size": 100,
            "sync_interval": "1m",
            "sync_timeout": "10s",
            "enable_logging": True,
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def production(cls, **overrides: Any) -> OfflineConfig:
        values: dict[str, Any] = {
            "cache_duration": "24h",
            "max_cache_size_mb": 100,
            "max_cache_entries": 5000,
            "max_retries": 5,
            "retry_delay": "2s",
            "max_retry_delay": "5m",
            "max_queue_size": 1000,
            "sync_interval": "15m",
            "sync_timeout": "1m",
        }
        values.update(overrides)
        return cls(**values)
