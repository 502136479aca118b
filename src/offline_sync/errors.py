"""Exception hierarchy for offline_sync."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any


class OfflineError(Exception):
    """Base class for every error raised by offline_sync."""


class CacheMiss(OfflineError):
    """No cached value exists and the strategy forbids going to the network."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No cached data for key {key!r}")
        self.key = key


class NetworkError(OfflineError):
    """The network executor failed and no cached fallback applies."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class QueueFullError(OfflineError):
    """The request queue has reached its configured capacity."""

    def __init__(self, max_size: int) -> None:
        super().__init__(f"Request queue is full ({max_size} requests)")
        self.max_size = max_size


class ConfigValidationError(OfflineError, ValueError):
    """Configuration rejected at construction time."""

    def __init__(self, problems: dict[str, str]) -> None:
        detail = "; ".join(f"{name}: {reason}" for name, reason in problems.items())
        super().__init__(f"Invalid configuration: {detail}")
        self.problems = problems

    @property
    def fields(self) -> list[str]:
        return list(self.problems)


class PersistenceError(OfflineError):
    """The underlying key-value store failed."""


class ConflictUnresolved(OfflineError):
    """A request is suspended until the user resolves a conflict."""

    def __init__(self, request_id: str, server_body: Any = None) -> None:
        super().__init__(f"Conflict for request {request_id!r} awaits resolution")
        self.request_id = request_id
        self.server_body = server_body


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Re-raise key-value store failures as ``PersistenceError``."""
    try:
        yield
    except OfflineError:
        raise
    except Exception as exc:
        raise PersistenceError(f"{action} failed: {exc}") from exc
