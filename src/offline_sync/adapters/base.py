"""Protocols for the collaborators the offline engine is given."""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from offline_sync.types import ConnectivityStatus, ExecutorResponse, HttpMethod

# Namespaces a host application keeps separate stores for
CACHE_NAMESPACE = "offline_cache"
METADATA_NAMESPACE = "offline_metadata"
QUEUE_NAMESPACE = "offline_queue"

ConnectivitySignal = Callable[[], Awaitable[ConnectivityStatus]]
ChargingSignal = Callable[[], Awaitable[bool]]


@runtime_checkable
class AsyncKeyValueStore(Protocol):
    """Async key-value store backing one namespace.

    Values handed to ``put`` are JSON-compatible. ``put`` and ``delete``
    must be atomic per key.
    """

    async def get(self, key: str) -> Any | None:
        """Get a value by key."""
        ...

    async def put(self, key: str, value: Any) -> None:
        """Store a value."""
        ...

    async def delete(self, key: str) -> None:
        """Delete a value. Deleting a missing key is not an error."""
        ...

    async def keys(self) -> list[str]:
        """List every key in the namespace."""
        ...

    async def clear(self) -> None:
        """Remove every key in the namespace."""
        ...

    async def disconnect(self) -> None:
        """Disconnect from the storage backend."""
        ...


@runtime_checkable
class NetworkExecutor(Protocol):
    """Performs one request against the network on behalf of the engine.

    Returns an ``ExecutorResponse``; transport failures may also be raised
    as exceptions, which the engine treats as failed attempts.
    """

    async def __call__(
        self,
        method: HttpMethod,
        url: str,
        headers: dict[str, str] | None = None,
        body: Any = None,
        *,
        force: bool = False,
    ) -> ExecutorResponse:
        ...
