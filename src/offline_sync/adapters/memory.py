"""In-memory key-value store (async only)."""

import asyncio
from typing import Any


class AsyncMemoryStore:
    """Async in-memory store for one namespace."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        """Get a value by key."""
        async with self._lock:
            return self._data.get(key)

    async def put(self, key: str, value: Any) -> None:
        """Store a value."""
        async with self._lock:
            self._data[key] = value

    async def delete(self, key: str) -> None:
        """Delete a value."""
        async with self._lock:
            self._data.pop(key, None)

    async def keys(self) -> list[str]:
        """List stored keys in insertion order."""
        async with self._lock:
            return list(self._data)

    async def clear(self) -> None:
        """Remove every value."""
        async with self._lock:
            self._data.clear()

    async def disconnect(self) -> None:
        """Disconnect from the storage backend (no-op for memory)."""
        pass

    def __len__(self) -> int:
        return len(self._data)
