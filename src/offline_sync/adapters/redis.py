"""Redis key-value store."""

from __future__ import annotations

import json
from typing import Any


class AsyncRedisStore:
    """Async Redis store for one namespace.

    Values are stored as JSON strings under ``{prefix}:{namespace}:{key}``.
    """

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        namespace: str,
        prefix: str = "offline",
    ) -> None:
        self._client = client
        self._namespace = namespace
        self._prefix = prefix

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}:{self._namespace}:{key}"

    def _strip(self, full_key: bytes | str) -> str:
        if isinstance(full_key, bytes):
            full_key = full_key.decode("utf-8")
        return full_key[len(self._prefix) + len(self._namespace) + 2 :]

    async def get(self, key: str) -> Any | None:
        """Get a value by key."""
        data = await self._client.get(self._full_key(key))
        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)

    async def put(self, key: str, value: Any) -> None:
        """Store a value."""
        await self._client.set(self._full_key(key), json.dumps(value))

    async def delete(self, key: str) -> None:
        """Delete a value."""
        await self._client.delete(self._full_key(key))

    async def keys(self) -> list[str]:
        """List every key in the namespace."""
        found: list[str] = []
        cursor: int = 0
        pattern = f"{self._prefix}:{self._namespace}:*"
        while True:
            cursor, batch = await self._client.scan(cursor, match=pattern, count=100)
            found.extend(self._strip(k) for k in batch)
            if cursor == 0:
                break
        return list(dict.fromkeys(found))  # SCAN may repeat keys

    async def clear(self) -> None:
        """Remove every key in the namespace."""
        cursor: int = 0
        pattern = f"{self._prefix}:{self._namespace}:*"
        while True:
            cursor, batch = await self._client.scan(cursor, match=pattern, count=100)
            if batch:
                await self._client.delete(*batch)
            if cursor == 0:
                break

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
