"""Tests for the memory store."""

import pytest

from offline_sync import AsyncKeyValueStore, AsyncMemoryStore


@pytest.fixture
def store() -> AsyncMemoryStore:
    return AsyncMemoryStore()


class TestAsyncMemoryStore:
    """Tests for AsyncMemoryStore."""

    def test_satisfies_protocol(self, store: AsyncMemoryStore) -> None:
        assert isinstance(store, AsyncKeyValueStore)

    async def test_get_nonexistent_returns_none(self, store: AsyncMemoryStore) -> None:
        assert await store.get("nonexistent") is None

    async def test_put_and_get(self, store: AsyncMemoryStore) -> None:
        await store.put("key1", {"id": "123"})
        assert await store.get("key1") == {"id": "123"}

    async def test_put_replaces(self, store: AsyncMemoryStore) -> None:
        await store.put("key1", 1)
        await store.put("key1", 2)
        assert await store.get("key1") == 2
        assert len(store) == 1

    async def test_delete_is_idempotent(self, store: AsyncMemoryStore) -> None:
        await store.put("key1", "value")
        await store.delete("key1")
        await store.delete("key1")
        assert await store.get("key1") is None

    async def test_keys_in_insertion_order(self, store: AsyncMemoryStore) -> None:
        await store.put("b", 1)
        await store.put("a", 2)
        assert await store.keys() == ["b", "a"]

    async def test_clear(self, store: AsyncMemoryStore) -> None:
        await store.put("key1", 1)
        await store.put("key2", 2)
        await store.clear()
        assert await store.keys() == []
