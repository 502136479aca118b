"""Tests for the OfflineSupport composition root."""

import logging

import pytest

from offline_sync import (
    CachePolicy,
    ConnectivityStatus,
    ExecutorResponse,
    NetworkError,
    OfflineConfig,
    OfflineRequest,
    QueueFullError,
    RequestPriority,
    create_offline_support,
)
from offline_sync.adapters import AsyncMemoryStore

from conftest import FakeClock, FakeExecutor


@pytest.fixture
def support(executor: FakeExecutor, clock: FakeClock):
    return create_offline_support(
        executor=executor,
        config=OfflineConfig(auto_sync=False, max_queue_size=3),
        clock=clock,
    )


class TestCreateOfflineSupport:
    def test_instances_are_independent(self, executor: FakeExecutor) -> None:
        first = create_offline_support(executor=executor)
        second = create_offline_support(executor=executor)
        assert first.queue is not second.queue
        assert first.cache is not second.cache

    def test_cache_uses_config_duration(self, executor: FakeExecutor) -> None:
        support = create_offline_support(
            executor=executor, config=OfflineConfig(cache_duration="2m")
        )
        assert support.cache._default_ttl == 120_000

    def test_enable_logging_sets_debug(self, executor: FakeExecutor) -> None:
        logger = logging.getLogger("offline_sync")
        previous = logger.level
        try:
            create_offline_support(
                executor=executor, config=OfflineConfig(enable_logging=True)
            )
            assert logger.level == logging.DEBUG
        finally:
            logger.setLevel(previous)


class TestOfflineSupport:
    async def test_fetch_goes_through_cache(self, support) -> None:
        calls = 0

        async def fetch() -> dict:
            nonlocal calls
            calls += 1
            return {"name": "Ann"}

        policy = CachePolicy.cache_first(ttl="1m")
        assert await support.fetch("u1", fetch, policy) == {"name": "Ann"}
        assert await support.fetch("u1", fetch, policy) == {"name": "Ann"}
        assert calls == 1

    async def test_queue_request_then_sync(self, support, executor: FakeExecutor) -> None:
        request = await support.queue_request(
            "post", "/posts", body={"title": "hi"}, priority="high"
        )
        assert request.priority is RequestPriority.HIGH
        result = await support.sync()
        assert result.synced_count == 1
        assert executor.urls == ["/posts"]

    async def test_queue_request_uses_injected_clock(
        self, support, clock: FakeClock
    ) -> None:
        request = await support.queue_request("POST", "/posts")
        assert request.created_at == clock.now

    async def test_clear_all_data(self, support, executor: FakeExecutor) -> None:
        await support.cache.put("u1", {"name": "Ann"})
        await support.queue_request("POST", "/posts")
        await support.clear_all_data()

        assert await support.cache.keys() == []
        assert (await support.metadata.stats()).total_entries == 0
        assert len(support.queue) == 0
        result = await support.sync()
        assert result.synced_count == 0
        assert executor.calls == []

    async def test_queue_full(self, support) -> None:
        for n in range(3):
            await support.queue_request("POST", f"/posts/{n}")
        with pytest.raises(QueueFullError):
            await support.queue_request("POST", "/posts/overflow")

    async def test_send_online(self, support, executor: FakeExecutor) -> None:
        response = await support.send("PUT", "/users/1", body={"a": 1})
        assert isinstance(response, ExecutorResponse)
        assert response.success
        assert len(support.queue) == 0

    async def test_send_queues_on_network_error(self, support, executor: FakeExecutor) -> None:
        executor.script("/users/1", NetworkError("unreachable"))
        queued = await support.send("PUT", "/users/1", body={"a": 1})
        assert isinstance(queued, OfflineRequest)
        assert support.queue.get(queued.id) is not None

    async def test_send_queues_when_offline(self, executor: FakeExecutor) -> None:
        async def offline() -> ConnectivityStatus:
            return ConnectivityStatus.NONE

        support = create_offline_support(executor=executor, connectivity=offline)
        queued = await support.send("DELETE", "/users/1")
        assert isinstance(queued, OfflineRequest)
        assert executor.calls == []

    async def test_start_restores_queue(self, executor: FakeExecutor) -> None:
        queue_store = AsyncMemoryStore()
        config = OfflineConfig(auto_sync=False)
        first = create_offline_support(
            executor=executor, config=config, queue_store=queue_store
        )
        await first.queue_request("POST", "/a")

        second = create_offline_support(
            executor=executor, config=config, queue_store=queue_store
        )
        await second.start()
        assert len(second.queue) == 1

    async def test_start_and_close_auto_sync(self, executor: FakeExecutor) -> None:
        support = create_offline_support(executor=executor)
        await support.start()
        assert support.coordinator.is_auto_syncing
        await support.aclose()
        assert not support.coordinator.is_auto_syncing
