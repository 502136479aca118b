"""Shared pytest fixtures."""

from typing import Any

import pytest

from offline_sync import (
    AsyncMemoryStore,
    CacheStore,
    ExecutorResponse,
    HttpMethod,
    MetadataTracker,
    OfflineConfig,
    RequestQueue,
)


class FakeClock:
    """Controllable clock returning Unix milliseconds."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeExecutor:
    """Network executor that records calls and replays scripted responses.

    ``responses`` maps a url to a list of results consumed in order; a
    result is an ExecutorResponse or an exception to raise. Unscripted
    urls succeed.
    """

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.responses: dict[str, list[ExecutorResponse | Exception]] = {}

    def script(self, url: str, *results: ExecutorResponse | Exception) -> None:
        self.responses.setdefault(url, []).extend(results)

    async def __call__(
        self,
        method: HttpMethod,
        url: str,
        headers: dict[str, str] | None = None,
        body: Any = None,
        *,
        force: bool = False,
    ) -> ExecutorResponse:
        self.calls.append(
            {"method": method, "url": url, "headers": headers, "body": body, "force": force}
        )
        queued = self.responses.get(url)
        if queued:
            result = queued.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return ExecutorResponse(success=True, body={"ok": True}, status_code=200)

    @property
    def urls(self) -> list[str]:
        return [call["url"] for call in self.calls]


@pytest.fixture
def clock() -> FakeClock:
    """A clock frozen at a fixed instant."""
    return FakeClock()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def config() -> OfflineConfig:
    """Small limits with a short, predictable backoff."""
    return OfflineConfig(
        max_retries=3,
        retry_delay="1s",
        retry_multiplier=2.0,
        max_retry_delay="10s",
        max_queue_size=10,
        sync_timeout="1s",
        cache_duration="1h",
    )


@pytest.fixture
def metadata_store() -> AsyncMemoryStore:
    return AsyncMemoryStore()


@pytest.fixture
def cache_store() -> AsyncMemoryStore:
    return AsyncMemoryStore()


@pytest.fixture
def queue_store() -> AsyncMemoryStore:
    return AsyncMemoryStore()


@pytest.fixture
def tracker(metadata_store: AsyncMemoryStore, clock: FakeClock) -> MetadataTracker:
    return MetadataTracker(metadata_store, clock=clock)


@pytest.fixture
def cache(cache_store: AsyncMemoryStore, tracker: MetadataTracker) -> CacheStore:
    return CacheStore(cache_store, tracker, default_ttl=60_000)


@pytest.fixture
def queue(
    queue_store: AsyncMemoryStore, config: OfflineConfig, clock: FakeClock
) -> RequestQueue:
    return RequestQueue(
        queue_store,
        max_queue_size=config.max_queue_size,
        max_retries=config.max_retries,
        clock=clock,
    )
