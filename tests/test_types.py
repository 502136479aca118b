"""Tests for core record types."""

import pytest

from offline_sync import (
    CacheMetadata,
    ConnectivityStatus,
    HttpMethod,
    OfflineRequest,
    RequestPriority,
    SyncResult,
)


class TestCacheMetadata:
    def test_expiry_boundary(self) -> None:
        metadata = CacheMetadata(
            key="k", created_at=1000, expires_at=2000, size_in_bytes=10
        )
        assert not metadata.is_expired_at(1999)
        assert metadata.is_expired_at(2000)
        assert metadata.is_expired_at(2001)

    def test_no_expiry(self) -> None:
        metadata = CacheMetadata(
            key="k", created_at=1000, expires_at=None, size_in_bytes=10
        )
        assert not metadata.is_expired_at(10**15)

    def test_age_never_negative(self) -> None:
        metadata = CacheMetadata(
            key="k", created_at=5000, expires_at=None, size_in_bytes=0
        )
        assert metadata.age_at(7000) == 2000
        assert metadata.age_at(4000) == 0

    def test_dict_round_trip(self) -> None:
        metadata = CacheMetadata(
            key="k",
            created_at=1,
            expires_at=2,
            size_in_bytes=3,
            access_count=4,
            last_accessed_at=5,
            etag='"abc"',
            headers={"content-type": "application/json"},
        )
        assert CacheMetadata.from_dict(metadata.to_dict()) == metadata


class TestOfflineRequest:
    def test_defaults(self) -> None:
        request = OfflineRequest(method=HttpMethod.POST, url="/posts")
        assert request.priority is RequestPriority.NORMAL
        assert request.retry_count == 0
        assert request.last_error is None
        assert len(request.id) == 32
        assert request.created_at > 0

    def test_ids_are_unique(self) -> None:
        first = OfflineRequest(method=HttpMethod.POST, url="/a")
        second = OfflineRequest(method=HttpMethod.POST, url="/a")
        assert first.id != second.id

    def test_accepts_strings(self) -> None:
        request = OfflineRequest(method="post", url="/a", priority="high")  # type: ignore[arg-type]
        assert request.method is HttpMethod.POST
        assert request.priority is RequestPriority.HIGH

    def test_unknown_method_rejected(self) -> None:
        with pytest.raises(ValueError):
            OfflineRequest(method="FETCH", url="/a")  # type: ignore[arg-type]

    def test_should_retry(self) -> None:
        request = OfflineRequest(method=HttpMethod.PUT, url="/a", retry_count=2)
        assert request.should_retry(3)
        assert not request.should_retry(2)
        assert not request.should_retry(0)

    def test_dict_round_trip(self) -> None:
        request = OfflineRequest(
            method=HttpMethod.PATCH,
            url="/users/1",
            headers={"If-Match": '"v1"'},
            body={"name": "Ann"},
            priority=RequestPriority.LOW,
            retry_count=1,
            last_error="HTTP 500",
            last_attempt_at=42,
            metadata={"screen": "profile"},
            sequence=7,
        )
        assert OfflineRequest.from_dict(request.to_dict()) == request

    def test_priority_rank(self) -> None:
        ranks = [p.rank for p in (RequestPriority.HIGH, RequestPriority.NORMAL, RequestPriority.LOW)]
        assert ranks == sorted(ranks)


class TestConnectivityStatus:
    def test_flags(self) -> None:
        assert ConnectivityStatus.WIFI.is_unmetered
        assert ConnectivityStatus.ETHERNET.is_unmetered
        assert not ConnectivityStatus.CELLULAR.is_unmetered
        assert ConnectivityStatus.CELLULAR.is_online
        assert not ConnectivityStatus.NONE.is_online


def test_sync_result_aborted() -> None:
    result = SyncResult.aborted("policy constraint unmet", 123)
    assert result.success is False
    assert result.synced_count == 0
    assert result.error_message == "policy constraint unmet"
    assert result.timestamp == 123
