"""Tests for cache policy, sync policy and module configuration."""

from datetime import timedelta

import pytest

from offline_sync import (
    CachePolicy,
    CacheStrategy,
    ConfigValidationError,
    ConflictResolution,
    OfflineConfig,
    SyncPolicy,
)


class TestOfflineConfig:
    """Tests for OfflineConfig construction and validation."""

    def test_defaults_are_valid(self) -> None:
        config = OfflineConfig()
        assert config.max_retries == 3
        assert config.retry_delay == 1000
        assert config.sync_interval == 15 * 60_000
        assert config.queue_persistence is True
        assert config.default_cache_policy.strategy is CacheStrategy.NETWORK_FIRST
        assert config.sync_policy.conflict_resolution is ConflictResolution.SERVER_WINS

    def test_durations_normalised_to_ms(self) -> None:
        config = OfflineConfig(
            cache_duration=timedelta(minutes=2),
            retry_delay=250,
            sync_timeout="45s",
        )
        assert config.cache_duration == 120_000
        assert config.retry_delay == 250
        assert config.sync_timeout == 45_000

    def test_presets(self) -> None:
        dev = OfflineConfig.development()
        prod = OfflineConfig.production()
        assert dev.enable_logging is True
        assert dev.max_retries == 2
        assert prod.max_retries == 5
        assert prod.cache_duration == 24 * 3_600_000
        assert prod.enable_logging is False

    def test_preset_overrides(self) -> None:
        config = OfflineConfig.development(max_queue_size=7)
        assert config.max_queue_size == 7

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            OfflineConfig(max_retries=-1)
        assert exc_info.value.fields == ["max_retries"]

    def test_zero_retry_delay_rejected(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            OfflineConfig(retry_delay=0)
        assert "retry_delay" in exc_info.value.fields

    def test_every_offending_field_listed(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            OfflineConfig(
                max_retries=-1,
                cache_duration=-5,
                max_queue_size=0,
                sync_timeout="soon",
            )
        assert set(exc_info.value.fields) == {
            "max_retries",
            "cache_duration",
            "max_queue_size",
            "sync_timeout",
        }

    def test_validation_error_is_value_error(self) -> None:
        with pytest.raises(ValueError, match="max_cache_entries"):
            OfflineConfig(max_cache_entries=0)

    def test_max_retry_delay_below_retry_delay_rejected(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            OfflineConfig(retry_delay="10s", max_retry_delay="1s")
        assert exc_info.value.fields == ["max_retry_delay"]

    def test_zero_retries_allowed(self) -> None:
        assert OfflineConfig(max_retries=0).max_retries == 0

    def test_backoff_delay(self) -> None:
        config = OfflineConfig(
            retry_delay="1s", retry_multiplier=2.0, max_retry_delay="5s"
        )
        assert config.backoff_delay(0) == 1000
        assert config.backoff_delay(1) == 2000
        assert config.backoff_delay(2) == 4000
        assert config.backoff_delay(3) == 5000  # capped

    def test_max_cache_bytes(self) -> None:
        assert OfflineConfig(max_cache_size_mb=1).max_cache_bytes == 1024 * 1024

    def test_frozen(self) -> None:
        config = OfflineConfig()
        with pytest.raises(AttributeError):
            config.max_retries = 10  # type: ignore[misc]


class TestCachePolicy:
    """Tests for CachePolicy presets."""

    def test_presets(self) -> None:
        assert CachePolicy.cache_first().strategy is CacheStrategy.CACHE_FIRST
        assert CachePolicy.network_first().strategy is CacheStrategy.NETWORK_FIRST
        assert CachePolicy.cache_only().strategy is CacheStrategy.CACHE_ONLY
        assert CachePolicy.network_only().strategy is CacheStrategy.NETWORK_ONLY
        assert (
            CachePolicy.stale_while_revalidate().strategy
            is CacheStrategy.STALE_WHILE_REVALIDATE
        )

    def test_ttl_parsed(self) -> None:
        assert CachePolicy.cache_first(ttl="5m").ttl == 300_000
        assert CachePolicy.cache_first().ttl is None

    def test_strategy_from_string(self) -> None:
        assert CachePolicy("cache_only").strategy is CacheStrategy.CACHE_ONLY  # type: ignore[arg-type]

    def test_negative_ttl_rejected(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            CachePolicy.cache_first(ttl=-1)
        assert exc_info.value.fields == ["ttl"]


class TestSyncPolicy:
    def test_defaults(self) -> None:
        policy = SyncPolicy()
        assert policy.conflict_resolution is ConflictResolution.SERVER_WINS
        assert policy.sync_only_on_wifi is False
        assert policy.sync_only_when_charging is False

    def test_resolution_from_string(self) -> None:
        policy = SyncPolicy(conflict_resolution="merge")  # type: ignore[arg-type]
        assert policy.conflict_resolution is ConflictResolution.MERGE
