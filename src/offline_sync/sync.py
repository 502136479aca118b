"""Sync coordinator - drains the request queue against the network.

One pass:
1. Honour the sync policy's connectivity/charging constraints
2. Walk the queue in priority order, executing each due request
3. Resolve conflicts per the policy's conflict resolution
4. Garbage-collect the cache (expired first, then least accessed)
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from offline_sync.adapters.base import (
    ChargingSignal,
    ConnectivitySignal,
    NetworkExecutor,
)
from offline_sync.cache import CacheStore
from offline_sync.config import ConflictResolution, OfflineConfig, SyncPolicy
from offline_sync.errors import ConflictUnresolved, PersistenceError
from offline_sync.events import EventStream
from offline_sync.queue import RequestQueue
from offline_sync.types import (
    Clock,
    ConnectivityStatus,
    ExecutorResponse,
    OfflineRequest,
    SyncResult,
    now_ms,
)

logger = logging.getLogger(__name__)

# (queued request, server body) -> body to re-submit
MergeFunction = Callable[[OfflineRequest, Any], Awaitable[Any]]

POLICY_CONSTRAINT_UNMET = "policy constraint unmet"
NO_CONNECTIVITY = "no connectivity"

_UNSET: Any = object()


class _Outcome(enum.Enum):
    SYNCED = "synced"
    FAILED = "failed"
    DEFERRED = "deferred"


class SyncCoordinator:
    """Runs sync passes, one at a time, and schedules them.

    A ``sync()`` issued while a pass is running awaits that pass and
    returns its result. Passes are shielded: cancelling a caller or
    stopping auto-sync never interrupts a pass mid-request.
    """

    def __init__(
        self,
        queue: RequestQueue,
        executor: NetworkExecutor,
        *,
        config: OfflineConfig,
        cache: CacheStore | None = None,
        policy: SyncPolicy | None = None,
        connectivity: ConnectivitySignal | None = None,
        charging: ChargingSignal | None = None,
        merge: MergeFunction | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._queue = queue
        self._executor = executor
        self._config = config
        self._cache = cache
        self._policy = policy or config.sync_policy
        self._connectivity = connectivity
        self._charging = charging
        self._merge = merge
        self._clock = clock

        self._current: asyncio.Task[SyncResult] | None = None
        self._cancel_requested = False
        self._auto_task: asyncio.Task[None] | None = None
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._last_status: ConnectivityStatus | None = None
        self._deferred: dict[str, ConflictUnresolved] = {}
        self.completed: EventStream[SyncResult] = EventStream("sync-completed")

    @property
    def policy(self) -> SyncPolicy:
        return self._policy

    @property
    def is_syncing(self) -> bool:
        return self._current is not None and not self._current.done()

    @property
    def is_auto_syncing(self) -> bool:
        return self._auto_task is not None and not self._auto_task.done()

    @property
    def last_result(self) -> SyncResult | None:
        return self.completed.latest

    @property
    def deferred(self) -> dict[str, ConflictUnresolved]:
        """Requests suspended on a conflict, keyed by request id."""
        return dict(self._deferred)

    async def sync(self) -> SyncResult:
        """Run a sync pass, or join the one already running."""
        if self._current is None or self._current.done():
            self._cancel_requested = False
            self._current = asyncio.create_task(self._run_pass())
        return await asyncio.shield(self._current)

    def cancel(self) -> None:
        """Ask the running pass to stop before its next request."""
        if self.is_syncing:
            self._cancel_requested = True

    async def resolve_deferred(
        self, request_id: str, body: Any = _UNSET
    ) -> OfflineRequest | None:
        """Release a request suspended for the user.

        With ``body`` given, the queued body is replaced first. The request
        is attempted again on the next pass.
        """
        if request_id not in self._deferred:
            raise KeyError(request_id)
        request = self._queue.get(request_id)
        if request is not None and body is not _UNSET:
            request = await self._queue.update(request_id, body=body)
        del self._deferred[request_id]
        return request

    async def discard_deferred(self, request_id: str) -> bool:
        """Give up on a suspended request, accepting the server's state."""
        if request_id not in self._deferred:
            raise KeyError(request_id)
        del self._deferred[request_id]
        return await self._queue.drop(request_id, "conflict discarded by user")

    def start_auto_sync(self) -> None:
        """Sync every ``sync_interval`` until stopped."""
        if self.is_auto_syncing:
            return
        self._auto_task = asyncio.create_task(self._auto_sync_loop())
        logger.info("Auto-sync started (every %d ms)", self._config.sync_interval)

    def stop_auto_sync(self) -> None:
        """Stop the timer. A pass already running is left to finish."""
        if self._auto_task is not None:
            self._auto_task.cancel()
            self._auto_task = None
            logger.info("Auto-sync stopped")

    def on_connectivity_changed(
        self, status: ConnectivityStatus
    ) -> asyncio.Task[SyncResult] | None:
        """Feed a connectivity change; syncs when the network comes back.

        Returns the scheduled sync task, if any.
        """
        status = ConnectivityStatus(status)
        previous, self._last_status = self._last_status, status
        regained = status.is_online and (previous is None or not previous.is_online)
        if not (regained and self._config.sync_on_reconnect and len(self._queue)):
            return None
        logger.info("Connectivity regained (%s), syncing", status.value)
        task = asyncio.create_task(self.sync())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def aclose(self) -> None:
        """Stop auto-sync and wait for any running pass."""
        self.stop_auto_sync()
        pending = list(self._background_tasks)
        if self._current is not None:
            pending.append(self._current)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _auto_sync_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.sync_interval / 1000)
            try:
                await self.sync()
            except Exception:
                logger.exception("Scheduled sync failed")

    async def _run_pass(self) -> SyncResult:
        try:
            result = await self._drain()
        except PersistenceError as exc:
            logger.exception("Sync pass aborted")
            result = SyncResult.aborted(str(exc), self._clock())
        except Exception as exc:
            logger.exception("Sync pass failed unexpectedly")
            result = SyncResult.aborted(
                str(exc) or type(exc).__name__, self._clock()
            )
        self.completed.emit(result)
        return result

    async def _drain(self) -> SyncResult:
        unmet = await self._unmet_constraint()
        if unmet is not None:
            logger.info("Sync skipped: %s", unmet)
            return SyncResult.aborted(unmet, self._clock())

        synced = failed = 0
        deferred: list[str] = []
        cancelled = False
        max_retries = self._queue.max_retries

        for request in self._queue.dequeue_ordered():
            if self._cancel_requested:
                cancelled = True
                break
            if request.id not in self._queue:
                continue
            if request.id in self._deferred:
                deferred.append(request.id)
                continue
            if not request.should_retry(max_retries):
                await self._queue.drop(request.id, "retries exhausted")
                continue
            if not self._is_due(request):
                continue

            outcome = await self._process(request)
            if outcome is _Outcome.SYNCED:
                synced += 1
            elif outcome is _Outcome.FAILED:
                failed += 1
            else:
                deferred.append(request.id)

        evicted = await self._collect_garbage()
        result = SyncResult(
            success=True,
            synced_count=synced,
            timestamp=self._clock(),
            failed_count=failed,
            deferred=tuple(deferred),
            evicted_count=evicted,
            cancelled=cancelled,
        )
        logger.info(
            "Sync pass done: %d synced, %d failed, %d deferred, %d evicted",
            synced,
            failed,
            len(deferred),
            evicted,
        )
        return result

    async def _unmet_constraint(self) -> str | None:
        """Reason the pass may not run, or None."""
        status: ConnectivityStatus | None = None
        if self._connectivity is not None:
            try:
                status = ConnectivityStatus(await self._connectivity())
            except Exception as exc:
                logger.warning("Connectivity signal failed: %s", exc)
        if status is ConnectivityStatus.NONE:
            return NO_CONNECTIVITY

        if self._policy.sync_only_on_wifi and (status is None or not status.is_unmetered):
            return POLICY_CONSTRAINT_UNMET

        if self._policy.sync_only_when_charging:
            charging = False
            if self._charging is not None:
                try:
                    charging = bool(await self._charging())
                except Exception as exc:
                    logger.warning("Charging signal failed: %s", exc)
            if not charging:
                return POLICY_CONSTRAINT_UNMET
        return None

    def _is_due(self, request: OfflineRequest) -> bool:
        """Whether the backoff after the last failed attempt has elapsed."""
        if request.retry_count == 0 or request.last_attempt_at is None:
            return True
        delay = self._config.backoff_delay(request.retry_count)
        return self._clock() >= request.last_attempt_at + delay

    async def _attempt(
        self, request: OfflineRequest, *, body: Any = _UNSET, force: bool = False
    ) -> ExecutorResponse:
        """Execute once under the per-request timeout.

        Transport exceptions and timeouts come back as failed responses.
        """
        payload = request.body if body is _UNSET else body
        try:
            return await asyncio.wait_for(
                self._executor(
                    request.method,
                    request.url,
                    request.headers,
                    payload,
                    force=force,
                ),
                timeout=self._config.sync_timeout / 1000,
            )
        except asyncio.TimeoutError:
            return ExecutorResponse(success=False, error="timeout")
        except Exception as exc:
            return ExecutorResponse(success=False, error=str(exc) or type(exc).__name__)

    async def _process(self, request: OfflineRequest) -> _Outcome:
        response = await self._attempt(request)
        if response.success:
            await self._queue.mark_succeeded(request.id)
            return _Outcome.SYNCED
        if response.conflict:
            return await self._resolve_conflict(request, response)
        return await self._fail(request, response.error or "request failed")

    async def _fail(self, request: OfflineRequest, error: str) -> _Outcome:
        logger.warning(
            "Sync of %s %s failed: %s", request.method.value, request.url, error
        )
        await self._queue.mark_failed(request.id, error)
        return _Outcome.FAILED

    async def _resolve_conflict(
        self, request: OfflineRequest, response: ExecutorResponse
    ) -> _Outcome:
        resolution = self._policy.conflict_resolution
        logger.info("Conflict on request %s, resolving as %s", request.id, resolution.value)

        if resolution is ConflictResolution.SERVER_WINS:
            await self._queue.mark_succeeded(request.id)
            return _Outcome.SYNCED

        if resolution is ConflictResolution.CLIENT_WINS:
            forced = await self._attempt(request, force=True)
            if forced.success:
                await self._queue.mark_succeeded(request.id)
                return _Outcome.SYNCED
            return await self._fail(request, forced.error or "conflict")

        if resolution is ConflictResolution.MERGE:
            if self._merge is None:
                await self._queue.drop(request.id, "conflict with no merge function")
                return _Outcome.FAILED
            try:
                merged = await self._merge(request, response.body)
            except Exception as exc:
                await self._queue.drop(request.id, f"merge failed: {exc}")
                return _Outcome.FAILED
            resubmitted = await self._attempt(request, body=merged, force=True)
            if resubmitted.success:
                await self._queue.mark_succeeded(request.id)
                return _Outcome.SYNCED
            await self._queue.update(request.id, body=merged)
            return await self._fail(request, resubmitted.error or "conflict")

        # Prompt user - leave the request untouched until resolved
        self._deferred[request.id] = ConflictUnresolved(request.id, response.body)
        logger.info("Request %s deferred until the user resolves it", request.id)
        return _Outcome.DEFERRED

    async def _collect_garbage(self) -> int:
        if self._cache is None:
            return 0
        evicted = await self._cache.purge_expired()
        evicted += await self._cache.evict_to_budget(
            self._config.max_cache_bytes, self._config.max_cache_entries
        )
        return evicted
