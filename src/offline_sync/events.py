"""Broadcast streams for observers of the sync engine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

Listener = Callable[[T], None]


class EventStream(Generic[T]):
    """In-process broadcast of values to listeners and async subscribers.

    Purely observational: a failing listener is logged and skipped, and
    emitting never blocks the emitter.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Listener[T]] = []
        self._queues: set[asyncio.Queue[T]] = set()
        self._latest: T | None = None

    @property
    def latest(self) -> T | None:
        """The most recently emitted value, if any."""
        return self._latest

    def listen(self, listener: Listener[T]) -> Callable[[], None]:
        """Call ``listener`` on every emit. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def subscribe(self) -> AsyncIterator[T]:
        """Iterate over values emitted from now on."""
        queue: asyncio.Queue[T] = asyncio.Queue()
        self._queues.add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.discard(queue)

    def emit(self, value: T) -> None:
        self._latest = value
        for queue in self._queues:
            queue.put_nowait(value)
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as exc:
                logger.error("%s listener failed: %s", self._name, exc)
