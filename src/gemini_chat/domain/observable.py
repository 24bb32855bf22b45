"""Single-value observable cell and cancellable subscription handles.

``Observable`` is the state holder the controllers publish through: the host
reads ``value``, subscribes for changes, or iterates ``updates()``.  Delivery
is synchronous and last-value-wins; nothing is buffered for late subscribers
beyond the current value.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class Subscription:
    """Handle returned by every ``subscribe`` call.  ``cancel()`` is idempotent."""

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None


class Observable(Generic[T]):
    """A value cell that notifies subscribers whenever it is replaced."""

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._subscribers: dict[int, Callable[[T], None]] = {}
        self._next_key = 0

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        self._value = new_value
        # Snapshot so callbacks may (un)subscribe while we iterate.
        for callback in list(self._subscribers.values()):
            self._deliver(callback, new_value)

    def subscribe(
        self, callback: Callable[[T], None], *, emit_current: bool = False
    ) -> Subscription:
        key = self._next_key
        self._next_key += 1
        self._subscribers[key] = callback
        if emit_current:
            self._deliver(callback, self._value)
        return Subscription(lambda: self._subscribers.pop(key, None))

    @staticmethod
    def _deliver(callback: Callable[[T], None], value: T) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("Observable subscriber raised; continuing delivery")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def updates(self) -> AsyncIterator[T]:
        """Yield the current value, then every newer one.

        A consumer that falls behind skips straight to the latest value.
        """
        queue: asyncio.Queue[T] = asyncio.Queue(maxsize=1)

        def _offer(value: T) -> None:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(value)

        subscription = self.subscribe(_offer, emit_current=True)
        try:
            while True:
                yield await queue.get()
        finally:
            subscription.cancel()
