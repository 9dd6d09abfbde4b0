"""A manually advanced ``Scheduler`` for replays and tests."""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Callable
from typing import Any


class ManualHandle:
    __slots__ = ("when", "_callback", "_args", "cancelled")

    def __init__(self, when: float, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.when = when
        self._callback = callback
        self._args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def _run(self) -> None:
        self._callback(*self._args)


class ManualScheduler:
    """Runs callbacks only when the clock is advanced explicitly.

    Callbacks due at the same instant run in the order they were scheduled.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, ManualHandle]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualHandle:
        handle = ManualHandle(self._now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    def call_soon_threadsafe(self, callback: Callable[..., Any], *args: Any) -> ManualHandle:
        return self.call_later(0.0, callback, *args)

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def advance(self, seconds: float = 0.0) -> int:
        return self.advance_to(self._now + seconds)

    def advance_to(self, when: float) -> int:
        """Run everything due up to *when*, in time order. Returns how many ran."""
        ran = 0
        while self._queue and self._queue[0][0] <= when:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            handle._run()
            ran += 1
        self._now = max(self._now, when)
        return ran
