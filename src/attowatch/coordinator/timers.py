"""Per-agent cancellable timers on a single event loop.

``Scheduler`` is the subset of ``asyncio.AbstractEventLoop`` attowatch
needs, so production code passes the running loop and tests pass a manual
clock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def time(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Cancellable: ...

    def call_soon_threadsafe(self, callback: Callable[..., Any], *args: Any) -> Any: ...


class TimerKind(StrEnum):
    IDLE = "idle"      # text-only turn fell silent -> "waiting"
    STALL = "stall"    # non-exempt tool made no progress -> "needs attention"


class TimerService:
    """At most one live timer per (agent id, kind), plus per-agent deferred calls."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._timers: dict[tuple[int, TimerKind], Cancellable] = {}
        self._deferred: dict[int, set[Cancellable]] = {}

    def start(
        self,
        agent_id: int,
        kind: TimerKind,
        delay: float,
        fn: Callable[[], None],
    ) -> Cancellable:
        """Schedule *fn* after *delay*, replacing any live timer of the same kind."""
        self.cancel(agent_id, kind)
        key = (agent_id, kind)

        def _fire() -> None:
            self._timers.pop(key, None)
            fn()

        handle = self._scheduler.call_later(delay, _fire)
        self._timers[key] = handle
        return handle

    def cancel(self, agent_id: int, kind: TimerKind) -> bool:
        handle = self._timers.pop((agent_id, kind), None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def is_active(self, agent_id: int, kind: TimerKind) -> bool:
        return (agent_id, kind) in self._timers

    def defer(self, agent_id: int, delay: float, fn: Callable[[], None]) -> Cancellable:
        """One-shot call owned by *agent_id*; many may be pending at once."""
        pending = self._deferred.setdefault(agent_id, set())
        handle: Cancellable | None = None

        def _fire() -> None:
            pending.discard(handle)  # type: ignore[arg-type]
            fn()

        handle = self._scheduler.call_later(delay, _fire)
        pending.add(handle)
        return handle

    def cancel_all(self, agent_id: int) -> None:
        """Cancel every timer and deferred call owned by *agent_id*."""
        for kind in TimerKind:
            self.cancel(agent_id, kind)
        for handle in self._deferred.pop(agent_id, set()):
            handle.cancel()

    def live_count(self, agent_id: int) -> int:
        timers = sum(1 for (aid, _kind) in self._timers if aid == agent_id)
        return timers + len(self._deferred.get(agent_id, ()))


class PeriodicCall:
    """Re-arming ``call_later`` loop; exceptions are logged and the loop continues."""

    def __init__(
        self,
        scheduler: Scheduler,
        interval: float,
        fn: Callable[[], None],
        *,
        name: str = "periodic",
    ) -> None:
        self._scheduler = scheduler
        self._interval = interval
        self._fn = fn
        self._name = name
        self._handle: Cancellable | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._arm()

    def stop(self) -> None:
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _arm(self) -> None:
        self._handle = self._scheduler.call_later(self._interval, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if not self._running:
            return
        try:
            self._fn()
        except Exception:
            logger.exception("%s callback failed; retrying next interval", self._name)
        if self._running and self._handle is None:
            self._arm()
