"""Incremental reader for one agent's transcript."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

from attowatch.coordinator.timers import PeriodicCall, Scheduler
from attowatch.protocol.io import read_from_offset
from attowatch.protocol.models import TrackedAgent
from attowatch.tailer.notify import ChangeNotifier

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 2.0


class Tailer:
    """Reads only what was appended since the agent's ``read_offset``.

    Two wake-up sources feed ``wake()``: change notifications (when a
    notifier is supplied) and an unconditional poll. Redundant wake-ups
    are harmless; a second wake with nothing new reads zero bytes.
    """

    def __init__(
        self,
        agent: TrackedAgent,
        on_line: Callable[[str], object],
        scheduler: Scheduler,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self.agent = agent
        self._on_line = on_line
        self._notifier = notifier
        self._poll = PeriodicCall(scheduler, poll_interval, self.wake, name=f"tail[{agent.agent_id}]")
        self._unwatch: Callable[[], None] | None = None

    @property
    def path(self) -> Path:
        return self.agent.log_path

    @property
    def running(self) -> bool:
        return self._poll.running

    def start(self) -> None:
        if self._poll.running:
            return
        self._watch()
        self._poll.start()

    def stop(self) -> None:
        self._poll.stop()
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None

    def rebind(self, path: Path) -> None:
        """Follow a different transcript from its beginning."""
        was_running = self._poll.running
        self.stop()
        self.agent.log_path = Path(path)
        self.agent.buffer.reset(0)
        if was_running:
            self.start()

    def read_lines(self) -> Iterator[str]:
        """Complete lines appended since the last read, in file order."""
        try:
            chunk = read_from_offset(self.path, self.agent.buffer.offset)
        except FileNotFoundError:
            return iter(())
        except OSError as exc:
            logger.warning("Agent %d: read of %s failed: %s", self.agent.agent_id, self.path, exc)
            return iter(())
        return self.agent.buffer.feed(chunk)

    def wake(self) -> int:
        """Read and dispatch new lines. Returns how many lines were dispatched.

        A no-op once stopped, so a notification queued before ``stop()``
        cannot feed a removed agent.
        """
        if not self._poll.running:
            return 0
        count = 0
        for line in self.read_lines():
            self._on_line(line)
            count += 1
        return count

    def _watch(self) -> None:
        if self._notifier is not None:
            self._unwatch = self._notifier.watch(self.path, self.wake)
