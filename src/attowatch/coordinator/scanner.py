"""Conversation-reset detection by watching a transcript directory.

The log producer starts a brand-new transcript file when a conversation is
reset, and nothing in the old file says so. A file we have never seen
appearing in the directory is the only evidence, so the scanner keeps a
set of known files and hands any newcomer to whichever agent currently
has focus.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from attowatch.coordinator.timers import PeriodicCall, Scheduler
from attowatch.errors import UnknownAgentError
from attowatch.protocol.io import list_transcripts

logger = logging.getLogger(__name__)

DEFAULT_SCAN_INTERVAL_S = 1.0


def _key(path: str | Path) -> str:
    return os.path.abspath(os.fspath(path))


class KnownFiles:
    """Add-only set of transcript paths that are not evidence of a reset."""

    def __init__(self, paths: Iterable[str | Path] = ()) -> None:
        self._paths: set[str] = {_key(p) for p in paths}

    def add(self, path: str | Path) -> bool:
        """Remember *path*. Returns True if it was new."""
        key = _key(path)
        if key in self._paths:
            return False
        self._paths.add(key)
        return True

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return _key(path) in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._paths))


class DirectoryScanner:
    """Periodically lists a directory and reassigns the focused agent on new files."""

    def __init__(
        self,
        directory: str | Path,
        scheduler: Scheduler,
        *,
        focus: Callable[[], int | None],
        on_reset: Callable[[int, Path], object],
        interval: float = DEFAULT_SCAN_INTERVAL_S,
        known: KnownFiles | None = None,
    ) -> None:
        self.directory = Path(directory)
        self.known = known if known is not None else KnownFiles()
        self._focus = focus
        self._on_reset = on_reset
        self._periodic = PeriodicCall(scheduler, interval, self.scan, name="directory-scan")
        self._scanning = False

    @property
    def running(self) -> bool:
        return self._periodic.running

    def seed(self) -> int:
        """Mark every transcript already in the directory as known."""
        added = 0
        for path in self._list():
            if self.known.add(path):
                added += 1
        return added

    def start(self) -> None:
        """Seed and start scanning. Calling it again is a no-op."""
        if self._periodic.running:
            return
        self.seed()
        self._periodic.start()

    def stop(self) -> None:
        self._periodic.stop()

    def scan(self) -> list[Path]:
        """One scan cycle. Returns the newly discovered files."""
        if self._scanning:
            return []
        self._scanning = True
        try:
            fresh = [path for path in self._list() if self.known.add(path)]
            for path in fresh:
                self._adopt(path)
            return fresh
        finally:
            self._scanning = False

    def _adopt(self, path: Path) -> None:
        agent_id = self._focus()
        if agent_id is None:
            logger.info("New transcript %s with no focused agent; remembering it", path.name)
            return
        logger.info("New transcript %s: reassigning agent %d (conversation reset)", path.name, agent_id)
        try:
            self._on_reset(agent_id, path)
        except UnknownAgentError:
            logger.warning("Focused agent %d is no longer tracked; %s left unassigned", agent_id, path.name)

    def _list(self) -> list[Path]:
        try:
            return list_transcripts(self.directory)
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning("Cannot list %s: %s", self.directory, exc)
            return []
