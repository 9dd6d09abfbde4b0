"""OS-level change notifications for transcript files, via watchdog.

Notifications are best effort: some platforms and filesystems drop or
coalesce events, so every tailer also polls. The watchdog observer runs on
its own thread; callbacks are handed back to the event loop with
``call_soon_threadsafe`` and never run on the observer thread.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from attowatch.coordinator.timers import Scheduler

logger = logging.getLogger(__name__)


def _key(path: str | Path) -> str:
    return os.path.normcase(os.path.abspath(os.fspath(path)))


class _TranscriptEventHandler(FileSystemEventHandler):
    """Watchdog handler that forwards file events to the notifier."""

    def __init__(self, notifier: ChangeNotifier) -> None:
        super().__init__()
        self._notifier = notifier

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._notifier._dispatch(event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._notifier._dispatch(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._notifier._dispatch(event.dest_path)


class ChangeNotifier:
    """Fan-out of filesystem change events to per-file callbacks."""

    def __init__(self, scheduler: Scheduler, *, observer_factory: Callable[[], Any] = Observer) -> None:
        self._scheduler = scheduler
        self._observer_factory = observer_factory
        self._observer: Any = None
        self._handler = _TranscriptEventHandler(self)
        self._lock = threading.Lock()
        self._callbacks: dict[str, list[Callable[[], None]]] = {}
        self._watches: dict[str, Any] = {}  # directory key -> ObservedWatch
        self._dir_refs: dict[str, int] = {}

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        try:
            observer = self._observer_factory()
            observer.daemon = True
            observer.start()
        except Exception as exc:
            logger.warning("File notifications unavailable, polling only: %s", exc)
            return
        self._observer = observer

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        with self._lock:
            self._callbacks.clear()
            self._watches.clear()
            self._dir_refs.clear()
        if observer is not None:
            observer.stop()
            observer.join(timeout=2)

    def watch(self, path: Path, callback: Callable[[], None]) -> Callable[[], None]:
        """Call *callback* on the loop whenever *path* changes. Returns an unwatch callable."""
        file_key = _key(path)
        dir_key = _key(Path(path).parent)
        with self._lock:
            self._callbacks.setdefault(file_key, []).append(callback)
            self._dir_refs[dir_key] = self._dir_refs.get(dir_key, 0) + 1
            needs_schedule = dir_key not in self._watches
        if needs_schedule:
            self._schedule_dir(dir_key)

        def _unwatch() -> None:
            self._unwatch(file_key, dir_key, callback)

        return _unwatch

    def _schedule_dir(self, dir_key: str) -> None:
        if self._observer is None or not os.path.isdir(dir_key):
            return
        try:
            watch = self._observer.schedule(self._handler, dir_key, recursive=False)
        except Exception as exc:
            logger.debug("Could not watch %s: %s", dir_key, exc)
            return
        with self._lock:
            self._watches[dir_key] = watch

    def _unwatch(self, file_key: str, dir_key: str, callback: Callable[[], None]) -> None:
        with self._lock:
            callbacks = self._callbacks.get(file_key, [])
            if callback in callbacks:
                callbacks.remove(callback)
            else:
                return
            if not callbacks:
                self._callbacks.pop(file_key, None)
            refs = self._dir_refs.get(dir_key, 0) - 1
            if refs > 0:
                self._dir_refs[dir_key] = refs
                return
            self._dir_refs.pop(dir_key, None)
            watch = self._watches.pop(dir_key, None)
        if watch is not None and self._observer is not None:
            try:
                self._observer.unschedule(watch)
            except Exception as exc:
                logger.debug("Could not unwatch %s: %s", dir_key, exc)

    def _dispatch(self, src_path: str | bytes) -> None:
        if isinstance(src_path, bytes):
            src_path = os.fsdecode(src_path)
        with self._lock:
            callbacks = list(self._callbacks.get(_key(src_path), ()))
        for callback in callbacks:
            try:
                self._scheduler.call_soon_threadsafe(callback)
            except RuntimeError:
                # Loop already closed during shutdown.
                return
