"""Wires the tracking pipeline onto one event loop.

    Tailer -> classify_line -> ActivityTracker -> EventBus

The registry owns agents and their tailers, the scanner watches the
transcript directory for conversation resets, and the timer service is
shared by everything that schedules work.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from attowatch.config.schema import AttowatchConfig
from attowatch.coordinator.event_bus import EventBus
from attowatch.coordinator.hosts import HostDirectory
from attowatch.coordinator.registry import AgentRegistry, project_dir_for
from attowatch.coordinator.scanner import DirectoryScanner
from attowatch.coordinator.store import AgentStore
from attowatch.coordinator.timers import Scheduler, TimerService
from attowatch.coordinator.tracker import ActivityTracker
from attowatch.tailer.notify import ChangeNotifier

logger = logging.getLogger(__name__)


class ActivityMonitor:
    def __init__(
        self,
        config: AttowatchConfig,
        scheduler: Scheduler,
        *,
        bus: EventBus | None = None,
        project_dir: str | Path | None = None,
        notifier: ChangeNotifier | None = None,
        use_notifications: bool = True,
    ) -> None:
        self.config = config
        self.project_dir = Path(project_dir or config.watch.project_dir or project_dir_for())
        self.bus = bus or EventBus(config.watch.events_path)
        self.timers = TimerService(scheduler)
        self.tracker = ActivityTracker(
            self.timers, self.bus, timing=config.timing, tools=config.tools
        )
        if notifier is None and use_notifications:
            notifier = ChangeNotifier(scheduler)
        self.notifier = notifier
        self.scanner = DirectoryScanner(
            self.project_dir,
            scheduler,
            focus=lambda: self._focus,
            on_reset=lambda agent_id, path: self.registry.reassign(agent_id, path),
            interval=config.timing.scan_interval_s,
        )
        self.registry = AgentRegistry(
            scheduler,
            self.bus,
            self.tracker,
            store=AgentStore(config.watch.state_path, scope=str(self.project_dir)),
            known=self.scanner.known,
            notifier=self.notifier,
            timing=config.timing,
            hosts=config.hosts,
        )
        self._focus: int | None = None
        self._started = False

    @property
    def focused(self) -> int | None:
        return self._focus

    def set_focus(self, agent_id: int | None) -> None:
        """Mark which agent's host currently has attention (``None`` for none)."""
        if agent_id is not None:
            self.registry.get(agent_id)
        self._focus = agent_id

    def start(self, hosts: HostDirectory | None = None) -> None:
        if self._started:
            return
        self._started = True
        if self.notifier is not None:
            self.notifier.start()
        restored = self.registry.restore(hosts)
        logger.info("Watching %s (%d agents restored)", self.project_dir, len(restored))
        self.scanner.start()

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self.scanner.stop()
        self.registry.shutdown()
        if self.notifier is not None:
            self.notifier.stop()
        logger.info("Stopped watching %s", self.project_dir)


async def watch(
    config: AttowatchConfig,
    *,
    bus: EventBus | None = None,
    project_dir: str | Path | None = None,
    focus: int | None = None,
    hosts: HostDirectory | None = None,
    stop: asyncio.Event | None = None,
) -> ActivityMonitor:
    """Run a monitor on the current loop until *stop* is set (or forever)."""
    loop = asyncio.get_running_loop()
    monitor = ActivityMonitor(config, loop, bus=bus, project_dir=project_dir)
    monitor.start(hosts)
    try:
        if focus is not None:
            monitor.set_focus(focus)
        await (stop or asyncio.Event()).wait()
    finally:
        monitor.stop()
    return monitor
