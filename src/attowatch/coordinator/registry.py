"""Ownership of tracked agents: create, remove, restore, reassign."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from attowatch.config.schema import HostsConfig, TimingConfig
from attowatch.coordinator.event_bus import EventBus
from attowatch.coordinator.hosts import AnyHost, HostDirectory, host_index, host_name
from attowatch.coordinator.scanner import KnownFiles
from attowatch.coordinator.store import AgentStore
from attowatch.coordinator.timers import PeriodicCall, Scheduler
from attowatch.coordinator.tracker import ActivityTracker
from attowatch.errors import StoreError, UnknownAgentError
from attowatch.protocol.io import file_size
from attowatch.protocol.models import EventType, PersistedAgent, TrackedAgent
from attowatch.tailer.notify import ChangeNotifier
from attowatch.tailer.tailer import Tailer

logger = logging.getLogger(__name__)

PROJECTS_ROOT = Path.home() / ".claude" / "projects"


def project_dir_for(cwd: str | Path | None = None, *, root: Path = PROJECTS_ROOT) -> Path:
    """Directory the log producer writes transcripts to for *cwd*."""
    workspace = os.fspath(cwd) if cwd is not None else os.getcwd()
    return root / workspace.replace(":", "-").replace("\\", "-").replace("/", "-")


class AgentRegistry:
    """Owns every ``TrackedAgent`` together with its tailer and timers.

    All mutation of agent state goes through this class or through the
    tracker it drives; nothing else holds per-agent maps.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        bus: EventBus,
        tracker: ActivityTracker,
        *,
        store: AgentStore | None = None,
        known: KnownFiles | None = None,
        notifier: ChangeNotifier | None = None,
        timing: TimingConfig | None = None,
        hosts: HostsConfig | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._bus = bus
        self._tracker = tracker
        self._store = store
        self.known = known if known is not None else KnownFiles()
        self._notifier = notifier
        self._timing = timing or TimingConfig()
        self._hosts = hosts or HostsConfig()

        self._agents: dict[int, TrackedAgent] = {}
        self._tailers: dict[int, Tailer] = {}
        self._existence_polls: dict[int, PeriodicCall] = {}
        self.next_id = 1
        self.next_host_index = 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    @property
    def agents(self) -> list[TrackedAgent]:
        return [self._agents[k] for k in sorted(self._agents)]

    def get(self, agent_id: int) -> TrackedAgent:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise UnknownAgentError(agent_id) from None

    def tailer(self, agent_id: int) -> Tailer | None:
        return self._tailers.get(agent_id)

    def is_awaiting_file(self, agent_id: int) -> bool:
        return agent_id in self._existence_polls

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, log_path: str | Path, host: str | None = None) -> TrackedAgent:
        """Track a newly launched agent expected to write *log_path*."""
        agent_id = self.next_id
        self.next_id += 1
        if host is None:
            host = host_name(self._hosts.name_prefix, self.next_host_index)
            self.next_host_index += 1
        else:
            self._advance_host_index(host)

        path = Path(log_path)
        # Pre-register so the directory scanner does not mistake it for a reset.
        self.known.add(path)
        agent = TrackedAgent(agent_id=agent_id, log_path=path, host_name=host)
        self._agents[agent_id] = agent
        self.persist()
        logger.info("Agent %d: created for %s (%s)", agent_id, host, path.name)
        self._bus.publish(EventType.AGENT_CREATED, agent_id)
        self._follow(agent, from_end=False)
        return agent

    def remove(self, agent_id: int) -> None:
        """Stop tracking *agent_id*: tailer, polls and timers all stop."""
        agent = self.get(agent_id)
        self._stop_following(agent_id)
        self._tracker.forget(agent)
        del self._agents[agent_id]
        self.persist()
        logger.info("Agent %d: removed", agent_id)
        self._bus.publish(EventType.AGENT_REMOVED, agent_id)

    def restore(self, hosts: HostDirectory | None = None) -> list[TrackedAgent]:
        """Recreate agents from the persisted snapshot whose hosts are still live.

        History is never replayed: each restored tailer starts at the
        current end of its file.
        """
        if self._store is None:
            return []
        hosts = hosts or AnyHost()
        try:
            persisted = self._store.load()
        except StoreError as exc:
            logger.warning("Cannot restore agents: %s", exc)
            return []

        restored: list[TrackedAgent] = []
        for entry in persisted:
            if entry.agent_id in self._agents:
                continue
            if not hosts.is_live(entry.host_name):
                logger.info("Dropping agent %d: host %r is gone", entry.agent_id, entry.host_name)
                continue
            agent = TrackedAgent(
                agent_id=entry.agent_id,
                log_path=Path(entry.log_path),
                host_name=entry.host_name,
            )
            self._agents[agent.agent_id] = agent
            self.known.add(agent.log_path)
            self.next_id = max(self.next_id, agent.agent_id + 1)
            self._advance_host_index(agent.host_name)
            logger.info("Restored agent %d -> host %r", agent.agent_id, agent.host_name)
            self._bus.publish(EventType.AGENT_CREATED, agent.agent_id)
            self._follow(agent, from_end=True)
            restored.append(agent)

        # Re-persist the cleaned list (drops entries whose hosts are gone).
        self.persist()
        return restored

    def reassign(self, agent_id: int, log_path: str | Path) -> TrackedAgent:
        """Rebind *agent_id* to a new transcript after a conversation reset."""
        agent = self.get(agent_id)
        path = Path(log_path)
        self.known.add(path)
        poll = self._existence_polls.pop(agent_id, None)
        if poll is not None:
            poll.stop()

        tailer = self._tailers.get(agent_id)
        if tailer is not None:
            tailer.rebind(path)
        else:
            agent.log_path = path
            agent.buffer.reset(0)
        self._tracker.start_new_turn(agent)
        self.persist()
        logger.info("Agent %d: reassigned to %s", agent_id, path.name)

        if tailer is None:
            self._follow(agent, from_end=False)
        else:
            tailer.wake()
        return agent

    def shutdown(self) -> None:
        """Stop all background work. Persisted state is left untouched."""
        for agent_id in list(self._agents):
            self._stop_following(agent_id)
            self._tracker.forget(self._agents[agent_id])

    # ------------------------------------------------------------------
    # Persistence and status replay
    # ------------------------------------------------------------------

    def snapshot(self) -> list[PersistedAgent]:
        return [
            PersistedAgent(agent_id=a.agent_id, host_name=a.host_name, log_path=str(a.log_path))
            for a in self.agents
        ]

    def persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save(self.snapshot())
        except StoreError as exc:
            logger.warning("Failed to persist agents: %s", exc)

    def replay_status(self) -> None:
        """Re-emit current tool and waiting state for a newly attached consumer."""
        for agent in self.agents:
            for tool in agent.active_tools.values():
                self._bus.publish(
                    EventType.TOOL_START,
                    agent.agent_id,
                    tool_id=tool.tool_id,
                    status_text=tool.status_text,
                )
            if agent.is_waiting:
                self._bus.publish(EventType.STATUS, agent.agent_id, state="waiting")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _follow(self, agent: TrackedAgent, *, from_end: bool) -> None:
        """Start tailing now if the file exists, else poll until it appears."""
        if self._try_start_tailer(agent, from_end=from_end):
            return

        def _check() -> None:
            if self._try_start_tailer(agent, from_end=from_end):
                poll = self._existence_polls.pop(agent.agent_id, None)
                if poll is not None:
                    poll.stop()

        poll = PeriodicCall(
            self._scheduler,
            self._timing.existence_poll_interval_s,
            _check,
            name=f"await-file[{agent.agent_id}]",
        )
        self._existence_polls[agent.agent_id] = poll
        poll.start()

    def _try_start_tailer(self, agent: TrackedAgent, *, from_end: bool) -> bool:
        try:
            size = file_size(agent.log_path)
        except OSError as exc:
            logger.warning("Agent %d: cannot stat %s: %s", agent.agent_id, agent.log_path, exc)
            return False
        if size is None:
            return False
        if from_end:
            agent.buffer.reset(size)
        logger.info("Agent %d: following %s from offset %d", agent.agent_id, agent.log_path.name, agent.read_offset)
        tailer = Tailer(
            agent,
            lambda line: self._tracker.process_line(agent, line),
            self._scheduler,
            poll_interval=self._timing.tail_poll_interval_s,
            notifier=self._notifier,
        )
        self._tailers[agent.agent_id] = tailer
        tailer.start()
        tailer.wake()
        return True

    def _stop_following(self, agent_id: int) -> None:
        poll = self._existence_polls.pop(agent_id, None)
        if poll is not None:
            poll.stop()
        tailer = self._tailers.pop(agent_id, None)
        if tailer is not None:
            tailer.stop()

    def _advance_host_index(self, name: str) -> None:
        index = host_index(name)
        if index is not None and index >= self.next_host_index:
            self.next_host_index = index + 1
