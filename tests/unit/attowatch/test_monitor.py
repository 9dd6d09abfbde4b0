"""Tests for the wired tracking pipeline."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from attowatch.config.schema import AttowatchConfig
from attowatch.coordinator.clock import ManualScheduler
from attowatch.coordinator.event_bus import EventBus
from attowatch.coordinator.monitor import ActivityMonitor, watch
from attowatch.coordinator.store import AgentStore
from attowatch.errors import UnknownAgentError
from attowatch.protocol.models import EventType, PersistedAgent
from tests.helpers import assistant_tools, tool_results, turn_end, user_prompt, write_transcript


@pytest.fixture
def project(tmp_path: Path) -> Path:
    directory = tmp_path / "projects" / "-work-repo"
    directory.mkdir(parents=True)
    return directory


def _monitor(config: AttowatchConfig, clock: ManualScheduler, project: Path) -> ActivityMonitor:
    return ActivityMonitor(config, clock, project_dir=project, use_notifications=False)


def test_end_to_end_turn(config: AttowatchConfig, clock: ManualScheduler, project: Path) -> None:
    monitor = _monitor(config, clock, project)
    monitor.start()
    path = project / "s1.jsonl"
    agent = monitor.registry.create(path)

    write_transcript(path, user_prompt("fix the bug"), assistant_tools(("t1", "Edit", {"file_path": "/r/app.py"})))
    clock.advance(2.0)
    starts = [e for e in monitor.bus.for_agent(agent.agent_id) if e.event_type == EventType.TOOL_START]
    assert [e.status_text for e in starts] == ["Editing app.py"]

    write_transcript(path, tool_results("t1"), turn_end(), append=True)
    clock.advance(2.0)
    assert agent.is_waiting
    assert agent.active_tools == {}
    kinds = [e.event_type for e in monitor.bus.for_agent(agent.agent_id)]
    assert EventType.TOOL_DONE in kinds
    monitor.stop()
    assert clock.pending == 0


def test_conversation_reset_reassigns_focused_agent(
    config: AttowatchConfig, clock: ManualScheduler, project: Path
) -> None:
    write_transcript(project / "older.jsonl", turn_end())
    monitor = _monitor(config, clock, project)
    monitor.start()
    agent = monitor.registry.create(project / "s1.jsonl")
    monitor.set_focus(agent.agent_id)

    fresh = write_transcript(project / "s2.jsonl", assistant_tools(("t1", "Grep")))
    clock.advance(1.0)
    assert agent.log_path == fresh
    assert list(agent.active_tools) == ["t1"]
    monitor.stop()


def test_set_focus_validates(config: AttowatchConfig, clock: ManualScheduler, project: Path) -> None:
    monitor = _monitor(config, clock, project)
    with pytest.raises(UnknownAgentError):
        monitor.set_focus(1)
    monitor.set_focus(None)
    assert monitor.focused is None


def test_restore_is_scoped_to_project(config: AttowatchConfig, clock: ManualScheduler, project: Path) -> None:
    path = write_transcript(project / "s1.jsonl", assistant_tools(("old", "Bash")))
    first = _monitor(config, clock, project)
    first.start()
    first.registry.create(path)
    first.stop()

    other = _monitor(config, ManualScheduler(), project.parent / "-elsewhere")
    other.start()
    assert len(other.registry) == 0
    other.stop()

    second = _monitor(config, clock, project)
    second.start()
    assert [a.agent_id for a in second.registry.agents] == [1]
    assert second.registry.get(1).read_offset == path.stat().st_size
    second.stop()


def test_restored_agents_are_known_to_scanner(
    config: AttowatchConfig, clock: ManualScheduler, project: Path, tmp_path: Path
) -> None:
    outside = write_transcript(tmp_path / "elsewhere.jsonl", turn_end())
    first = _monitor(config, clock, project)
    first.registry.create(outside)
    first.stop()

    second = _monitor(config, clock, project)
    second.start()
    assert outside in second.scanner.known
    second.stop()


@pytest.mark.asyncio
async def test_watch_runs_until_stopped(config: AttowatchConfig, project: Path) -> None:
    config.watch.events_path = str(project.parent / "events.jsonl")
    bus = EventBus(config.watch.events_path)
    persisted = [PersistedAgent(1, "Claude Code #1", str(project / "s1.jsonl"))]
    AgentStore(config.watch.state_path, scope=str(project)).save(persisted)
    stop = asyncio.Event()
    asyncio.get_running_loop().call_later(0.05, stop.set)
    monitor = await watch(config, bus=bus, project_dir=project, focus=1, stop=stop)
    assert monitor.focused == 1
    assert [e.event_type for e in bus.history] == [EventType.AGENT_CREATED]
