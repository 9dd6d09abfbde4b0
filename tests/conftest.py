"""Global test fixtures for attowatch."""

from __future__ import annotations

from pathlib import Path

import pytest

from attowatch.config.schema import AttowatchConfig
from attowatch.coordinator.clock import ManualScheduler
from attowatch.coordinator.event_bus import EventBus
from attowatch.coordinator.timers import TimerService
from attowatch.coordinator.tracker import ActivityTracker


@pytest.fixture
def tmp_workdir(tmp_path: Path) -> Path:
    """Provide a temporary working directory for file operation tests."""
    return tmp_path


@pytest.fixture
def clock() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def config(tmp_path: Path) -> AttowatchConfig:
    cfg = AttowatchConfig()
    cfg.watch.state_path = str(tmp_path / "state" / "agents.json")
    return cfg


@pytest.fixture
def timers(clock: ManualScheduler) -> TimerService:
    return TimerService(clock)


@pytest.fixture
def tracker(timers: TimerService, bus: EventBus) -> ActivityTracker:
    return ActivityTracker(timers, bus)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep tests away from the real ~/.attowatch config and state."""
    config_path = tmp_path / "attowatch.yaml"
    config_path.write_text(
        f"watch:\n  state_path: '{tmp_path / 'state' / 'agents.json'}'\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("ATTOWATCH_CONFIG", str(config_path))
    monkeypatch.chdir(tmp_path)
