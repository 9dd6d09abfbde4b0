"""Configuration schema for attowatch YAML files."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_STATE_PATH = str(Path.home() / ".attowatch" / "agents.json")


@dataclass(slots=True)
class WatchConfig:
    project_dir: str | None = None  # None = derive from the working directory
    state_path: str = DEFAULT_STATE_PATH
    events_path: str | None = None
    debug: bool = False


@dataclass(slots=True)
class TimingConfig:
    idle_delay_s: float = 5.0
    stall_delay_s: float = 7.0
    tool_done_delay_s: float = 0.3
    tail_poll_interval_s: float = 2.0
    existence_poll_interval_s: float = 1.0
    scan_interval_s: float = 1.0


@dataclass(slots=True)
class ToolsConfig:
    subtask_tool: str = "Task"
    permission_exempt: list[str] = field(default_factory=lambda: ["Task", "AskUserQuestion"])
    bash_command_max_len: int = 30
    task_description_max_len: int = 40


@dataclass(slots=True)
class HostsConfig:
    name_prefix: str = "Claude Code"


@dataclass(slots=True)
class AttowatchConfig:
    version: int = 1
    watch: WatchConfig = field(default_factory=WatchConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    hosts: HostsConfig = field(default_factory=HostsConfig)
