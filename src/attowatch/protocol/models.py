"""Per-agent activity state and the events derived from it."""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Literal

from attowatch.tailer.line_buffer import LineBuffer

AgentStatus = Literal["active", "waiting"]


class EventType(StrEnum):
    TOOL_START = "tool-start"
    TOOL_DONE = "tool-done"
    TOOLS_CLEARED = "tools-cleared"
    STATUS = "status"
    STALL = "stall"
    SUBTASK_STALL = "sub-task-stall"
    SUBTASK_START = "sub-task-start"
    SUBTASK_DONE = "sub-task-done"
    SUBTASK_CLEARED = "sub-task-cleared"
    AGENT_CREATED = "agent-created"
    AGENT_REMOVED = "agent-removed"


@dataclass(slots=True)
class ActivityEvent:
    """A single status event published to consumers."""

    event_type: EventType
    agent_id: int
    tool_id: str = ""
    parent_tool_id: str = ""
    status_text: str = ""
    state: AgentStatus | None = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["event_type"] = str(self.event_type)
        return data


@dataclass(slots=True)
class ActiveTool:
    tool_id: str
    name: str
    status_text: str


@dataclass(slots=True)
class TrackedAgent:
    """Everything attowatch knows about one observed agent process."""

    agent_id: int
    log_path: Path
    host_name: str
    buffer: LineBuffer = field(default_factory=LineBuffer)
    active_tools: dict[str, ActiveTool] = field(default_factory=dict)
    # parent tool id -> {sub tool id -> tool name}
    subtask_tools: dict[str, dict[str, str]] = field(default_factory=dict)
    is_waiting: bool = False
    turn_had_tool_use: bool = False
    permission_sent: bool = False

    @property
    def read_offset(self) -> int:
        return self.buffer.offset

    @property
    def pending_fragment(self) -> str:
        return self.buffer.fragment

    def tool_name(self, tool_id: str) -> str | None:
        tool = self.active_tools.get(tool_id)
        return tool.name if tool else None

    def clear_activity(self) -> bool:
        """Drop every open invocation. Returns True if anything was open."""
        had_tools = bool(self.active_tools)
        self.active_tools.clear()
        self.subtask_tools.clear()
        return had_tools

    def has_non_exempt_tool(self, exempt: Iterable[str]) -> bool:
        exempt_set = set(exempt)
        if any(tool.name not in exempt_set for tool in self.active_tools.values()):
            return True
        return bool(self.stalled_subtask_parents(exempt_set))

    def has_non_exempt_subtask_tool(self, exempt: Iterable[str]) -> bool:
        return bool(self.stalled_subtask_parents(exempt))

    def stalled_subtask_parents(self, exempt: Iterable[str]) -> list[str]:
        """Parent tool ids with at least one open non-exempt nested tool."""
        exempt_set = set(exempt)
        return [
            parent_id
            for parent_id, names in self.subtask_tools.items()
            if any(name not in exempt_set for name in names.values())
        ]


@dataclass(slots=True)
class PersistedAgent:
    """One id <-> transcript binding as stored between restarts."""

    agent_id: int
    host_name: str
    log_path: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.agent_id, "host_process_name": self.host_name, "log_path": self.log_path}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersistedAgent:
        return cls(
            agent_id=int(data["id"]),
            host_name=str(data["host_process_name"]),
            log_path=str(data["log_path"]),
        )
