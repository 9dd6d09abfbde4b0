"""Transcript record classification.

Each transcript line is one JSON object tagged by a ``type`` field. This
module turns a raw line into a closed set of record dataclasses so the
tracker can pattern-match on them. Anything that does not fit a known
shape becomes ``UnrecognizedRecord`` and is ignored downstream; a line
that is not valid JSON at all yields ``None``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Union

logger = logging.getLogger(__name__)

TURN_DURATION = "turn_duration"
EXECUTION_PULSE_TYPES: frozenset[str] = frozenset({"bash_progress", "mcp_progress"})


@dataclass(slots=True, frozen=True)
class ToolUse:
    tool_id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class AssistantRecord:
    tool_uses: tuple[ToolUse, ...] = ()
    has_text: bool = False


@dataclass(slots=True, frozen=True)
class UserRecord:
    tool_results: tuple[str, ...] = ()  # completed tool invocation ids
    is_prompt: bool = False


@dataclass(slots=True, frozen=True)
class SystemRecord:
    subtype: str = ""

    @property
    def is_turn_end(self) -> bool:
        return self.subtype == TURN_DURATION


@dataclass(slots=True, frozen=True)
class ProgressRecord:
    parent_tool_id: str
    data_type: str = ""
    nested: AssistantRecord | UserRecord | None = None

    @property
    def is_execution_pulse(self) -> bool:
        return self.data_type in EXECUTION_PULSE_TYPES


@dataclass(slots=True, frozen=True)
class UnrecognizedRecord:
    kind: str = ""


Record = Union[AssistantRecord, UserRecord, SystemRecord, ProgressRecord, UnrecognizedRecord]


def classify_line(line: str) -> Record | None:
    """Parse one transcript line. Returns ``None`` for malformed JSON."""
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Dropping malformed transcript line: %.100s", line)
        return None
    return classify(raw)


def classify(raw: Any) -> Record:
    if not isinstance(raw, dict):
        return UnrecognizedRecord()
    kind = raw.get("type")
    match kind:
        case "assistant":
            record = _assistant(_content(raw.get("message")))
        case "user":
            record = _user(_content(raw.get("message"), allow_text=True))
        case "system":
            subtype = raw.get("subtype")
            record = SystemRecord(subtype=subtype if isinstance(subtype, str) else "")
        case "progress":
            record = _progress(raw)
        case _:
            record = None
    return record if record is not None else UnrecognizedRecord(kind=str(kind or ""))


def _content(message: Any, *, allow_text: bool = False) -> list[Any] | str | None:
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if isinstance(content, list):
        return content
    if allow_text and isinstance(content, str):
        return content
    return None


def _assistant(content: list[Any] | str | None) -> AssistantRecord | None:
    if not isinstance(content, list):
        return None
    tool_uses: list[ToolUse] = []
    has_text = False
    for block in content:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "tool_use" and block.get("id"):
            name = block.get("name")
            tool_input = block.get("input")
            tool_uses.append(
                ToolUse(
                    tool_id=str(block["id"]),
                    name=name if isinstance(name, str) else "",
                    input=tool_input if isinstance(tool_input, dict) else {},
                )
            )
        elif block_type == "text":
            has_text = True
    return AssistantRecord(tool_uses=tuple(tool_uses), has_text=has_text)


def _user(content: list[Any] | str | None) -> UserRecord | None:
    if isinstance(content, str):
        return UserRecord(is_prompt=bool(content.strip()))
    if not isinstance(content, list):
        return None
    results = tuple(
        str(block["tool_use_id"])
        for block in content
        if isinstance(block, dict) and block.get("type") == "tool_result" and block.get("tool_use_id")
    )
    has_result_block = any(
        isinstance(block, dict) and block.get("type") == "tool_result" for block in content
    )
    if has_result_block:
        return UserRecord(tool_results=results)
    return UserRecord(is_prompt=True)


def _progress(raw: dict[str, Any]) -> ProgressRecord | None:
    parent = raw.get("parentToolUseID")
    data = raw.get("data")
    if not parent or not isinstance(data, dict):
        return None
    data_type = data.get("type")
    data_type = data_type if isinstance(data_type, str) else ""
    nested: AssistantRecord | UserRecord | None = None
    message = data.get("message")
    if isinstance(message, dict):
        inner = _content(message.get("message"))
        match message.get("type"):
            case "assistant":
                nested = _assistant(inner)
            case "user":
                nested = _user(inner) if isinstance(inner, list) else None
    return ProgressRecord(parent_tool_id=str(parent), data_type=data_type, nested=nested)
