"""Human-readable status text for a tool invocation."""

from __future__ import annotations

import posixpath
from typing import Any

BASH_COMMAND_MAX_LEN = 30
TASK_DESCRIPTION_MAX_LEN = 40
ELLIPSIS = "…"

_FIXED_TEXT: dict[str, str] = {
    "Glob": "Searching files",
    "Grep": "Searching code",
    "WebFetch": "Fetching web content",
    "WebSearch": "Searching the web",
    "AskUserQuestion": "Waiting for your answer",
    "EnterPlanMode": "Planning",
    "NotebookEdit": "Editing notebook",
}

_FILE_VERBS: dict[str, str] = {
    "Read": "Reading",
    "Edit": "Editing",
    "Write": "Writing",
}


def _basename(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    # Transcripts may come from either platform.
    return posixpath.basename(value.replace("\\", "/"))


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ELLIPSIS if len(text) > limit else text


def format_tool_status(
    tool_name: str,
    tool_input: dict[str, Any] | None,
    *,
    bash_max_len: int = BASH_COMMAND_MAX_LEN,
    task_max_len: int = TASK_DESCRIPTION_MAX_LEN,
) -> str:
    """Describe what a tool invocation is doing, e.g. ``Reading b.py``."""
    args = tool_input if isinstance(tool_input, dict) else {}

    if tool_name in _FILE_VERBS:
        return f"{_FILE_VERBS[tool_name]} {_basename(args.get('file_path'))}"
    if tool_name in _FIXED_TEXT:
        return _FIXED_TEXT[tool_name]
    if tool_name == "Bash":
        command = args.get("command")
        command = command if isinstance(command, str) else ""
        return f"Running: {_truncate(command, bash_max_len)}"
    if tool_name == "Task":
        description = args.get("description")
        if isinstance(description, str) and description:
            return f"Subtask: {_truncate(description, task_max_len)}"
        return "Running subtask"
    return f"Using {tool_name}"
