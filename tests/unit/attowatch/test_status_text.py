"""Tests for tool status text."""

from __future__ import annotations

import pytest

from attowatch.protocol.status_text import format_tool_status


@pytest.mark.parametrize(
    ("name", "tool_input", "expected"),
    [
        ("Read", {"file_path": "/a/b.py"}, "Reading b.py"),
        ("Edit", {"file_path": "C:\\src\\main.rs"}, "Editing main.rs"),
        ("Write", {"file_path": "notes.md"}, "Writing notes.md"),
        ("Glob", {"pattern": "**/*.py"}, "Searching files"),
        ("Grep", {}, "Searching code"),
        ("WebFetch", {}, "Fetching web content"),
        ("WebSearch", {}, "Searching the web"),
        ("AskUserQuestion", {}, "Waiting for your answer"),
        ("EnterPlanMode", {}, "Planning"),
        ("NotebookEdit", {}, "Editing notebook"),
        ("Bash", {"command": "ls -la"}, "Running: ls -la"),
        ("Task", {"description": "Explore repo"}, "Subtask: Explore repo"),
        ("Task", {}, "Running subtask"),
        ("mcp__db__query", {}, "Using mcp__db__query"),
    ],
)
def test_format_tool_status(name: str, tool_input: dict, expected: str) -> None:
    assert format_tool_status(name, tool_input) == expected


def test_bash_command_truncated() -> None:
    command = "x" * 31
    assert format_tool_status("Bash", {"command": command}) == "Running: " + "x" * 30 + "…"
    assert format_tool_status("Bash", {"command": "y" * 30}) == "Running: " + "y" * 30


def test_task_description_truncated() -> None:
    desc = "d" * 41
    assert format_tool_status("Task", {"description": desc}) == "Subtask: " + "d" * 40 + "…"


def test_missing_or_bad_input() -> None:
    assert format_tool_status("Read", None) == "Reading "
    assert format_tool_status("Bash", {"command": 5}) == "Running: "


def test_custom_limits() -> None:
    assert format_tool_status("Bash", {"command": "abcdef"}, bash_max_len=3) == "Running: abc…"
