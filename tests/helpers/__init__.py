"""Shared test helpers for the attowatch test suite."""

from __future__ import annotations

from tests.helpers.transcripts import (
    assistant_text,
    assistant_tools,
    jsonl,
    progress_nested_tools,
    progress_nested_results,
    progress_pulse,
    tool_results,
    turn_end,
    user_prompt,
    write_transcript,
)

__all__ = [
    "assistant_text",
    "assistant_tools",
    "jsonl",
    "progress_nested_results",
    "progress_nested_tools",
    "progress_pulse",
    "tool_results",
    "turn_end",
    "user_prompt",
    "write_transcript",
]
