"""Tests for conversation-reset detection."""

from __future__ import annotations

from pathlib import Path

from attowatch.coordinator.clock import ManualScheduler
from attowatch.coordinator.scanner import DirectoryScanner, KnownFiles
from attowatch.errors import UnknownAgentError


class _Focus:
    def __init__(self, agent_id: int | None = None) -> None:
        self.agent_id = agent_id

    def __call__(self) -> int | None:
        return self.agent_id


def _scanner(directory: Path, clock: ManualScheduler, focus: _Focus, resets: list[tuple[int, Path]]) -> DirectoryScanner:
    return DirectoryScanner(
        directory,
        clock,
        focus=focus,
        on_reset=lambda agent_id, path: resets.append((agent_id, path)),
        interval=1.0,
    )


def test_known_files_is_add_only(tmp_path: Path) -> None:
    known = KnownFiles([tmp_path / "a.jsonl"])
    assert (tmp_path / "a.jsonl") in known
    assert known.add(tmp_path / "a.jsonl") is False
    assert known.add(str(tmp_path / "b.jsonl")) is True
    assert len(known) == 2
    assert 42 not in known


def test_existing_files_are_not_resets(tmp_path: Path, clock: ManualScheduler) -> None:
    (tmp_path / "old.jsonl").write_text("", encoding="utf-8")
    resets: list[tuple[int, Path]] = []
    scanner = _scanner(tmp_path, clock, _Focus(1), resets)
    scanner.start()
    clock.advance(3.0)
    assert resets == []


def test_new_file_goes_to_focused_agent(tmp_path: Path, clock: ManualScheduler) -> None:
    resets: list[tuple[int, Path]] = []
    focus = _Focus(3)
    scanner = _scanner(tmp_path, clock, focus, resets)
    scanner.start()
    (tmp_path / "fresh.jsonl").write_text("", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("", encoding="utf-8")
    clock.advance(1.0)
    assert resets == [(3, tmp_path / "fresh.jsonl")]
    clock.advance(5.0)
    assert len(resets) == 1


def test_new_file_without_focus_is_remembered(tmp_path: Path, clock: ManualScheduler) -> None:
    resets: list[tuple[int, Path]] = []
    focus = _Focus(None)
    scanner = _scanner(tmp_path, clock, focus, resets)
    scanner.start()
    (tmp_path / "orphan.jsonl").write_text("", encoding="utf-8")
    clock.advance(1.0)
    assert resets == []
    assert (tmp_path / "orphan.jsonl") in scanner.known
    # Focusing later does not resurrect an already-seen file.
    focus.agent_id = 1
    clock.advance(1.0)
    assert resets == []


def test_preregistered_file_is_not_a_reset(tmp_path: Path, clock: ManualScheduler) -> None:
    resets: list[tuple[int, Path]] = []
    scanner = _scanner(tmp_path, clock, _Focus(1), resets)
    scanner.start()
    scanner.known.add(tmp_path / "launched.jsonl")
    (tmp_path / "launched.jsonl").write_text("", encoding="utf-8")
    clock.advance(1.0)
    assert resets == []


def test_missing_directory_is_tolerated(tmp_path: Path, clock: ManualScheduler) -> None:
    directory = tmp_path / "not-yet"
    resets: list[tuple[int, Path]] = []
    scanner = _scanner(directory, clock, _Focus(1), resets)
    scanner.start()
    clock.advance(1.0)
    directory.mkdir()
    (directory / "first.jsonl").write_text("", encoding="utf-8")
    clock.advance(1.0)
    assert resets == [(1, directory / "first.jsonl")]


def test_unknown_focused_agent_is_logged_not_raised(tmp_path: Path, clock: ManualScheduler) -> None:
    def on_reset(agent_id: int, path: Path) -> None:
        raise UnknownAgentError(agent_id)

    scanner = DirectoryScanner(tmp_path, clock, focus=lambda: 9, on_reset=on_reset)
    scanner.seed()
    (tmp_path / "x.jsonl").write_text("", encoding="utf-8")
    assert scanner.scan() == [tmp_path / "x.jsonl"]


def test_stop(tmp_path: Path, clock: ManualScheduler) -> None:
    scanner = _scanner(tmp_path, clock, _Focus(1), [])
    scanner.start()
    assert scanner.running
    scanner.stop()
    assert not scanner.running
    assert clock.pending == 0
