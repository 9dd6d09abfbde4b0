"""Filesystem helpers: append-only reads, directory listing, atomic JSON writes."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from attowatch.errors import StoreError

TRANSCRIPT_SUFFIX = ".jsonl"


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def file_size(path: Path) -> int | None:
    """Size in bytes, or ``None`` when the file does not exist."""
    try:
        return path.stat().st_size
    except FileNotFoundError:
        return None


def read_from_offset(path: Path, offset: int) -> bytes:
    """Read everything appended to *path* after *offset*.

    Raises ``OSError`` on failure; callers decide whether that is fatal.
    """
    with path.open("rb") as handle:
        handle.seek(offset)
        return handle.read()


def list_transcripts(directory: Path) -> list[Path]:
    """Transcript files directly inside *directory*, sorted by name."""
    return sorted(
        entry for entry in directory.iterdir()
        if entry.suffix == TRANSCRIPT_SUFFIX and entry.is_file()
    )


def read_json(path: Path, default: Any, *, strict: bool = False) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        if strict:
            raise StoreError(f"Cannot read {path}: {exc}", path=str(path)) from exc
        return default


def write_json_atomic(path: Path, data: Any) -> None:
    ensure_parent(path)
    tmp = path.with_suffix(path.suffix + ".tmp")
    payload = json.dumps(data, indent=2, sort_keys=False) + "\n"
    with tmp.open("w", encoding="utf-8") as handle:
        handle.write(payload)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp, path)


def append_jsonl(path: Path, item: Any) -> None:
    ensure_parent(path)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(item) + "\n")
