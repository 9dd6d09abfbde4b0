"""Liveness of the host processes agents run in."""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Protocol

_INDEX_SUFFIX = re.compile(r"#(\d+)$")


class HostDirectory(Protocol):
    def is_live(self, host_name: str) -> bool: ...


class StaticHosts:
    """A fixed set of host names known to be running."""

    def __init__(self, names: Iterable[str]) -> None:
        self._names = set(names)

    def is_live(self, host_name: str) -> bool:
        return host_name in self._names


class AnyHost:
    """Treats every host as live; used when nothing better is known."""

    def is_live(self, host_name: str) -> bool:
        return True


def host_name(prefix: str, index: int) -> str:
    return f"{prefix} #{index}"


def host_index(name: str) -> int | None:
    """The ``n`` in ``"<prefix> #n"``, if present."""
    match = _INDEX_SUFFIX.search(name)
    return int(match.group(1)) if match else None
