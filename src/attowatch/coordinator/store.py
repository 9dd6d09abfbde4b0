"""Persisted id <-> transcript bindings."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from attowatch.coordinator.hosts import host_index, host_name
from attowatch.errors import StoreError
from attowatch.protocol.io import read_json, write_json_atomic
from attowatch.protocol.models import PersistedAgent

logger = logging.getLogger(__name__)


class AgentStore:
    """Snapshot of tracked agents, one flat list per storage scope.

    The file maps a scope (normally the watched project directory) to an
    ordered list of ``{id, host_process_name, log_path}`` entries. Every
    save replaces the scope's list wholesale.
    """

    def __init__(self, path: str | Path, scope: str = "default") -> None:
        self.path = Path(path)
        self.scope = scope

    def load(self, *, strict: bool = False) -> list[PersistedAgent]:
        raw = self._read_all(strict=strict)
        entries = raw.get(self.scope, [])
        if not isinstance(entries, list):
            return []
        agents: list[PersistedAgent] = []
        for item in entries:
            if not isinstance(item, dict):
                continue
            try:
                agents.append(PersistedAgent.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping corrupt persisted agent entry: %r", item)
        return agents

    def save(self, agents: list[PersistedAgent]) -> None:
        raw = self._read_all(strict=False)
        raw[self.scope] = [a.to_dict() for a in agents]
        try:
            write_json_atomic(self.path, raw)
        except OSError as exc:
            raise StoreError(f"Cannot write {self.path}: {exc}", path=str(self.path)) from exc

    def add(self, log_path: str | Path, *, prefix: str, host: str | None = None) -> PersistedAgent:
        """Append a binding without a running monitor; it is picked up on restore."""
        agents = self.load(strict=True)
        agent_id = max((a.agent_id for a in agents), default=0) + 1
        if host is None:
            taken = [host_index(a.host_name) or 0 for a in agents]
            host = host_name(prefix, max(taken, default=0) + 1)
        entry = PersistedAgent(agent_id=agent_id, host_name=host, log_path=str(Path(log_path).expanduser()))
        agents.append(entry)
        self.save(agents)
        return entry

    def remove(self, agent_id: int) -> bool:
        agents = self.load(strict=True)
        kept = [a for a in agents if a.agent_id != agent_id]
        if len(kept) == len(agents):
            return False
        self.save(kept)
        return True

    def _read_all(self, *, strict: bool) -> dict[str, Any]:
        raw = read_json(self.path, default={}, strict=strict)
        if not isinstance(raw, dict):
            if strict:
                raise StoreError(f"Unexpected layout in {self.path}", path=str(self.path))
            return {}
        return raw
