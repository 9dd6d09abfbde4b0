"""Event bus for agent activity events.

The tracker, registry and scanner publish here; renderers, the CLI printer
and the optional JSONL log subscribe.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from pathlib import Path
from typing import Any

from attowatch.protocol.io import append_jsonl
from attowatch.protocol.models import ActivityEvent, EventType

logger = logging.getLogger(__name__)

DEFAULT_HISTORY = 1000


class EventBus:
    """In-process pub/sub for activity events.

    Subscribers receive every emitted event in emission order. Events are
    optionally appended to a JSONL file. A subscriber that raises is
    logged and skipped; it never stops delivery to the others.
    """

    def __init__(self, persist_path: str | Path | None = None, *, history: int = DEFAULT_HISTORY) -> None:
        self._subscribers: list[Callable[[ActivityEvent], Any]] = []
        self._persist_path = Path(persist_path) if persist_path else None
        self._history: deque[ActivityEvent] = deque(maxlen=history)

    def emit(self, event: ActivityEvent) -> None:
        """Emit an event to all subscribers and persist."""
        self._history.append(event)

        for cb in list(self._subscribers):
            try:
                cb(event)
            except Exception as exc:
                logger.warning("EventBus subscriber error: %s", exc)

        if self._persist_path:
            try:
                append_jsonl(self._persist_path, event.to_dict())
            except OSError as exc:
                logger.warning("EventBus persist error: %s", exc)

    def publish(self, event_type: EventType, agent_id: int, **fields: Any) -> ActivityEvent:
        event = ActivityEvent(event_type=event_type, agent_id=agent_id, **fields)
        self.emit(event)
        return event

    def subscribe(self, callback: Callable[[ActivityEvent], Any]) -> Callable[[], None]:
        """Register a subscriber. Returns a callable that unsubscribes it."""
        self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Callable[[ActivityEvent], Any]) -> None:
        self._subscribers = [cb for cb in self._subscribers if cb is not callback]

    @property
    def history(self) -> list[ActivityEvent]:
        return list(self._history)

    def recent(self, n: int = 20) -> list[ActivityEvent]:
        """Return the *n* most recent events."""
        return list(self._history)[-n:] if n > 0 else []

    def for_agent(self, agent_id: int) -> list[ActivityEvent]:
        return [e for e in self._history if e.agent_id == agent_id]
