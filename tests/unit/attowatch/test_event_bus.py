"""Tests for the activity event bus."""

from __future__ import annotations

import json
from pathlib import Path

from attowatch.coordinator.event_bus import EventBus
from attowatch.protocol.models import ActivityEvent, EventType


class TestEventBus:
    def test_emit_and_history(self) -> None:
        bus = EventBus()
        bus.emit(ActivityEvent(event_type=EventType.STATUS, agent_id=1, state="active"))
        assert len(bus.history) == 1
        assert bus.history[0].event_type == EventType.STATUS
        assert bus.history[0].state == "active"

    def test_publish_delivers_in_order(self) -> None:
        bus = EventBus()
        received: list[ActivityEvent] = []
        bus.subscribe(received.append)
        bus.publish(EventType.TOOL_START, 1, tool_id="t1", status_text="Reading b.py")
        bus.publish(EventType.TOOL_DONE, 1, tool_id="t1")
        assert [e.event_type for e in received] == [EventType.TOOL_START, EventType.TOOL_DONE]
        assert received[0].status_text == "Reading b.py"

    def test_unsubscribe_handle(self) -> None:
        bus = EventBus()
        received: list[ActivityEvent] = []
        unsubscribe = bus.subscribe(received.append)
        unsubscribe()
        bus.publish(EventType.STALL, 1)
        assert received == []

    def test_recent_and_for_agent(self) -> None:
        bus = EventBus()
        for i in range(10):
            bus.publish(EventType.STATUS, i % 2, state="active")
        assert len(bus.recent(3)) == 3
        assert bus.recent(0) == []
        assert all(e.agent_id == 1 for e in bus.for_agent(1))
        assert len(bus.for_agent(1)) == 5

    def test_history_is_bounded(self) -> None:
        bus = EventBus(history=3)
        for _ in range(5):
            bus.publish(EventType.STALL, 1)
        assert len(bus.history) == 3

    def test_timestamp_auto_set(self) -> None:
        bus = EventBus()
        assert bus.publish(EventType.STALL, 1).timestamp > 0

    def test_subscriber_error_does_not_propagate(self) -> None:
        bus = EventBus()
        received: list[ActivityEvent] = []

        def bad_callback(event: ActivityEvent) -> None:
            raise RuntimeError("boom")

        bus.subscribe(bad_callback)
        bus.subscribe(received.append)
        bus.publish(EventType.STALL, 1)
        assert len(received) == 1

    def test_persist_jsonl(self, tmp_path: Path) -> None:
        path = tmp_path / "events" / "activity.jsonl"
        bus = EventBus(path)
        bus.publish(EventType.TOOL_START, 3, tool_id="t1", status_text="Searching code")
        bus.publish(EventType.STATUS, 3, state="waiting")
        lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
        assert [item["event_type"] for item in lines] == ["tool-start", "status"]
        assert lines[0]["agent_id"] == 3
        assert lines[1]["state"] == "waiting"
