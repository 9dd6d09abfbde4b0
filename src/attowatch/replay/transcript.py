"""Offline replay of a finished transcript through the tracker.

Each record's own ``timestamp`` drives a manual clock, so the idle and
stall heuristics fire where they would have fired live. Records without a
usable timestamp are applied at the current clock time.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from attowatch.config.schema import AttowatchConfig
from attowatch.coordinator.clock import ManualScheduler
from attowatch.coordinator.event_bus import EventBus
from attowatch.coordinator.timers import TimerService
from attowatch.coordinator.tracker import ActivityTracker
from attowatch.protocol.io import read_from_offset
from attowatch.protocol.models import ActivityEvent, TrackedAgent
from attowatch.tailer.line_buffer import LineBuffer

REPLAY_AGENT_ID = 1


def _to_epoch(ts: Any) -> float | None:
    """Normalize a timestamp (epoch number or ISO string) to a float epoch."""
    if isinstance(ts, (int, float)):
        return float(ts)
    if isinstance(ts, str) and ts:
        try:
            return datetime.fromisoformat(ts.replace("Z", "+00:00")).timestamp()
        except ValueError:
            return None
    return None


def _line_time(line: str) -> float | None:
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        return None
    return _to_epoch(raw.get("timestamp")) if isinstance(raw, dict) else None


def replay_transcript(
    path: str | Path,
    config: AttowatchConfig | None = None,
    *,
    settle: bool = True,
) -> list[tuple[float, ActivityEvent]]:
    """Run *path* from offset 0 and return every emitted event.

    Each event is paired with the replay clock reading (seconds since the
    first timestamped record) at which it was emitted.

    With *settle*, the clock is advanced past the last pending timer so
    trailing idle/stall/tool-done events are included.
    """
    config = config or AttowatchConfig()
    path = Path(path)
    clock = ManualScheduler()
    bus = EventBus(history=0)
    events: list[tuple[float, ActivityEvent]] = []
    bus.subscribe(lambda event: events.append((clock.time(), event)))
    timers = TimerService(clock)
    tracker = ActivityTracker(timers, bus, timing=config.timing, tools=config.tools)
    agent = TrackedAgent(agent_id=REPLAY_AGENT_ID, log_path=path, host_name="replay")

    buffer = LineBuffer()
    started: float | None = None
    for line in buffer.feed(read_from_offset(path, 0)):
        stamp = _line_time(line)
        if stamp is not None:
            if started is None:
                started = stamp
            clock.advance_to(stamp - started)
        tracker.process_line(agent, line)
    # A final line without a trailing newline is still a complete record here.
    if buffer.fragment.strip():
        tracker.process_line(agent, buffer.fragment)

    if settle:
        timing = config.timing
        clock.advance(max(timing.idle_delay_s, timing.stall_delay_s, timing.tool_done_delay_s) + 1.0)
    return events
