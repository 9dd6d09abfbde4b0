"""Record-to-status state machine.

The transcript format has exactly one authoritative turn-end signal
(``system``/``turn_duration``) and it is never written for text-only
turns. Nor is there any record saying "a permission prompt is blocking".
Two timers stand in for the missing signals:

* the *idle* timer marks a text-only turn as waiting once the transcript
  has been quiet for ``idle_delay_s``;
* the *stall* timer flags a non-exempt tool that has shown no sign of
  life for ``stall_delay_s``. Execution pulses and completed sub-steps
  restart it.

Both heuristics can misfire (a slow text response looks idle, a slow
command looks stalled). That ambiguity is inherent to the log format.
"""

from __future__ import annotations

import logging

from attowatch.config.schema import TimingConfig, ToolsConfig
from attowatch.coordinator.event_bus import EventBus
from attowatch.coordinator.timers import TimerKind, TimerService
from attowatch.protocol.models import ActiveTool, EventType, TrackedAgent
from attowatch.protocol.records import (
    AssistantRecord,
    ProgressRecord,
    Record,
    SystemRecord,
    ToolUse,
    UnrecognizedRecord,
    UserRecord,
    classify_line,
)
from attowatch.protocol.status_text import format_tool_status

logger = logging.getLogger(__name__)


class ActivityTracker:
    """Applies classified records and timer expirations to a ``TrackedAgent``."""

    def __init__(
        self,
        timers: TimerService,
        bus: EventBus,
        *,
        timing: TimingConfig | None = None,
        tools: ToolsConfig | None = None,
    ) -> None:
        self._timers = timers
        self._bus = bus
        self._timing = timing or TimingConfig()
        self._tools = tools or ToolsConfig()
        self._exempt = frozenset(self._tools.permission_exempt)

    @property
    def permission_exempt(self) -> frozenset[str]:
        return self._exempt

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_line(self, agent: TrackedAgent, line: str) -> bool:
        """Classify and apply one line. Returns False if the line was malformed."""
        record = classify_line(line)
        if record is None:
            return False
        self.handle(agent, record)
        return True

    def handle(self, agent: TrackedAgent, record: Record) -> None:
        match record:
            case AssistantRecord():
                self._on_assistant(agent, record)
            case UserRecord():
                self._on_user(agent, record)
            case SystemRecord():
                if record.is_turn_end:
                    self._on_turn_end(agent)
            case ProgressRecord():
                self._on_progress(agent, record)
            case UnrecognizedRecord():
                pass

    def start_new_turn(self, agent: TrackedAgent) -> None:
        """Reset to "active with nothing open", as when a fresh prompt arrives."""
        self._timers.cancel(agent.agent_id, TimerKind.IDLE)
        self._timers.cancel(agent.agent_id, TimerKind.STALL)
        agent.clear_activity()
        agent.is_waiting = False
        agent.permission_sent = False
        agent.turn_had_tool_use = False
        self._bus.publish(EventType.TOOLS_CLEARED, agent.agent_id)
        self._bus.publish(EventType.STATUS, agent.agent_id, state="active")

    def forget(self, agent: TrackedAgent) -> None:
        """Cancel everything scheduled on behalf of *agent*."""
        self._timers.cancel_all(agent.agent_id)

    # ------------------------------------------------------------------
    # Record handlers
    # ------------------------------------------------------------------

    def _on_assistant(self, agent: TrackedAgent, record: AssistantRecord) -> None:
        if record.tool_uses:
            self._timers.cancel(agent.agent_id, TimerKind.IDLE)
            agent.is_waiting = False
            agent.turn_had_tool_use = True
            agent.permission_sent = False
            self._bus.publish(EventType.STATUS, agent.agent_id, state="active")
            arm_stall = False
            for use in record.tool_uses:
                if use.tool_id in agent.active_tools:
                    continue
                status = self._status_text(use)
                agent.active_tools[use.tool_id] = ActiveTool(use.tool_id, use.name, status)
                logger.debug("Agent %d tool start: %s %s", agent.agent_id, use.tool_id, status)
                self._bus.publish(
                    EventType.TOOL_START, agent.agent_id, tool_id=use.tool_id, status_text=status
                )
                if use.name not in self._exempt:
                    arm_stall = True
            if arm_stall:
                self._start_stall_timer(agent)
        elif record.has_text and not agent.turn_had_tool_use:
            self._timers.start(
                agent.agent_id,
                TimerKind.IDLE,
                self._timing.idle_delay_s,
                lambda: self._on_idle_timeout(agent),
            )

    def _on_user(self, agent: TrackedAgent, record: UserRecord) -> None:
        if record.tool_results:
            for tool_id in record.tool_results:
                self._complete_tool(agent, tool_id)
            agent.permission_sent = False
            if not agent.active_tools:
                agent.turn_had_tool_use = False
        elif record.is_prompt:
            self.start_new_turn(agent)

    def _complete_tool(self, agent: TrackedAgent, tool_id: str) -> None:
        tool = agent.active_tools.pop(tool_id, None)
        if tool is None:
            return
        logger.debug("Agent %d tool done: %s", agent.agent_id, tool_id)
        if tool.name == self._tools.subtask_tool:
            agent.subtask_tools.pop(tool_id, None)
            self._bus.publish(EventType.SUBTASK_CLEARED, agent.agent_id, parent_tool_id=tool_id)
        self._timers.defer(
            agent.agent_id,
            self._timing.tool_done_delay_s,
            lambda: self._bus.publish(EventType.TOOL_DONE, agent.agent_id, tool_id=tool_id),
        )

    def _on_turn_end(self, agent: TrackedAgent) -> None:
        self._timers.cancel(agent.agent_id, TimerKind.IDLE)
        self._timers.cancel(agent.agent_id, TimerKind.STALL)
        if agent.clear_activity():
            self._bus.publish(EventType.TOOLS_CLEARED, agent.agent_id)
        agent.is_waiting = True
        agent.permission_sent = False
        agent.turn_had_tool_use = False
        self._bus.publish(EventType.STATUS, agent.agent_id, state="waiting")

    def _on_progress(self, agent: TrackedAgent, record: ProgressRecord) -> None:
        parent_id = record.parent_tool_id
        if record.is_execution_pulse:
            if parent_id in agent.active_tools:
                agent.permission_sent = False
                self._start_stall_timer(agent)
            return

        if agent.tool_name(parent_id) != self._tools.subtask_tool:
            return
        match record.nested:
            case AssistantRecord() as nested:
                self._on_subtask_assistant(agent, parent_id, nested)
            case UserRecord() as nested:
                self._on_subtask_user(agent, parent_id, nested)

    def _on_subtask_assistant(self, agent: TrackedAgent, parent_id: str, nested: AssistantRecord) -> None:
        sub_tools = agent.subtask_tools.setdefault(parent_id, {})
        arm_stall = False
        for use in nested.tool_uses:
            if use.tool_id in sub_tools:
                continue
            status = self._status_text(use)
            sub_tools[use.tool_id] = use.name
            logger.debug(
                "Agent %d sub-task tool start: %s %s (parent: %s)",
                agent.agent_id, use.tool_id, status, parent_id,
            )
            self._bus.publish(
                EventType.SUBTASK_START,
                agent.agent_id,
                parent_tool_id=parent_id,
                tool_id=use.tool_id,
                status_text=status,
            )
            if use.name not in self._exempt:
                arm_stall = True
        if arm_stall:
            agent.permission_sent = False
            self._start_stall_timer(agent)

    def _on_subtask_user(self, agent: TrackedAgent, parent_id: str, nested: UserRecord) -> None:
        sub_tools = agent.subtask_tools.get(parent_id, {})
        for tool_id in nested.tool_results:
            if sub_tools.pop(tool_id, None) is None:
                continue
            logger.debug("Agent %d sub-task tool done: %s (parent: %s)", agent.agent_id, tool_id, parent_id)
            self._timers.defer(
                agent.agent_id,
                self._timing.tool_done_delay_s,
                lambda tool_id=tool_id: self._bus.publish(
                    EventType.SUBTASK_DONE, agent.agent_id, parent_tool_id=parent_id, tool_id=tool_id
                ),
            )
        if agent.has_non_exempt_subtask_tool(self._exempt):
            agent.permission_sent = False
            self._start_stall_timer(agent)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _start_stall_timer(self, agent: TrackedAgent) -> None:
        self._timers.start(
            agent.agent_id,
            TimerKind.STALL,
            self._timing.stall_delay_s,
            lambda: self._on_stall_timeout(agent),
        )

    def _on_idle_timeout(self, agent: TrackedAgent) -> None:
        agent.is_waiting = True
        self._bus.publish(EventType.STATUS, agent.agent_id, state="waiting")

    def _on_stall_timeout(self, agent: TrackedAgent) -> None:
        if agent.permission_sent or not agent.has_non_exempt_tool(self._exempt):
            return
        agent.permission_sent = True
        logger.info("Agent %d: possible permission wait detected", agent.agent_id)
        self._bus.publish(EventType.STALL, agent.agent_id)
        for parent_id in agent.stalled_subtask_parents(self._exempt):
            self._bus.publish(EventType.SUBTASK_STALL, agent.agent_id, parent_tool_id=parent_id)

    def _status_text(self, use: ToolUse) -> str:
        return format_tool_status(
            use.name,
            use.input,
            bash_max_len=self._tools.bash_command_max_len,
            task_max_len=self._tools.task_description_max_len,
        )
