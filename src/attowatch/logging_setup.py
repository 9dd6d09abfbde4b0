"""Diagnostic logging for the watch loop.

stdout carries the activity event stream, so every diagnostic line goes to
stderr. The ``attowatch.*`` module loggers use plain ``logging``; structlog
renders them and the CLI's structured loggers through one handler, so a
``--json`` run yields JSON on both streams.
"""

from __future__ import annotations

import logging
import sys
from pathlib import PurePath
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

_PACKAGE_LOGGER = "attowatch"


class _StderrHandler(logging.StreamHandler):
    """Marker type so repeated setup replaces the handler instead of stacking."""


def _stringify_paths(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
        if isinstance(value, PurePath):
            event_dict[key] = str(value)
    return event_dict


def _tag_agent(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    # "agent_id=3 event=tool_start" reads better as "agent 3: tool_start"
    agent_id = event_dict.pop("agent_id", None)
    if agent_id is not None:
        event_dict["event"] = f"agent {agent_id}: {event_dict.get('event', '')}"
    return event_dict


def _shared_processors(*, json_output: bool) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso" if json_output else "%H:%M:%S"),
        _stringify_paths,
    ]
    if not json_output:
        processors.append(_tag_agent)
    return processors


def setup_logging(*, debug: bool = False, json_output: bool = False) -> None:
    """Route attowatch diagnostics to stderr.

    Args:
        debug: Enable DEBUG level logging for the ``attowatch`` loggers.
        json_output: Render log lines as JSON instead of the console format.
    """
    shared = _shared_processors(json_output=json_output)
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    handler = _StderrHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    for old in [h for h in package_logger.handlers if isinstance(h, _StderrHandler)]:
        package_logger.removeHandler(old)
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    # watchdog logs every raw filesystem event at DEBUG.
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_watch_context(**context: Any) -> None:
    """Attach fields (project dir, focus) to every log line of this watch run."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)


def get_logger(name: str = _PACKAGE_LOGGER, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name, **kwargs)
