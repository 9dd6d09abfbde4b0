"""CLI entrypoint for attowatch."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from attowatch.config.loader import load_config
from attowatch.config.schema import AttowatchConfig
from attowatch.coordinator.event_bus import EventBus
from attowatch.coordinator.hosts import StaticHosts
from attowatch.coordinator.monitor import watch
from attowatch.coordinator.registry import project_dir_for
from attowatch.coordinator.store import AgentStore
from attowatch.errors import WatchError
from attowatch.logging_setup import bind_watch_context, get_logger, setup_logging
from attowatch.protocol.models import ActivityEvent, EventType
from attowatch.replay.transcript import replay_transcript

logger = get_logger(__name__)

_EVENT_STYLES: dict[EventType, str] = {
    EventType.TOOL_START: "cyan",
    EventType.TOOL_DONE: "green",
    EventType.TOOLS_CLEARED: "dim",
    EventType.STATUS: "bold",
    EventType.STALL: "bold red",
    EventType.SUBTASK_STALL: "red",
    EventType.SUBTASK_START: "cyan",
    EventType.SUBTASK_DONE: "green",
    EventType.SUBTASK_CLEARED: "dim",
    EventType.AGENT_CREATED: "magenta",
    EventType.AGENT_REMOVED: "magenta",
}


@click.group()
def main() -> None:
    """Watch coding-agent transcripts and report what each agent is doing."""


def _describe(event: ActivityEvent) -> str:
    parts = [str(event.event_type)]
    if event.state:
        parts.append(event.state)
    if event.parent_tool_id:
        parts.append(f"parent={event.parent_tool_id}")
    if event.tool_id:
        parts.append(f"tool={event.tool_id}")
    if event.status_text:
        parts.append(repr(event.status_text))
    return " ".join(parts)


def _print_event(console: Console, event: ActivityEvent, *, stamp: str) -> None:
    style = _EVENT_STYLES.get(event.event_type, "")
    console.print(f"{stamp} agent {event.agent_id}: {_describe(event)}", style=style, markup=False)


def _load(config_path: Path | None, project_dir: Path | None) -> tuple[AttowatchConfig, Path]:
    cfg = load_config(config_path)
    directory = Path(project_dir or cfg.watch.project_dir or project_dir_for())
    return cfg, directory


def _store(cfg: AttowatchConfig, directory: Path) -> AgentStore:
    return AgentStore(cfg.watch.state_path, scope=str(directory))


@main.command("watch")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--project-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Transcript directory to watch (default: derived from the working directory)")
@click.option("--focus", type=int, default=None, help="Agent id that receives conversation resets")
@click.option("--host", "hosts", multiple=True, help="Live host name; agents on other hosts are dropped on restore")
@click.option("--json", "json_output", is_flag=True, help="Print events as JSON lines")
@click.option("--debug", "debug_flag", is_flag=True, help="Enable debug logging")
def watch_command(
    config_path: Path | None,
    project_dir: Path | None,
    focus: int | None,
    hosts: tuple[str, ...],
    json_output: bool,
    debug_flag: bool,
) -> None:
    """Follow tracked agents and print activity events until interrupted."""
    try:
        cfg, directory = _load(config_path, project_dir)
    except WatchError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    debug = debug_flag or cfg.watch.debug
    setup_logging(debug=debug, json_output=json_output)
    bind_watch_context(project_dir=directory, focus=focus)

    console = Console(highlight=False)
    bus = EventBus(cfg.watch.events_path)
    if json_output:
        bus.subscribe(lambda event: click.echo(json.dumps(event.to_dict())))
    else:
        bus.subscribe(
            lambda event: _print_event(
                console, event, stamp=datetime.fromtimestamp(event.timestamp).strftime("%H:%M:%S")
            )
        )
    if debug:
        # interleaves the event stream with module diagnostics on stderr
        bus.subscribe(lambda event: logger.debug(str(event.event_type), agent_id=event.agent_id))

    logger.info("watch_started", hosts=list(hosts))
    try:
        asyncio.run(
            watch(
                cfg,
                bus=bus,
                project_dir=directory,
                focus=focus,
                hosts=StaticHosts(hosts) if hosts else None,
            )
        )
    except KeyboardInterrupt:
        logger.info("watch_interrupted")
    except WatchError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc


@main.command("track")
@click.argument("log_path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--host", default=None, help="Host name (default: next '<prefix> #n')")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--project-dir", type=click.Path(file_okay=False, path_type=Path), default=None)
def track_command(log_path: Path, host: str | None, config_path: Path | None, project_dir: Path | None) -> None:
    """Register a transcript; the next ``watch`` picks it up."""
    try:
        cfg, directory = _load(config_path, project_dir)
        entry = _store(cfg, directory).add(log_path, prefix=cfg.hosts.name_prefix, host=host)
    except WatchError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    click.echo(f"Agent {entry.agent_id}: {entry.host_name} -> {entry.log_path}")


@main.command("untrack")
@click.argument("agent_id", type=int)
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--project-dir", type=click.Path(file_okay=False, path_type=Path), default=None)
def untrack_command(agent_id: int, config_path: Path | None, project_dir: Path | None) -> None:
    """Forget a registered agent."""
    try:
        cfg, directory = _load(config_path, project_dir)
        removed = _store(cfg, directory).remove(agent_id)
    except WatchError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    if not removed:
        click.echo(f"Unknown agent: {agent_id}", err=True)
        raise SystemExit(1)
    click.echo(f"Agent {agent_id} removed")


@main.command("agents")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--project-dir", type=click.Path(file_okay=False, path_type=Path), default=None)
def agents_command(config_path: Path | None, project_dir: Path | None) -> None:
    """List registered agents."""
    try:
        cfg, directory = _load(config_path, project_dir)
        agents = _store(cfg, directory).load(strict=True)
    except WatchError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    if not agents:
        click.echo("No agents registered")
        return

    table = Table(title=str(directory))
    table.add_column("ID", justify="right", no_wrap=True)
    table.add_column("Host", no_wrap=True)
    table.add_column("Transcript", overflow="fold")
    table.add_column("Exists", no_wrap=True)
    for agent in agents:
        exists = Path(agent.log_path).exists()
        table.add_row(str(agent.agent_id), agent.host_name, agent.log_path, "yes" if exists else "no")
    Console(highlight=False).print(table)


@main.command("replay")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--json", "json_output", is_flag=True, help="Print events as JSON lines")
@click.option("--no-settle", is_flag=True, help="Stop at the last record instead of letting timers expire")
def replay_command(log_path: Path, config_path: Path | None, json_output: bool, no_settle: bool) -> None:
    """Run a finished transcript through the tracker and print the events."""
    try:
        cfg = load_config(config_path)
        events = replay_transcript(log_path, cfg, settle=not no_settle)
    except WatchError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    except OSError as exc:
        click.echo(f"Error: cannot read {log_path}: {exc}", err=True)
        raise SystemExit(1) from exc

    console = Console(highlight=False)
    for offset, event in events:
        if json_output:
            click.echo(json.dumps({"t": round(offset, 3), **event.to_dict()}))
        else:
            _print_event(console, event, stamp=f"+{offset:8.3f}s")
