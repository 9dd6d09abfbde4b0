"""YAML config loader for attowatch."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from attowatch.config.schema import (
    AttowatchConfig,
    HostsConfig,
    TimingConfig,
    ToolsConfig,
    WatchConfig,
)
from attowatch.errors import ConfigError

CONFIG_ENV_VAR = "ATTOWATCH_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".attowatch" / "config.yaml"


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Explicit path > ``ATTOWATCH_CONFIG`` > ``~/.attowatch/config.yaml``."""
    if path:
        return Path(path).expanduser()
    load_dotenv()
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def load_config(path: str | Path | None = None) -> AttowatchConfig:
    p = resolve_config_path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) if p.exists() else {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw, dict):
        raw = {}

    watch_raw = raw.get("watch", {}) if isinstance(raw.get("watch"), dict) else {}
    timing_raw = raw.get("timing", {}) if isinstance(raw.get("timing"), dict) else {}
    tools_raw = raw.get("tools", {}) if isinstance(raw.get("tools"), dict) else {}
    hosts_raw = raw.get("hosts", {}) if isinstance(raw.get("hosts"), dict) else {}

    watch = WatchConfig(**_pick(watch_raw, WatchConfig))
    timing = TimingConfig(**_pick(timing_raw, TimingConfig))
    tools = ToolsConfig(**_pick(tools_raw, ToolsConfig))
    hosts = HostsConfig(**_pick(hosts_raw, HostsConfig))

    if watch.project_dir:
        watch.project_dir = str(Path(watch.project_dir).expanduser())
    watch.state_path = str(Path(watch.state_path).expanduser())
    if watch.events_path:
        watch.events_path = str(Path(watch.events_path).expanduser())

    _validate_timing(timing)
    tools.permission_exempt = [str(x) for x in tools.permission_exempt if isinstance(x, str)]

    return AttowatchConfig(
        version=int(raw.get("version", 1)),
        watch=watch,
        timing=timing,
        tools=tools,
        hosts=hosts,
    )


def _validate_timing(timing: TimingConfig) -> None:
    for name in TimingConfig.__dataclass_fields__:
        value = getattr(timing, name)
        try:
            seconds = float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"timing.{name} must be a number, got {value!r}", key=name) from exc
        if seconds <= 0:
            raise ConfigError(f"timing.{name} must be positive, got {value!r}", key=name)
        setattr(timing, name, seconds)


def _pick(raw: dict[str, Any], model_type: type[Any]) -> dict[str, Any]:
    allowed = set(model_type.__dataclass_fields__.keys())
    return {k: v for k, v in raw.items() if k in allowed}
