from __future__ import annotations

from attowatch.coordinator.hosts import AnyHost, StaticHosts, host_index, host_name


def test_host_name_and_index() -> None:
    assert host_name("Claude Code", 3) == "Claude Code #3"
    assert host_index("Claude Code #12") == 12
    assert host_index("tmux") is None


def test_directories() -> None:
    assert StaticHosts(["a"]).is_live("a")
    assert not StaticHosts(["a"]).is_live("b")
    assert AnyHost().is_live("anything")
