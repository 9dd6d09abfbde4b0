from __future__ import annotations

from attowatch.errors import ConfigError, ErrorCategory, StoreError, UnknownAgentError, WatchError


def test_hierarchy_and_categories() -> None:
    assert isinstance(ConfigError("x"), WatchError)
    assert ConfigError("bad", key="idle_delay_s").category == ErrorCategory.CONFIGURATION
    store = StoreError("disk full", path="/tmp/a.json")
    assert store.retryable is True
    assert store.path == "/tmp/a.json"


def test_unknown_agent() -> None:
    err = UnknownAgentError(7)
    assert str(err) == "Unknown agent: 7"
    assert err.agent_id == 7
    assert err.category == ErrorCategory.REGISTRY
    assert "UnknownAgentError" in repr(err)
