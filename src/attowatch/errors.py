"""Attowatch error hierarchy."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCategory(StrEnum):
    """Category of error for classification and handling."""

    CONFIGURATION = "configuration"
    STORAGE = "storage"
    REGISTRY = "registry"
    INTERNAL = "internal"


class WatchError(Exception):
    """Base error for all attowatch exceptions."""

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.details: dict[str, Any] = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, category={self.category!r})"


class ConfigError(WatchError):
    """Invalid or unreadable configuration."""

    def __init__(self, message: str, *, key: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, category=ErrorCategory.CONFIGURATION, retryable=False, **kwargs)
        self.key = key


class StoreError(WatchError):
    """Persisted agent bindings could not be read or written."""

    def __init__(self, message: str, *, path: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, category=ErrorCategory.STORAGE, retryable=True, **kwargs)
        self.path = path


class UnknownAgentError(WatchError):
    """An agent id that the registry does not track."""

    def __init__(self, agent_id: int) -> None:
        super().__init__(f"Unknown agent: {agent_id}", category=ErrorCategory.REGISTRY)
        self.agent_id = agent_id
