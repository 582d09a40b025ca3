from __future__ import annotations

from typing import Any


class MonitorError(Exception):
    """Base error for the fill monitor."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx}]"
        return self.message


class FetchError(MonitorError):
    """Exchange request failed or returned an unusable payload."""


class FormatError(MonitorError):
    """Notification key does not have a routable shape."""


class UnsupportedMonitorKind(MonitorError):
    """Monitor kind has no change detection yet."""


class ConfigError(MonitorError):
    """Environment or monitor config file is invalid."""
