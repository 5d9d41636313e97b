# src/bot_core/errors.py
"""
Error taxonomy for the session bridge.

- CommandError: input errors (malformed command, invalid parameters).
  Reported to the controller as an `error` event; never fatal.
- OperationTimeout: a deadline elapsed while waiting on the session.
  Treated as action failure, not process failure.
- SessionRejected: the game side refused an action; reported like any
  other operation failure.
- SessionError: the session could not be (re-)established. The
  ReconnectController treats it as another retryable termination.
- BridgeError: domain-level error for non-action failures (configuration,
  lifecycle), carrying a machine-readable code.
- ActionFailed: a handler already emitted its own failure events and only
  needs the action marked failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class BridgeError(RuntimeError):
    """
    Domain-level error raised by the bridge for non-action failures.

    Examples:
        - failed to build a session from config
        - stdin/stdout transport failures

    Action execution errors should NOT raise this; handlers report them
    as `error` events instead.
    """

    code: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"BridgeError(code={self.code!r}, details={self.details!r})"


class CommandError(ValueError):
    """Raised for malformed commands or invalid parameters."""


class SessionError(RuntimeError):
    """Raised when the game session cannot reach (or loses) its ready state."""


class SessionRejected(RuntimeError):
    """The game side refused an action (carries its reason verbatim)."""


class OperationTimeout(TimeoutError):
    """A session call did not settle before its deadline."""

    def __init__(self, label: str, timeout_s: float) -> None:
        self.label = label
        self.timeout_s = timeout_s
        super().__init__(f"{label} timed out after {int(round(timeout_s * 1000))}ms")


class ActionFailed(RuntimeError):
    """The handler already told the controller; only mark the action failed."""


__all__ = [
    "BridgeError",
    "CommandError",
    "SessionError",
    "SessionRejected",
    "OperationTimeout",
    "ActionFailed",
]
