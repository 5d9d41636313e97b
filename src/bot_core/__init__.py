# bot_core package
# src/bot_core/__init__.py
"""
Session bridge core.

Exports:
    - Bridge: process-level coordinator (stdin commands <-> game session)
    - ActionQueue, GoalWaiter, GoalRegistry, ReconnectController: the
      action coordination pieces
    - BridgeError: domain-level error type for non-action failures
"""

from __future__ import annotations

from .action_queue import ActionQueue
from .bridge import Bridge
from .errors import BridgeError
from .goals import GoalRegistry, GoalWaiter
from .reconnect import ReconnectController

__all__ = [
    "ActionQueue",
    "Bridge",
    "BridgeError",
    "GoalRegistry",
    "GoalWaiter",
    "ReconnectController",
]
