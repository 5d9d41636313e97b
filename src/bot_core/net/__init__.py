# bot_core.net package
# src/bot_core/net/__init__.py
"""
Network layer for the bridge.

This package provides:
- protocol: line-delimited JSON framing for the controller link
  (decode_command, StreamEventSink)
- ipc: IpcSession, the GameSession driver that talks to the game-side agent
"""

from __future__ import annotations

from .ipc import IpcSession, ListenerSet, ListenerSubscription, create_session_factory
from .protocol import StreamEventSink, decode_command, encode_event

__all__ = [
    "IpcSession",
    "ListenerSet",
    "ListenerSubscription",
    "StreamEventSink",
    "create_session_factory",
    "decode_command",
    "encode_event",
]
