# src/spec/__init__.py

from __future__ import annotations

"""
Public interface surface for the session bridge.

This module re-exports *interfaces and data types* used across the codebase:
  - Controller-facing types (Command, Classification)
  - World-facing types returned by a GameSession (Vec3, Block, Item, Entity)
  - The GameSession / Subscription protocols
  - The EventSink protocol for outbound events

Deliberately does NOT export concrete implementations; runtime wiring
lives in src/bot_core/ and src/app/.
"""

from .types import (
    AIR_BLOCKS,
    Block,
    Classification,
    Command,
    Entity,
    Item,
    PlayerInfo,
    Vec3,
)

from .session import (
    GameSession,
    SessionFactory,
    SessionHandler,
    Subscription,
)

from .monitoring import EventSink

__all__ = [
    # Controller
    "Command",
    "Classification",
    # World
    "AIR_BLOCKS",
    "Vec3",
    "Block",
    "Item",
    "Entity",
    "PlayerInfo",
    # Session
    "GameSession",
    "SessionFactory",
    "SessionHandler",
    "Subscription",
    # Events
    "EventSink",
]
