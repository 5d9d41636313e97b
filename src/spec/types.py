# core shared types: Command, Classification, Vec3, Block, Item, Entity
# src/spec/types.py

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Controller-facing types
# ---------------------------------------------------------------------------

class Classification(Enum):
    """How the ActionQueue treats a command kind.

    IMMEDIATE commands run as soon as they arrive, even while an exclusive
    action is in flight (queries and short state toggles).

    EXCLUSIVE commands are serialized: at most one runs at a time and the
    rest wait in FIFO order.
    """
    IMMEDIATE = "immediate"
    EXCLUSIVE = "exclusive"


@dataclass
class Command:
    """A single inbound request from the controller.

    Wire shape is a flat JSON object:

      {"kind": "dig", "x": 1, "y": 64, "z": 2}

    `kind` names the action; every other key lands in `params`.
    Commands are not retained beyond their processing.
    """
    kind: str                               # e.g. "goto", "dig_area", "status"
    params: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.params.get(key, default)


# ---------------------------------------------------------------------------
# World-facing types (what a GameSession hands back)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Vec3:
    """Block or entity coordinate."""
    x: float
    y: float
    z: float

    def distance_to(self, other: "Vec3") -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}


AIR_BLOCKS = frozenset({"air", "cave_air", "void_air"})


@dataclass
class Block:
    """A block as reported by the session (name + absolute position)."""
    name: str
    position: Vec3

    @property
    def is_air(self) -> bool:
        return self.name in AIR_BLOCKS


@dataclass
class Item:
    """One inventory stack."""
    name: str
    count: int
    slot: Optional[int] = None
    type: Optional[int] = None              # numeric item id, needed for toss()


@dataclass
class Entity:
    """A nearby entity (mob, player, dropped item)."""
    entity_id: int
    type: str                               # "player", "mob", "object", ...
    name: Optional[str]
    position: Vec3


@dataclass
class PlayerInfo:
    """Entry of the session's tab list."""
    username: str
    ping: int = 0
    entity: Optional[Entity] = None         # None when out of render distance
