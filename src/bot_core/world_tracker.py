# track player, blocks, entities and inventory from agent packets
# src/bot_core/world_tracker.py
"""
World tracker for the IPC session driver.

Consumes normalized state packets pushed by the game-side agent and keeps
an incrementally updated view of what the session can answer synchronously
(position, vitals, nearby blocks, entities, inventory, tab list).

Rules:
- Only store what the agent tells us; never guess world contents.
- Keep storage minimal and "raw"; queries build the typed values on demand.
- Malformed packets are logged and dropped, never raised.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from spec.types import AIR_BLOCKS, Block, Entity, Item, PlayerInfo, Vec3

log = logging.getLogger(__name__)

BlockKey = Tuple[int, int, int]

EYE_HEIGHT = 1.62
RAY_STEP = 0.1


@dataclass
class _PlayerState:
    """Minimal tracked state for the local player."""

    pos: Optional[Dict[str, float]] = None      # None until spawned
    yaw: float = 0.0
    pitch: float = 0.0
    dimension: Optional[str] = None
    health: float = 20.0
    food: float = 20.0
    held_slot: Optional[int] = None
    moving: bool = False
    digging: bool = False


@dataclass
class _Stack:
    name: str
    count: int
    type: Optional[int] = None


@dataclass
class _PlayerEntry:
    username: str
    ping: int = 0
    entity_id: Optional[int] = None


def _key(pos: Vec3) -> BlockKey:
    return (int(math.floor(pos.x)), int(math.floor(pos.y)), int(math.floor(pos.z)))


class WorldTracker:
    """
    Maintains the session-side world view.

    Packet types (normalized by the agent):

        - "position_update"   -> player position/rotation
        - "dimension_change"  -> dimension switch
        - "health_update"     -> health / food
        - "block_update"      -> one block changed {x, y, z, name}
        - "block_batch"       -> many blocks {blocks: [[x, y, z, name], ...]}
        - "spawn_entity"      -> entity created or moved
        - "destroy_entities"  -> entities removed
        - "set_slot"          -> single inventory slot changed
        - "window_items"      -> full inventory snapshot
        - "held_slot"         -> selected hotbar slot
        - "player_list"       -> tab list replaced
        - "activity"          -> {moving, digging} flags
        - "registry"          -> {blocks: [names]} known block names
    """

    def __init__(self) -> None:
        self._player = _PlayerState()
        self._blocks: Dict[BlockKey, str] = {}
        self._entities: Dict[int, Entity] = {}
        self._inventory: Dict[int, _Stack] = {}
        self._players: Dict[str, _PlayerEntry] = {}
        self._known_blocks: Set[str] = set()

        self._handlers: Dict[str, Callable[[Mapping[str, Any]], None]] = {
            "position_update": self._handle_position_update,
            "dimension_change": self._handle_dimension_change,
            "health_update": self._handle_health_update,
            "block_update": self._handle_block_update,
            "block_batch": self._handle_block_batch,
            "spawn_entity": self._handle_spawn_entity,
            "destroy_entities": self._handle_destroy_entities,
            "set_slot": self._handle_set_slot,
            "window_items": self._handle_window_items,
            "held_slot": self._handle_held_slot,
            "player_list": self._handle_player_list,
            "activity": self._handle_activity,
            "registry": self._handle_registry,
        }

    # ------------------------------------------------------------------
    # Packet intake
    # ------------------------------------------------------------------

    def handles(self, packet_type: str) -> bool:
        return packet_type in self._handlers

    def apply(self, packet_type: str, pkt: Mapping[str, Any]) -> None:
        """Apply one state packet. Unknown types are ignored."""
        handler = self._handlers.get(packet_type)
        if handler is None:
            return
        try:
            handler(pkt)
        except (KeyError, TypeError, ValueError):
            log.warning("dropping malformed %s packet: %r", packet_type, pkt)

    # ------------------------------------------------------------------
    # Packet handlers
    # ------------------------------------------------------------------

    def _handle_position_update(self, pkt: Mapping[str, Any]) -> None:
        self._player.pos = {"x": float(pkt["x"]), "y": float(pkt["y"]), "z": float(pkt["z"])}
        if pkt.get("yaw") is not None:
            self._player.yaw = float(pkt["yaw"])
        if pkt.get("pitch") is not None:
            self._player.pitch = float(pkt["pitch"])

    def _handle_dimension_change(self, pkt: Mapping[str, Any]) -> None:
        dim = pkt.get("dimension")
        if dim is not None:
            self._player.dimension = str(dim)

    def _handle_health_update(self, pkt: Mapping[str, Any]) -> None:
        self._player.health = float(pkt.get("health", self._player.health))
        self._player.food = float(pkt.get("food", self._player.food))

    def _handle_block_update(self, pkt: Mapping[str, Any]) -> None:
        key = (int(pkt["x"]), int(pkt["y"]), int(pkt["z"]))
        self._blocks[key] = str(pkt["name"])

    def _handle_block_batch(self, pkt: Mapping[str, Any]) -> None:
        for x, y, z, name in pkt.get("blocks") or []:
            self._blocks[(int(x), int(y), int(z))] = str(name)

    def _handle_spawn_entity(self, pkt: Mapping[str, Any]) -> None:
        entity_id = int(pkt["entity_id"])
        self._entities[entity_id] = Entity(
            entity_id=entity_id,
            type=str(pkt.get("type", "unknown")),
            name=pkt.get("name"),
            position=Vec3(float(pkt["x"]), float(pkt["y"]), float(pkt["z"])),
        )

    def _handle_destroy_entities(self, pkt: Mapping[str, Any]) -> None:
        for raw_id in pkt.get("entity_ids") or []:
            self._entities.pop(int(raw_id), None)

    def _handle_set_slot(self, pkt: Mapping[str, Any]) -> None:
        slot = int(pkt["slot"])
        item = pkt.get("item")
        if isinstance(item, Mapping) and item.get("name"):
            self._inventory[slot] = _Stack(
                name=str(item["name"]), count=int(item.get("count", 1)), type=item.get("type")
            )
        else:
            self._inventory.pop(slot, None)

    def _handle_window_items(self, pkt: Mapping[str, Any]) -> None:
        items = pkt.get("items")
        if not isinstance(items, list):
            return
        self._inventory = {}
        for slot, entry in enumerate(items):
            if isinstance(entry, Mapping) and entry.get("name"):
                self._inventory[slot] = _Stack(
                    name=str(entry["name"]),
                    count=int(entry.get("count", 1)),
                    type=entry.get("type"),
                )

    def _handle_held_slot(self, pkt: Mapping[str, Any]) -> None:
        slot = pkt.get("slot")
        self._player.held_slot = None if slot is None else int(slot)

    def _handle_player_list(self, pkt: Mapping[str, Any]) -> None:
        self._players = {}
        for entry in pkt.get("players") or []:
            username = str(entry["username"])
            eid = entry.get("entity_id")
            self._players[username] = _PlayerEntry(
                username=username,
                ping=int(entry.get("ping", 0)),
                entity_id=None if eid is None else int(eid),
            )

    def _handle_activity(self, pkt: Mapping[str, Any]) -> None:
        if "moving" in pkt:
            self._player.moving = bool(pkt["moving"])
        if "digging" in pkt:
            self._player.digging = bool(pkt["digging"])

    def _handle_registry(self, pkt: Mapping[str, Any]) -> None:
        self._known_blocks = {str(name) for name in pkt.get("blocks") or []}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def position(self) -> Optional[Vec3]:
        pos = self._player.pos
        if pos is None:
            return None
        return Vec3(pos["x"], pos["y"], pos["z"])

    @property
    def yaw(self) -> float:
        return self._player.yaw

    @property
    def pitch(self) -> float:
        return self._player.pitch

    @property
    def dimension(self) -> Optional[str]:
        return self._player.dimension

    @property
    def health(self) -> float:
        return self._player.health

    @property
    def food(self) -> float:
        return self._player.food

    @property
    def moving(self) -> bool:
        return self._player.moving

    @property
    def digging(self) -> bool:
        return self._player.digging

    def held_item(self) -> Optional[Item]:
        slot = self._player.held_slot
        if slot is None:
            return None
        return self._item(slot, self._inventory.get(slot))

    def inventory_items(self) -> List[Item]:
        return [
            self._item(slot, stack)
            for slot, stack in sorted(self._inventory.items())
        ]

    @staticmethod
    def _item(slot: int, stack: Optional[_Stack]) -> Optional[Item]:
        if stack is None:
            return None
        return Item(name=stack.name, count=stack.count, slot=slot, type=stack.type)

    def entities(self) -> List[Entity]:
        return list(self._entities.values())

    def players(self) -> List[PlayerInfo]:
        return [
            PlayerInfo(
                username=entry.username,
                ping=entry.ping,
                entity=self._entities.get(entry.entity_id) if entry.entity_id is not None else None,
            )
            for entry in self._players.values()
        ]

    def nearest_entity(self, exclude: Iterable[str] = ()) -> Optional[Entity]:
        pos = self.position
        if pos is None:
            return None
        skip = set(exclude)
        candidates = [e for e in self._entities.values() if e.name not in skip]
        if not candidates:
            return None
        return min(candidates, key=lambda e: e.position.distance_to(pos))

    def block_at(self, pos: Vec3) -> Optional[Block]:
        key = _key(pos)
        name = self._blocks.get(key)
        if name is None:
            return None
        return Block(name=name, position=Vec3(*key))

    def block_at_cursor(self, max_distance: float) -> Optional[Block]:
        """First non-air block along the view ray, within `max_distance`."""
        pos = self.position
        if pos is None:
            return None
        yaw, pitch = self._player.yaw, self._player.pitch
        dx = -math.sin(yaw) * math.cos(pitch)
        dy = math.sin(pitch)
        dz = math.cos(yaw) * math.cos(pitch)

        steps = int(max_distance / RAY_STEP)
        last: Optional[BlockKey] = None
        for i in range(1, steps + 1):
            t = i * RAY_STEP
            key = _key(Vec3(pos.x + dx * t, pos.y + EYE_HEIGHT + dy * t, pos.z + dz * t))
            if key == last:
                continue
            last = key
            name = self._blocks.get(key)
            if name is not None and name not in AIR_BLOCKS:
                return Block(name=name, position=Vec3(*key))
        return None

    def find_blocks(self, name: str, max_distance: float, count: int) -> List[Vec3]:
        if self._known_blocks and name not in self._known_blocks:
            raise KeyError(name)
        pos = self.position
        if pos is None:
            return []
        hits = [
            Vec3(*key)
            for key, block_name in self._blocks.items()
            if block_name == name and Vec3(*key).distance_to(pos) <= max_distance
        ]
        hits.sort(key=lambda v: v.distance_to(pos))
        return hits[:count]

    def find_block(self, matching: Callable[[Block], bool], max_distance: float) -> Optional[Block]:
        pos = self.position
        if pos is None:
            return None
        best: Optional[Block] = None
        best_distance = math.inf
        for key, name in self._blocks.items():
            where = Vec3(*key)
            distance = where.distance_to(pos)
            if distance > max_distance or distance >= best_distance:
                continue
            block = Block(name=name, position=where)
            if matching(block):
                best, best_distance = block, distance
        return best

    def blocks_within(self, radius: float) -> Dict[str, List[Vec3]]:
        """Block positions by name within `radius`, nearest first."""
        pos = self.position
        found: Dict[str, List[Vec3]] = {}
        if pos is None:
            return found
        for key, name in self._blocks.items():
            where = Vec3(*key)
            if where.distance_to(pos) <= radius:
                found.setdefault(name, []).append(where)
        for positions in found.values():
            positions.sort(key=lambda v: v.distance_to(pos))
        return found


__all__ = ["WorldTracker"]
