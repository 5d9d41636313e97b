# IPC bridge to the game-side agent
# src/bot_core/net/ipc.py
"""
IPC-based GameSession.

This session talks to a game-side agent (the process that actually holds
the game connection and runs pathfinding) over JSON lines on TCP. The
agent is responsible for translating these messages into real game actions
and for pushing state back.

Message format (version 1):
  - Each message is a single line of UTF-8 JSON:
        {"type": "<message_type>", "payload": {...}, "id": <int, optional>}
  - Python -> agent:
        fire-and-forget controls   {"type": "look", "payload": {...}}
        requests                   {"type": "dig", "payload": {...}, "id": 7}
  - Agent -> Python:
        responses                  {"type": "response", "id": 7,
                                    "payload": {"ok": false, "error": "...", "code": "..."}}
        notifications              {"type": "event",
                                    "payload": {"name": "chat", "args": ["alice", "hi"]}}
        state packets              anything WorldTracker handles
        capabilities               {"type": "hello", "payload": {"pathfinder": true}}

Responses with `code` "unknown" raise KeyError, "no_recipe" raises
LookupError, anything else SessionRejected.
"""

from __future__ import annotations

import asyncio
import json
import logging
from itertools import count
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from env.schema import SessionConfig
from spec.session import BlockPredicate, SessionHandler
from spec.types import Block, Entity, Item, PlayerInfo, Vec3

from ..errors import SessionError, SessionRejected
from ..world_tracker import WorldTracker

log = logging.getLogger(__name__)

SURVEY_BLOCK_LIMIT = 20
SURVEY_ENTITY_LIMIT = 15
SURVEY_SAMPLES_PER_BLOCK = 5

# Terrain too common to be worth listing in a survey.
SURVEY_SKIP_BLOCKS = frozenset({
    "air", "cave_air", "void_air", "water", "lava", "bedrock", "stone",
    "dirt", "grass_block", "deepslate", "netherrack", "end_stone",
    "sand", "gravel", "sandstone", "diorite", "granite", "andesite",
    "tuff", "calcite", "dripstone_block", "smooth_basalt",
    "cobblestone", "mossy_cobblestone",
})


# ---------------------------------------------------------------------------
# Listener bookkeeping
# ---------------------------------------------------------------------------

class ListenerSubscription:
    """Handle returned by ListenerSet.add(); unsubscribe() is idempotent."""

    def __init__(self, owner: "ListenerSet", event: str, handler: SessionHandler) -> None:
        self._owner = owner
        self._event = event
        self._handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._owner.remove(self._event, self._handler)


class ListenerSet:
    """Per-event handler lists with explicit subscription handles."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[SessionHandler]] = {}

    def add(self, event: str, handler: SessionHandler) -> ListenerSubscription:
        self._handlers.setdefault(event, []).append(handler)
        return ListenerSubscription(self, event, handler)

    def remove(self, event: str, handler: SessionHandler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def emit(self, event: str, *args: Any) -> None:
        """Call every handler for `event`; a failing handler is logged and skipped."""
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception:
                log.exception("listener for %s failed", event)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class IpcSession:
    """GameSession backed by the game-side agent."""

    def __init__(self, config: SessionConfig) -> None:
        self.username = config.username
        self._config = config

        self._listeners = ListenerSet()
        self._tracker = WorldTracker()
        self._has_pathfinder = False

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._read_task: Optional[asyncio.Task[None]] = None
        self._spawned: Optional[asyncio.Future[None]] = None
        self._ids: Iterator[int] = count(1)
        self._pending: Dict[int, asyncio.Future[Dict[str, Any]]] = {}
        self._ended = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        cfg = self._config
        loop = asyncio.get_running_loop()
        log.info(
            "IpcSession connecting to agent %s:%d (server %s:%d as %s)",
            cfg.ipc_host, cfg.ipc_port, cfg.host, cfg.port, cfg.username,
        )
        try:
            self._reader, self._writer = await asyncio.open_connection(cfg.ipc_host, cfg.ipc_port)
        except OSError as exc:
            raise SessionError(f"cannot reach agent at {cfg.ipc_host}:{cfg.ipc_port}: {exc}") from exc

        self._spawned = loop.create_future()
        self._read_task = loop.create_task(self._read_loop(), name="ipc-session-reader")
        try:
            self._notify(
                "login",
                {"host": cfg.host, "port": cfg.port, "username": cfg.username, "auth": cfg.auth},
            )
            await self._spawned
        except BaseException:
            self._close_transport()
            raise

    def quit(self, reason: str = "") -> None:
        if self._writer is None:
            return
        try:
            self._notify("quit", {"reason": reason})
        except SessionError:
            log.debug("quit after transport loss", exc_info=True)
        self._close_transport()

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    def subscribe(self, event: str, handler: SessionHandler) -> ListenerSubscription:
        return self._listeners.add(event, handler)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _write(self, message: Mapping[str, Any]) -> None:
        if self._writer is None or self._writer.is_closing():
            raise SessionError("IpcSession is not connected")
        line = json.dumps(message, separators=(",", ":")).encode("utf-8") + b"\n"
        self._writer.write(line)

    def _notify(self, message_type: str, payload: Optional[Mapping[str, Any]] = None) -> None:
        self._write({"type": message_type, "payload": dict(payload or {})})

    async def _request(
        self, message_type: str, payload: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        request_id = next(self._ids)
        future: asyncio.Future[Dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            self._write({"type": message_type, "payload": dict(payload or {}), "id": request_id})
            response = await future
        finally:
            self._pending.pop(request_id, None)

        if response.get("ok", True):
            return response
        message = str(response.get("error") or f"{message_type} failed")
        code = response.get("code")
        if code == "unknown":
            raise KeyError(message)
        if code == "no_recipe":
            raise LookupError(message)
        raise SessionRejected(message)

    async def _read_loop(self) -> None:
        assert self._reader is not None
        reason = "connection closed"
        try:
            while True:
                line = await self._reader.readline()
                if not line:
                    break
                line = line.strip()
                if line:
                    self._handle_raw_line(line)
        except asyncio.CancelledError:
            raise
        except (OSError, ValueError) as exc:
            log.warning("IpcSession socket error: %s", exc)
            reason = str(exc) or exc.__class__.__name__
        self._on_transport_lost(reason)

    def _handle_raw_line(self, line: bytes) -> None:
        try:
            obj = json.loads(line.decode("utf-8"))
        except ValueError:
            log.warning("IpcSession failed to decode JSON line: %r", line)
            return
        if not isinstance(obj, dict):
            log.warning("IpcSession received non-object message: %r", obj)
            return

        message_type = obj.get("type")
        payload = obj.get("payload", {})
        if not isinstance(message_type, str) or not isinstance(payload, dict):
            log.warning("IpcSession received malformed message: %r", obj)
            return

        if message_type == "response":
            future = self._pending.get(obj.get("id"))
            if future is not None and not future.done():
                future.set_result(payload)
            return
        if message_type == "event":
            self._handle_event(str(payload.get("name")), payload.get("args") or [])
            return
        if message_type == "hello":
            self._has_pathfinder = bool(payload.get("pathfinder"))
            return
        if self._tracker.handles(message_type):
            self._tracker.apply(message_type, payload)
            return
        log.debug("IpcSession ignoring message type %s", message_type)

    def _handle_event(self, name: str, args: List[Any]) -> None:
        if name == "spawn" and self._spawned is not None and not self._spawned.done():
            self._spawned.set_result(None)
        if name == "end":
            self._ended = True
        self._listeners.emit(name, *args)

    def _on_transport_lost(self, reason: str) -> None:
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.close()
        for future in self._pending.values():
            if not future.done():
                future.set_exception(SessionError(f"session lost: {reason}"))
        self._pending.clear()

        if self._spawned is not None and not self._spawned.done():
            self._spawned.set_exception(SessionError(f"agent closed before spawn: {reason}"))
            return
        if not self._ended:
            self._ended = True
            self._listeners.emit("end", reason)

    def _close_transport(self) -> None:
        """Deliberate close: no `end` notification follows."""
        self._ended = True
        task, self._read_task = self._read_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        for future in self._pending.values():
            if not future.done():
                future.set_exception(SessionError("session closed"))
        self._pending.clear()
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.close()

    # ------------------------------------------------------------------
    # State queries
    # ------------------------------------------------------------------

    @property
    def position(self) -> Optional[Vec3]:
        return self._tracker.position

    @property
    def yaw(self) -> float:
        return self._tracker.yaw

    @property
    def pitch(self) -> float:
        return self._tracker.pitch

    @property
    def dimension(self) -> Optional[str]:
        return self._tracker.dimension

    @property
    def health(self) -> float:
        return self._tracker.health

    @property
    def food(self) -> float:
        return self._tracker.food

    @property
    def held_item(self) -> Optional[Item]:
        return self._tracker.held_item()

    @property
    def has_pathfinder(self) -> bool:
        return self._has_pathfinder

    def players(self) -> List[PlayerInfo]:
        return self._tracker.players()

    def entities(self) -> List[Entity]:
        return self._tracker.entities()

    def inventory_items(self) -> List[Item]:
        return self._tracker.inventory_items()

    def block_at(self, pos: Vec3) -> Optional[Block]:
        return self._tracker.block_at(pos)

    def block_at_cursor(self, max_distance: float = 5.0) -> Optional[Block]:
        return self._tracker.block_at_cursor(max_distance)

    def find_blocks(self, name: str, max_distance: float, count: int) -> List[Vec3]:
        return self._tracker.find_blocks(name, max_distance, count)

    def find_block(self, matching: BlockPredicate, max_distance: float) -> Optional[Block]:
        return self._tracker.find_block(matching, max_distance)

    def nearest_entity(self) -> Optional[Entity]:
        return self._tracker.nearest_entity(exclude=[self.username])

    def is_moving(self) -> bool:
        return self._tracker.moving

    def is_digging(self) -> bool:
        return self._tracker.digging

    def survey(self, radius: int) -> Dict[str, Any]:
        pos = self.position
        if pos is None:
            return {"blocks": [], "entities": []}

        blocks = [
            f"{name}({min(len(found), SURVEY_SAMPLES_PER_BLOCK)})"
            for name, found in self._tracker.blocks_within(radius).items()
            if name not in SURVEY_SKIP_BLOCKS
        ]

        nearby = []
        for entity in self._tracker.entities():
            if entity.name == self.username:
                continue
            distance = entity.position.distance_to(pos)
            if distance <= radius:
                nearby.append(
                    {"type": entity.type, "name": entity.name or "unknown", "distance": round(distance)}
                )
        nearby.sort(key=lambda e: e["distance"])

        return {
            "blocks": blocks[:SURVEY_BLOCK_LIMIT],
            "entities": nearby[:SURVEY_ENTITY_LIMIT],
        }

    # ------------------------------------------------------------------
    # Controls (fire and forget)
    # ------------------------------------------------------------------

    def chat(self, message: str) -> None:
        self._notify("chat", {"message": message})

    def whisper(self, target: str, message: str) -> None:
        self._notify("whisper", {"target": target, "message": message})

    def look(self, yaw: float, pitch: float) -> None:
        self._notify("look", {"yaw": yaw, "pitch": pitch})

    def set_control_state(self, control: str, state: bool) -> None:
        self._notify("control", {"control": control, "state": state})

    def clear_control_states(self) -> None:
        self._notify("clear_controls")

    def set_goal(self, goal: Optional[Dict[str, Any]], dynamic: bool = False) -> None:
        self._notify("set_goal", {"goal": goal, "dynamic": dynamic})

    def stop_pathing(self) -> None:
        self._notify("stop_pathing")

    def stop_digging(self) -> None:
        self._notify("stop_digging")

    def attack(self, entity: Entity) -> None:
        self._notify("attack", {"entity_id": entity.entity_id})

    def activate_item(self) -> None:
        self._notify("activate_item")

    def deactivate_item(self) -> None:
        self._notify("deactivate_item")

    def wake(self) -> None:
        self._notify("wake")

    # ------------------------------------------------------------------
    # Long-running actions
    # ------------------------------------------------------------------

    async def dig(self, block: Block) -> None:
        await self._request("dig", block.position.to_dict())

    async def place_block(self, reference: Block, face: Vec3) -> None:
        await self._request(
            "place_block",
            {"reference": reference.position.to_dict(), "face": face.to_dict()},
        )

    async def activate_block(self, block: Block) -> None:
        await self._request("activate_block", block.position.to_dict())

    async def equip(self, item: Item, destination: str) -> None:
        await self._request("equip", {"item": item.name, "slot": item.slot, "destination": destination})

    async def craft(self, item_name: str, count: int) -> None:
        await self._request("craft", {"item": item_name, "count": count})

    async def toss_stack(self, item: Item) -> None:
        await self._request("toss_stack", {"item": item.name, "slot": item.slot})

    async def toss(self, item_type: Optional[int], count: int) -> None:
        await self._request("toss", {"item_type": item_type, "count": count})

    async def sleep(self, bed: Block) -> None:
        await self._request("sleep", bed.position.to_dict())


def create_session_factory(config: SessionConfig) -> Callable[[], IpcSession]:
    """Fresh IpcSession per (re)connect."""

    def factory() -> IpcSession:
        return IpcSession(config)

    return factory


__all__ = [
    "IpcSession",
    "ListenerSet",
    "ListenerSubscription",
    "create_session_factory",
]
