# src/bot_core/events.py
"""
Session notification bindings.

Forwards what the game session reports to the controller as outbound
events, and hands the lifecycle notifications (kicked, end) to the bridge.

    spawn          -> spawn{position, dimension}
    chat/whisper   -> chat|whisper{username, message}   (own messages dropped)
    player_joined  -> player_joined{username}
    player_left    -> player_left{username}
    health         -> health{health, food}
    death          -> death
    kicked         -> kicked{reason}, then on_kicked(reason)
    error          -> error{message}
    end            -> disconnected{reason}, then on_end(reason)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List

from spec.monitoring import EventSink
from spec.session import GameSession, Subscription

log = logging.getLogger(__name__)

ReasonFn = Callable[[str], None]


def bind_session_events(
    session: GameSession,
    sink: EventSink,
    *,
    on_kicked: ReasonFn,
    on_end: ReasonFn,
) -> List[Subscription]:
    """Subscribe the forwarding handlers; returns the subscriptions for later release."""

    def on_spawn(*_: Any) -> None:
        pos = session.position
        sink.send(
            {
                "event": "spawn",
                "position": pos.to_dict() if pos is not None else None,
                "dimension": session.dimension,
            }
        )
        log.info("bot spawned")

    def relay_message(kind: str) -> Callable[[str, str], None]:
        def handler(username: str, message: str) -> None:
            if username == session.username:
                return
            sink.send({"event": kind, "username": username, "message": message})

        return handler

    def on_player_joined(username: str) -> None:
        sink.send({"event": "player_joined", "username": username})

    def on_player_left(username: str) -> None:
        sink.send({"event": "player_left", "username": username})

    def on_health(*_: Any) -> None:
        sink.send({"event": "health", "health": session.health, "food": session.food})

    def on_death(*_: Any) -> None:
        sink.send({"event": "death"})
        log.info("bot died")

    def on_kick(reason: Any) -> None:
        text = str(reason)
        sink.send({"event": "kicked", "reason": text})
        log.warning("kicked: %s", text)
        on_kicked(text)

    def on_error(err: Any) -> None:
        message = str(err)
        sink.send({"event": "error", "message": message})
        log.error("session error: %s", message)

    def on_session_end(reason: Any = None) -> None:
        text = str(reason) if reason else "unknown"
        sink.send({"event": "disconnected", "reason": text})
        log.warning("disconnected: %s", text)
        on_end(text)

    return [
        session.subscribe("spawn", on_spawn),
        session.subscribe("chat", relay_message("chat")),
        session.subscribe("whisper", relay_message("whisper")),
        session.subscribe("player_joined", on_player_joined),
        session.subscribe("player_left", on_player_left),
        session.subscribe("health", on_health),
        session.subscribe("death", on_death),
        session.subscribe("kicked", on_kick),
        session.subscribe("error", on_error),
        session.subscribe("end", on_session_end),
    ]


__all__ = ["bind_session_events"]
