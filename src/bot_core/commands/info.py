# src/bot_core/commands/info.py
"""
Query commands: position, inventory, players, status, survey, quit.

All immediate. They only read session state and reply with one event
named after the command.
"""

from __future__ import annotations

import logging

from spec.types import Command

from ..dispatch import CommandContext
from ..errors import CommandError
from ..params import optional_int

log = logging.getLogger(__name__)

SURVEY_DEFAULT_RANGE = 16
SURVEY_INVENTORY_LIMIT = 20
CURSOR_REACH = 5.0


def inventory(ctx: CommandContext, cmd: Command) -> None:
    ctx.send(
        "inventory",
        items=[
            {"name": item.name, "count": item.count, "slot": item.slot}
            for item in ctx.session.inventory_items()
        ],
    )


def position(ctx: CommandContext, cmd: Command) -> None:
    pos = ctx.session.position
    if pos is None:
        ctx.send("position", error="not_spawned")
        return
    ctx.send(
        "position",
        **pos.to_dict(),
        yaw=ctx.session.yaw,
        pitch=ctx.session.pitch,
        dimension=ctx.session.dimension,
    )


def players(ctx: CommandContext, cmd: Command) -> None:
    ctx.send(
        "players",
        list=[
            {"username": p.username, "ping": p.ping, "entity": p.entity is not None}
            for p in ctx.session.players()
        ],
    )


def status(ctx: CommandContext, cmd: Command) -> None:
    session = ctx.session
    pos = session.position
    ctx.send(
        "status",
        pathfinder_moving=session.has_pathfinder and session.is_moving(),
        action_busy=ctx.queue.busy,
        queue_length=ctx.queue.queue_length,
        health=session.health,
        food=session.food,
        position=pos.to_dict() if pos is not None else None,
        dimension=session.dimension,
        digging=session.is_digging(),
    )


def survey(ctx: CommandContext, cmd: Command) -> None:
    """Summarize the surroundings: notable blocks, entities, inventory, vitals."""
    session = ctx.session
    pos = session.position
    if pos is None:
        raise CommandError("Bot has not spawned yet")

    radius = optional_int(cmd.params, "range", SURVEY_DEFAULT_RANGE)
    found = session.survey(radius)
    cursor = session.block_at_cursor(CURSOR_REACH)

    ctx.send(
        "survey",
        position={"x": round(pos.x), "y": round(pos.y), "z": round(pos.z)},
        looking_at=cursor.name if cursor is not None else None,
        blocks=found.get("blocks", []),
        entities=found.get("entities", []),
        inventory=[
            {"name": item.name, "count": item.count}
            for item in session.inventory_items()[:SURVEY_INVENTORY_LIMIT]
        ],
        health=session.health,
        food=session.food,
    )


def quit_(ctx: CommandContext, cmd: Command) -> None:
    log.info("quit requested by controller")
    ctx.request_quit()
