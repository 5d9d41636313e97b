# src/bot_core/commands/movement.py
"""
Movement commands: move, goto, follow, look, jump, sneak, stop.

move / goto are exclusive: they hand the session a pathfinding goal and
wait for `goal_reached` through the GoalWaiter. When the session has no
pathfinder they fall back to facing the target and walking forward for a
fixed time.

follow, look, jump, sneak and stop are immediate toggles.
"""

from __future__ import annotations

import asyncio
import logging
import math

from spec.types import Command, Vec3

from ..dispatch import CommandContext
from ..errors import CommandError
from ..goals import GoalOutcome
from ..params import is_number, require_coords, require_str
from ..timeouts import ignore_failure

log = logging.getLogger(__name__)

MOVE_FALLBACK_S = 2.0
GOTO_FALLBACK_S = 3.0
FOLLOW_FALLBACK_S = 2.0
JUMP_HOLD_S = 0.5
GOTO_RANGE = 2
FOLLOW_DISTANCE = 3


def _face_and_walk(ctx: CommandContext, target: Vec3) -> None:
    """Point at `target` on the horizontal plane and start walking forward."""
    pos = ctx.session.position
    if pos is None:
        raise CommandError("Bot has not spawned yet")
    dx = target.x - pos.x
    dz = target.z - pos.z
    ctx.session.look(math.atan2(-dx, dz), 0.0)
    ctx.session.set_control_state("forward", True)


async def _walk_blind(ctx: CommandContext, target: Vec3, duration_s: float) -> None:
    _face_and_walk(ctx, target)
    try:
        await asyncio.sleep(duration_s)
    finally:
        ignore_failure(ctx.session.clear_control_states, what="release controls")


async def move(ctx: CommandContext, cmd: Command) -> None:
    target = require_coords(cmd.params)

    if not ctx.session.has_pathfinder:
        ctx.send("ack", action="move")
        await _walk_blind(ctx, target, MOVE_FALLBACK_S)
        return

    handle = ctx.goals.pursue({"type": "block", **target.to_dict()}, ctx.timeouts.goal_s)
    ctx.send("ack", action="move")
    if await handle is GoalOutcome.REACHED:
        ctx.send("move_done", **target.to_dict())


async def goto(ctx: CommandContext, cmd: Command) -> None:
    player_name = cmd.get("target")
    if player_name:
        player = next((p for p in ctx.session.players() if p.username == player_name), None)
        if player is None or player.entity is None:
            raise CommandError(f"Player {player_name} not found or not visible")
        target = player.entity.position
        label = str(player_name)
    else:
        target = require_coords(cmd.params)
        label = f"{target.x},{target.y},{target.z}"

    if not ctx.session.has_pathfinder:
        ctx.send("ack", action="goto", target=label)
        await _walk_blind(ctx, target, GOTO_FALLBACK_S)
        return

    handle = ctx.goals.pursue(
        {"type": "near", "range": GOTO_RANGE, **target.to_dict()}, ctx.timeouts.goal_s
    )
    ctx.send("ack", action="goto", target=label)
    if await handle is GoalOutcome.REACHED:
        ctx.send("goto_done", **target.to_dict())


def follow(ctx: CommandContext, cmd: Command) -> None:
    """Continuous follow; runs until `stop` or a new goal replaces it."""
    name = require_str(cmd.params, "target")
    player = next((p for p in ctx.session.players() if p.username == name), None)
    if player is None or player.entity is None:
        raise CommandError(f"Player {name} not found or not visible")

    if ctx.session.has_pathfinder:
        distance = cmd.get("distance") or FOLLOW_DISTANCE
        ctx.session.set_goal(
            {"type": "follow", "username": name, "range": distance},
            dynamic=True,
        )
    else:
        _face_and_walk(ctx, player.entity.position)
        ctx.control_timer.schedule(FOLLOW_FALLBACK_S, ctx.session.clear_control_states)
    ctx.send("ack", action="follow", target=name)


def look(ctx: CommandContext, cmd: Command) -> None:
    yaw, pitch = cmd.get("yaw"), cmd.get("pitch")
    if not (is_number(yaw) and is_number(pitch)):
        raise CommandError(f"Invalid look angles: {yaw}, {pitch}")
    ctx.session.look(float(yaw), float(pitch))
    ctx.send("ack", action="look")


def jump(ctx: CommandContext, cmd: Command) -> None:
    ctx.session.set_control_state("jump", True)
    asyncio.get_running_loop().call_later(
        JUMP_HOLD_S, ignore_failure, ctx.session.set_control_state, "jump", False
    )
    ctx.send("ack", action="jump")


def sneak(ctx: CommandContext, cmd: Command) -> None:
    ctx.session.set_control_state("sneak", cmd.get("enabled") is not False)
    ctx.send("ack", action="sneak")


def stop(ctx: CommandContext, cmd: Command) -> None:
    """
    Halt everything in progress.

    Resolves outstanding goal waits (so a waiting move/goto finishes),
    stops pathing and digging, asks a running dig_area to stop at its next
    step boundary and drops queued commands. The in-flight exclusive action
    still completes through the queue.
    """
    cancelled = ctx.goals.registry.cancel_all()
    ignore_failure(ctx.session.stop_pathing, what="stop pathing")
    ignore_failure(ctx.session.stop_digging, what="stop digging")
    ignore_failure(ctx.session.clear_control_states, what="release controls")
    cleanup_movement(ctx)
    dropped = ctx.queue.discard_pending()
    log.info("stop: cancelled %d goal wait(s), dropped %d queued command(s)", cancelled, dropped)
    ctx.send("stopped")


def cleanup_movement(ctx: CommandContext) -> None:
    """Cancel fallback movement timers and signal any running bulk operation."""
    ctx.control_timer.cancel()
    ctx.cancel_flag.set()
