# src/bot_core/commands/world.py
"""
World interaction commands (all exclusive):

    dig, dig_looking_at, place, activate_block, find_and_dig, dig_area

Every call into the session that can stall is bounded by with_timeout using
the per-action deadline from TimeoutConfig. dig_area is a BulkRun: a fixed
target list walked one block at a time, stopping at the next step boundary
once the shared CancelFlag is set.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from spec.types import Block, Command, Vec3

from ..bulk import BulkRun, BulkState
from ..dispatch import CommandContext
from ..errors import ActionFailed, CommandError
from ..goals import GoalOutcome
from ..params import is_number, optional_int, require_coords, require_str
from ..timeouts import with_timeout

log = logging.getLogger(__name__)

CURSOR_REACH = 5.0
FIND_RADIUS = 32
FIND_APPROACH_RANGE = 2
FIND_APPROACH_TIMEOUT_S = 15.0
FIND_REACH_NO_PATHFINDER = 5.0

FACE_VECTORS: Dict[str, Vec3] = {
    "top": Vec3(0, 1, 0),
    "bottom": Vec3(0, -1, 0),
    "north": Vec3(0, 0, -1),
    "south": Vec3(0, 0, 1),
    "east": Vec3(1, 0, 0),
    "west": Vec3(-1, 0, 0),
}


def _solid(block: Optional[Block]) -> bool:
    return block is not None and not block.is_air


def _coords(pos: Vec3) -> Dict[str, float]:
    return pos.to_dict()


# ---------------------------------------------------------------------------
# Single-block actions
# ---------------------------------------------------------------------------

async def dig(ctx: CommandContext, cmd: Command) -> None:
    target = require_coords(cmd.params)
    block = ctx.session.block_at(target)
    if not _solid(block):
        raise CommandError(f"No block at {target.x}, {target.y}, {target.z}")

    await with_timeout(ctx.session.dig(block), ctx.timeout_for("dig"), "dig")
    ctx.send("ack", action="dig", block=block.name, **_coords(target))
    ctx.send("dig_done", block=block.name, **_coords(target))


async def dig_looking_at(ctx: CommandContext, cmd: Command) -> None:
    block = ctx.session.block_at_cursor(CURSOR_REACH)
    if not _solid(block):
        raise CommandError("No block in line of sight")

    await with_timeout(
        ctx.session.dig(block), ctx.timeout_for("dig_looking_at"), "dig_looking_at"
    )
    ctx.send("ack", action="dig_looking_at", block=block.name, **_coords(block.position))


def _face_vector(face: Any) -> Vec3:
    if isinstance(face, str):
        return FACE_VECTORS.get(face, FACE_VECTORS["top"])
    if isinstance(face, dict) and "fx" in face:
        fx, fy, fz = face.get("fx"), face.get("fy"), face.get("fz")
        if not (is_number(fx) and is_number(fy) and is_number(fz)):
            raise CommandError(f"Invalid face vector: {fx}, {fy}, {fz}")
        return Vec3(fx, fy, fz)
    return FACE_VECTORS["top"]


async def place(ctx: CommandContext, cmd: Command) -> None:
    target = require_coords(cmd.params)
    face = cmd.get("face")
    face_vec = _face_vector(face)

    reference = ctx.session.block_at(target)
    if reference is None:
        raise CommandError(f"No reference block at {target.x}, {target.y}, {target.z}")

    await with_timeout(
        ctx.session.place_block(reference, face_vec), ctx.timeout_for("place"), "place"
    )
    ctx.send("ack", action="place", face=face or "top", **_coords(target))


async def activate_block(ctx: CommandContext, cmd: Command) -> None:
    target = require_coords(cmd.params)
    block = ctx.session.block_at(target)
    if block is None:
        raise CommandError(f"No block at {target.x}, {target.y}, {target.z}")

    await with_timeout(
        ctx.session.activate_block(block), ctx.timeout_for("activate_block"), "activate_block"
    )
    ctx.send("ack", action="activate_block", block=block.name, **_coords(target))


# ---------------------------------------------------------------------------
# find_and_dig
# ---------------------------------------------------------------------------

async def find_and_dig(ctx: CommandContext, cmd: Command) -> None:
    """
    Locate the nearest block of a type within FIND_RADIUS, walk to it and dig.

    Failures after the target is found also emit `find_and_dig_error`, so a
    controller waiting on find_and_dig_done sees a terminal event either way.
    """
    block_type = require_str(cmd.params, "block_type")
    try:
        found = ctx.session.find_blocks(block_type, FIND_RADIUS, 1)
    except KeyError:
        raise CommandError(f"Unknown block type: {block_type}") from None
    if not found:
        raise CommandError(f"No {block_type} found within {FIND_RADIUS} blocks")

    target = found[0]
    if ctx.session.block_at(target) is None:
        raise CommandError(f"Block at {target.x}, {target.y}, {target.z} disappeared")

    if ctx.session.has_pathfinder:
        handle = ctx.goals.pursue(
            {"type": "near", "range": FIND_APPROACH_RANGE, **_coords(target)},
            FIND_APPROACH_TIMEOUT_S,
        )
        if await handle is not GoalOutcome.REACHED:
            # Timed out (already reported) or cancelled by stop/disconnect.
            return
    else:
        pos = ctx.session.position
        distance = pos.distance_to(target) if pos is not None else float("inf")
        if distance > FIND_REACH_NO_PATHFINDER:
            _find_and_dig_failed(
                ctx,
                f"{block_type} found at {target.x}, {target.y}, {target.z} but too far "
                f"({round(distance)} blocks) and no pathfinder",
                f"{block_type} too far and no pathfinder",
            )

    block = ctx.session.block_at(target)
    if not _solid(block):
        ctx.send("ack", action="find_and_dig", block=block_type, message="block already gone")
        ctx.send("find_and_dig_done", block=block_type, **_coords(target))
        return

    try:
        await with_timeout(
            ctx.session.dig(block), ctx.timeout_for("find_and_dig"), "find_and_dig:dig"
        )
    except Exception as exc:
        log.warning("find_and_dig: dig failed at %s: %s", target, exc)
        _find_and_dig_failed(ctx, str(exc), str(exc))

    ctx.send("ack", action="find_and_dig", block=block_type, **_coords(target))
    ctx.send("find_and_dig_done", block=block_type, **_coords(target))


def _find_and_dig_failed(ctx: CommandContext, message: str, short: str) -> None:
    ctx.send("error", action="find_and_dig", message=message)
    ctx.send("find_and_dig_error", error=short)
    raise ActionFailed(message)


# ---------------------------------------------------------------------------
# dig_area
# ---------------------------------------------------------------------------

def area_targets(origin: Vec3, width: int, height: int, depth: int) -> List[Vec3]:
    """Top layer first, then x, then z."""
    return [
        Vec3(origin.x + dx, origin.y + dy, origin.z + dz)
        for dy in range(height - 1, -1, -1)
        for dx in range(width)
        for dz in range(depth)
    ]


async def dig_area(ctx: CommandContext, cmd: Command) -> None:
    cfg = ctx.dig_area
    origin = require_coords(cmd.params)
    width = min(optional_int(cmd.params, "width", cfg.default_width), cfg.max_width)
    height = min(optional_int(cmd.params, "height", cfg.default_height), cfg.max_height)
    depth = min(optional_int(cmd.params, "depth", cfg.default_depth), cfg.max_depth)

    targets = area_targets(origin, width, height, depth)
    ctx.cancel_flag.clear()
    ctx.send(
        "ack",
        action="dig_area",
        message=f"Starting to dig {width}x{height}x{depth} area ({len(targets)} blocks)",
    )

    def on_progress(done: int, total: int) -> None:
        ctx.send("ack", action="dig_area", message=f"Progress: {done}/{total} blocks")

    async def step(pos: Vec3) -> bool:
        if not _solid(ctx.session.block_at(pos)):
            return False

        here = ctx.session.position
        if (
            here is not None
            and here.distance_to(pos) > cfg.reach
            and ctx.session.has_pathfinder
        ):
            try:
                handle = ctx.goals.pursue(
                    {"type": "near", "range": cfg.approach_range, **_coords(pos)},
                    cfg.approach_timeout_s,
                )
                await handle
            except Exception as exc:
                log.info("dig_area: approach to %s failed: %s", pos, exc)

        current = ctx.session.block_at(pos)
        if _solid(current):
            try:
                await with_timeout(ctx.session.dig(current), cfg.dig_timeout_s, "dig_area:dig")
            except Exception as exc:
                log.info("dig_area: dig at %s failed: %s", pos, exc)
        return True

    result = await BulkRun(
        targets,
        ctx.cancel_flag,
        progress_every=cfg.progress_every,
        on_progress=on_progress,
    ).run(step)

    if result.state is BulkState.CANCELLED:
        ctx.send("dig_area_cancelled", processed=result.processed)
    else:
        ctx.send("dig_area_done", processed=result.processed)
