# src/bot_core/commands/inventory.py
"""
Inventory and item commands (all exclusive):

    equip, craft, drop, drop_item, drop_all,
    use_item, deactivate_item, sleep, wake
"""

from __future__ import annotations

import logging
from typing import Optional

from spec.types import Command, Item

from ..dispatch import CommandContext
from ..errors import CommandError
from ..params import optional_int, require_str
from ..timeouts import with_timeout

log = logging.getLogger(__name__)

BED_SEARCH_RADIUS = 4


def _find_item(ctx: CommandContext, name: str) -> Optional[Item]:
    return next((i for i in ctx.session.inventory_items() if i.name == name), None)


async def equip(ctx: CommandContext, cmd: Command) -> None:
    item_name = require_str(cmd.params, "item_name")
    destination = cmd.get("destination") or "hand"
    item = _find_item(ctx, item_name)
    if item is None:
        raise CommandError(f"Item '{item_name}' not in inventory")

    await with_timeout(
        ctx.session.equip(item, destination), ctx.timeout_for("equip"), "equip"
    )
    ctx.send("ack", action="equip", item_name=item_name, destination=destination)


async def craft(ctx: CommandContext, cmd: Command) -> None:
    item_name = require_str(cmd.params, "item_name")
    count = optional_int(cmd.params, "count", 1)
    try:
        await with_timeout(
            ctx.session.craft(item_name, count), ctx.timeout_for("craft"), "craft"
        )
    except KeyError:
        raise CommandError(f"Unknown item: '{item_name}'") from None
    except LookupError:
        raise CommandError(
            f"No recipe for '{item_name}' (need crafting table nearby?)"
        ) from None
    ctx.send("ack", action="craft", item_name=item_name, count=count)


async def drop(ctx: CommandContext, cmd: Command) -> None:
    held = ctx.session.held_item
    if held is None:
        raise CommandError("Not holding any item")

    await with_timeout(ctx.session.toss_stack(held), ctx.timeout_for("drop"), "drop")
    ctx.send("ack", action="drop", item=held.name, count=held.count)


async def drop_item(ctx: CommandContext, cmd: Command) -> None:
    item_name = require_str(cmd.params, "item_name")
    item = _find_item(ctx, item_name)
    if item is None:
        raise CommandError(f"Item '{item_name}' not in inventory")

    requested = optional_int(cmd.params, "count")
    to_drop = min(requested, item.count) if requested else item.count
    await with_timeout(
        ctx.session.toss(item.type, to_drop), ctx.timeout_for("drop_item"), "drop_item"
    )
    ctx.send("ack", action="drop_item", item_name=item_name, count=to_drop)


async def drop_all(ctx: CommandContext, cmd: Command) -> None:
    """
    Toss every stack, one at a time.

    A stack that fails to drop is still counted and skipped, so the loop
    always terminates even when the session keeps refusing.
    """
    stacks = list(ctx.session.inventory_items())
    dropped = 0
    for stack in stacks:
        try:
            await with_timeout(
                ctx.session.toss_stack(stack), ctx.timeout_for("drop_all"), "drop_all"
            )
        except Exception as exc:
            log.info("drop_all: failed to drop %s: %s", stack.name, exc)
        dropped += 1
    ctx.send("ack", action="drop_all", count=dropped)


async def use_item(ctx: CommandContext, cmd: Command) -> None:
    ctx.session.activate_item()
    ctx.send("ack", action="use_item")


async def deactivate_item(ctx: CommandContext, cmd: Command) -> None:
    ctx.session.deactivate_item()
    ctx.send("ack", action="deactivate_item")


async def sleep(ctx: CommandContext, cmd: Command) -> None:
    bed = ctx.session.find_block(lambda b: "bed" in b.name, BED_SEARCH_RADIUS)
    if bed is None:
        raise CommandError(f"No bed found within {BED_SEARCH_RADIUS} blocks")

    await with_timeout(ctx.session.sleep(bed), ctx.timeout_for("sleep"), "sleep")
    ctx.send("ack", action="sleep")


async def wake(ctx: CommandContext, cmd: Command) -> None:
    ctx.session.wake()
    ctx.send("ack", action="wake")
