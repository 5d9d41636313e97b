# src/bot_core/commands/combat.py
"""Combat commands."""

from __future__ import annotations

from spec.types import Command

from ..dispatch import CommandContext
from ..errors import CommandError


async def attack(ctx: CommandContext, cmd: Command) -> None:
    entity = ctx.session.nearest_entity()
    if entity is None:
        raise CommandError("No entity nearby to attack")
    ctx.session.attack(entity)
    ctx.send("ack", action="attack", target=entity.name or "entity")
