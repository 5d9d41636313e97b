# src/bot_core/commands/__init__.py
"""
Command handlers, grouped by concern, and the table that wires them up.

    chat       chat, whisper
    movement   move, goto, follow, look, jump, sneak, stop
    combat     attack
    world      dig, dig_looking_at, place, activate_block, find_and_dig, dig_area
    inventory  equip, craft, drop, drop_item, drop_all, use_item,
               deactivate_item, sleep, wake
    info       position, inventory, players, status, survey, quit
"""

from __future__ import annotations

from typing import Optional

from ..dispatch import CommandTable
from ..tracing import ActionTracer
from . import chat, combat, info, inventory, movement, world


def build_command_table(tracer: Optional[ActionTracer] = None) -> CommandTable:
    table = CommandTable(tracer=tracer)

    # Immediate: queries and short toggles, never queued.
    table.immediate("chat", chat.chat)
    table.immediate("whisper", chat.whisper)
    table.immediate("look", movement.look)
    table.immediate("jump", movement.jump)
    table.immediate("sneak", movement.sneak)
    table.immediate("follow", movement.follow)
    table.immediate("stop", movement.stop)
    table.immediate("position", info.position)
    table.immediate("inventory", info.inventory)
    table.immediate("players", info.players)
    table.immediate("status", info.status)
    table.immediate("survey", info.survey)
    table.immediate("quit", info.quit_)

    # Exclusive: one at a time, FIFO.
    table.exclusive("move", movement.move)
    table.exclusive("goto", movement.goto)
    table.exclusive("attack", combat.attack)
    table.exclusive("dig", world.dig)
    table.exclusive("dig_looking_at", world.dig_looking_at)
    table.exclusive("place", world.place)
    table.exclusive("activate_block", world.activate_block)
    table.exclusive("find_and_dig", world.find_and_dig)
    table.exclusive("dig_area", world.dig_area)
    table.exclusive("equip", inventory.equip)
    table.exclusive("craft", inventory.craft)
    table.exclusive("drop", inventory.drop)
    table.exclusive("drop_item", inventory.drop_item)
    table.exclusive("drop_all", inventory.drop_all)
    table.exclusive("use_item", inventory.use_item)
    table.exclusive("deactivate_item", inventory.deactivate_item)
    table.exclusive("sleep", inventory.sleep)
    table.exclusive("wake", inventory.wake)

    return table


__all__ = ["build_command_table"]
