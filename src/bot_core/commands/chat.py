# src/bot_core/commands/chat.py
"""Chat and whisper commands (immediate)."""

from __future__ import annotations

from spec.types import Command

from ..dispatch import CommandContext
from ..params import require_str


def chat(ctx: CommandContext, cmd: Command) -> None:
    ctx.session.chat(str(cmd.get("message") or ""))
    ctx.send("ack", action="chat")


def whisper(ctx: CommandContext, cmd: Command) -> None:
    target = require_str(cmd.params, "target")
    ctx.session.whisper(target, str(cmd.get("message") or ""))
    ctx.send("ack", action="whisper")
