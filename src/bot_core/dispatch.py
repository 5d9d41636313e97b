# src/bot_core/dispatch.py
"""
Command dispatch table for bot_core.

Maps each supported command kind to:
    - its Classification (IMMEDIATE / EXCLUSIVE), fixed at registration
    - its handler

Immediate handlers are plain functions, exclusive handlers are coroutines;
both take (CommandContext, Command).

Handlers signal failure by raising:
    - CommandError       invalid input            -> error{action, message}
    - OperationTimeout   deadline elapsed         -> error{action, message}
    - any other error    session rejected action  -> error{action, message}

The table is the single place those become controller events, so a bad
command or a failing session call can never escape into the queue runner.
Unknown kinds are classified EXCLUSIVE: they pass through the queue and
still complete, so a typo cannot wedge it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from env.schema import DigAreaConfig, TimeoutConfig
from spec.monitoring import EventSink
from spec.session import GameSession
from spec.types import Classification, Command

from .action_queue import ActionQueue
from .bulk import CancelFlag
from .errors import ActionFailed, CommandError, OperationTimeout
from .goals import GoalWaiter
from .tracing import ActionTracer

log = logging.getLogger(__name__)

ImmediateHandler = Callable[["CommandContext", Command], None]
ExclusiveHandler = Callable[["CommandContext", Command], Awaitable[None]]
Handler = Union[ImmediateHandler, ExclusiveHandler]


class ControlTimer:
    """
    One pending "release the controls later" timer.

    Used by fallback (no pathfinder) movement: walk forward, then clear
    control states after a short delay. Scheduling replaces any pending timer.
    """

    def __init__(self) -> None:
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay_s: float, fn: Callable[[], None]) -> None:
        self.cancel()

        def _fire() -> None:
            self._handle = None
            fn()

        self._handle = asyncio.get_running_loop().call_later(delay_s, _fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


@dataclass
class CommandContext:
    """Everything a handler may touch while serving one command."""

    session: GameSession
    sink: EventSink
    goals: GoalWaiter
    queue: ActionQueue
    cancel_flag: CancelFlag
    control_timer: ControlTimer
    timeouts: TimeoutConfig
    dig_area: DigAreaConfig
    request_quit: Callable[[], None]

    def send(self, event: str, **fields: Any) -> None:
        self.sink.send({"event": event, **fields})

    def timeout_for(self, kind: str) -> float:
        return self.timeouts.for_action(kind)


@dataclass(frozen=True)
class ActionSpec:
    kind: str
    classification: Classification
    handler: Handler


class CommandTable:
    """Fixed kind -> (classification, handler) registry."""

    def __init__(self, *, tracer: Optional[ActionTracer] = None) -> None:
        self._specs: Dict[str, ActionSpec] = {}
        self._tracer = tracer

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, kind: str, classification: Classification, handler: Handler) -> None:
        if kind in self._specs:
            raise ValueError(f"Command kind already registered: {kind!r}")
        self._specs[kind] = ActionSpec(kind, classification, handler)

    def immediate(self, kind: str, handler: ImmediateHandler) -> None:
        self.register(kind, Classification.IMMEDIATE, handler)

    def exclusive(self, kind: str, handler: ExclusiveHandler) -> None:
        self.register(kind, Classification.EXCLUSIVE, handler)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def kinds(self) -> List[str]:
        return sorted(self._specs)

    def classify(self, kind: str) -> Classification:
        spec = self._specs.get(kind)
        if spec is None:
            return Classification.EXCLUSIVE
        return spec.classification

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute_immediate(self, ctx: CommandContext, command: Command) -> None:
        spec = self._specs.get(command.kind)
        if spec is None:
            self._unknown(ctx, command)
            return
        try:
            spec.handler(ctx, command)
        except Exception as exc:
            self._report(ctx, command, exc)

    async def execute_exclusive(self, ctx: CommandContext, command: Command) -> None:
        spec = self._specs.get(command.kind)
        if spec is None:
            self._unknown(ctx, command)
            return

        start = perf_counter()
        error: Optional[str] = None
        try:
            await spec.handler(ctx, command)
        except Exception as exc:
            error = self._report(ctx, command, exc)
        finally:
            if self._tracer is not None:
                self._tracer.record(
                    command=command,
                    success=error is None,
                    error=error,
                    duration_s=perf_counter() - start,
                    position=_safe_position(ctx.session),
                )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _unknown(ctx: CommandContext, command: Command) -> None:
        log.warning("unknown action %r", command.kind)
        ctx.send("error", message=f"Unknown action: {command.kind}")

    @staticmethod
    def _report(ctx: CommandContext, command: Command, exc: Exception) -> str:
        message = str(exc) or exc.__class__.__name__
        if isinstance(exc, ActionFailed):
            return message
        if isinstance(exc, CommandError):
            log.info("%s rejected: %s", command.kind, message)
        elif isinstance(exc, OperationTimeout):
            log.warning("%s", message)
        else:
            log.warning("%s failed: %s", command.kind, message, exc_info=True)
        ctx.send("error", action=command.kind, message=message)
        return message


def _safe_position(session: GameSession) -> Any:
    try:
        return session.position
    except Exception:
        log.debug("position unavailable for trace", exc_info=True)
        return None


__all__ = [
    "ActionSpec",
    "CommandContext",
    "CommandTable",
    "ControlTimer",
    "ExclusiveHandler",
    "ImmediateHandler",
]
