# src/bot_core/action_queue.py
"""
Single-flight command queue for bot_core.

Immediate commands (queries, chat, short toggles) execute on arrival,
whatever the queue is doing. Exclusive commands (movement, digging,
crafting, ...) run one at a time in strict arrival order.

Invariants:
- At most one exclusive command is executing; `busy` is True iff one is.
- Every exclusive execution completes exactly once. The runner calls
  complete() from a `finally`, so success, handler errors, timeouts,
  unknown kinds and cancellation all advance the queue.
- Immediate commands never touch `busy` or `pending`.
- reset() is for session loss only. It drops pending commands silently
  (their originators only ever saw the `queued` ack) and bumps an epoch
  so a late completion from the abandoned action is ignored.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event
from spec.monitoring import EventSink
from spec.types import Classification, Command

log = logging.getLogger(__name__)

ClassifyFn = Callable[[str], Classification]
ImmediateFn = Callable[[Command], None]
ExclusiveFn = Callable[[Command], Awaitable[None]]

MODULE = "bot_core.action_queue"


class ActionQueue:
    """
    Serializes exclusive commands; lets immediate commands bypass the queue.

    Public contract:
        dispatch(command)   classify, then run now or enqueue
        complete()          the in-flight exclusive command has finished
        reset()             drop everything (session loss only)
    """

    def __init__(
        self,
        classify: ClassifyFn,
        execute_immediate: ImmediateFn,
        execute_exclusive: ExclusiveFn,
        sink: EventSink,
        *,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._classify = classify
        self._execute_immediate = execute_immediate
        self._execute_exclusive = execute_exclusive
        self._sink = sink
        self._bus = bus

        self._busy: bool = False
        self._pending: Deque[Command] = deque()
        self._epoch: int = 0
        self._current: Optional[Command] = None
        self._task: Optional[asyncio.Task[None]] = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def queue_length(self) -> int:
        return len(self._pending)

    @property
    def current(self) -> Optional[Command]:
        """The exclusive command currently executing, if any."""
        return self._current

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def dispatch(self, command: Command) -> None:
        """Run `command` now, or queue it behind the in-flight exclusive action."""
        if self._classify(command.kind) is Classification.IMMEDIATE:
            self._execute_immediate(command)
            return

        if self._busy:
            self._pending.append(command)
            depth = len(self._pending)
            log.debug("queued %s (queue_length=%d)", command.kind, depth)
            self._sink.send({"event": "queued", "action": command.kind, "queue_length": depth})
            self._publish(
                EventType.ACTION_QUEUED,
                f"Queued {command.kind}",
                {"action": command.kind, "queue_length": depth},
            )
            return

        self._start(command)

    def complete(self, epoch: Optional[int] = None) -> None:
        """
        Mark the in-flight exclusive command finished and start the next one.

        `epoch` identifies which execution is completing; completions from
        before the last reset() are ignored.
        """
        if epoch is not None and epoch != self._epoch:
            log.debug("ignoring completion from stale epoch %d (now %d)", epoch, self._epoch)
            return

        finished = self._current
        self._busy = False
        self._current = None
        self._task = None

        if finished is not None:
            self._publish(
                EventType.ACTION_COMPLETED,
                f"Completed {finished.kind}",
                {"action": finished.kind, "queue_length": len(self._pending)},
            )

        if self._pending:
            self._start(self._pending.popleft())

    def reset(self) -> int:
        """
        Clear `pending` and `busy` unconditionally.

        Used only on session loss. Returns how many queued commands were
        dropped. The in-flight action (if any) is cancelled because the
        session it was talking to is gone.
        """
        dropped = len(self._pending)
        self._pending.clear()
        self._busy = False
        self._current = None
        self._epoch += 1

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

        if dropped:
            log.info("action queue reset; dropped %d pending command(s)", dropped)
        return dropped

    def discard_pending(self) -> int:
        """Drop queued (not yet started) commands; the in-flight one keeps running."""
        dropped = len(self._pending)
        self._pending.clear()
        return dropped

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _start(self, command: Command) -> None:
        self._busy = True
        self._current = command
        epoch = self._epoch
        self._publish(
            EventType.ACTION_STARTED,
            f"Started {command.kind}",
            {"action": command.kind, "params": dict(command.params)},
        )
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(command, epoch), name=f"action:{command.kind}")

    async def _run(self, command: Command, epoch: int) -> None:
        try:
            await self._execute_exclusive(command)
        except asyncio.CancelledError:
            log.info("exclusive action %s cancelled", command.kind)
            raise
        except Exception as exc:
            # Handlers report their own errors; this only catches escapes.
            log.exception("exclusive action %s raised", command.kind)
            self._sink.send({"event": "error", "action": command.kind, "message": str(exc)})
        finally:
            self.complete(epoch)

    def _publish(self, event_type: EventType, message: str, payload: dict) -> None:
        if self._bus is None:
            return
        log_event(
            bus=self._bus,
            module=MODULE,
            event_type=event_type,
            message=message,
            payload=payload,
        )


__all__ = ["ActionQueue"]
