# src/bot_core/goals.py
"""
Goal completion waits for bot_core.

The session signals "goal reached" as a bare notification. This module turns
that into a deadline-bounded, single-shot wait:

    handle = goals.wait(on_reached=..., timeout_s=30.0, on_timeout=...)
    outcome = await handle          # GoalOutcome.REACHED / TIMED_OUT / CANCELLED

Exactly one of three things resolves a handle, exactly once:
    1. the session fires `goal_reached`        -> on_reached()
    2. the deadline elapses                    -> goal cleared, on_timeout()
    3. GoalRegistry.cancel_all() / cancel()    -> no callback

All three paths run the same cleanup (unsubscribe, cancel timer, leave the
registry). Cleanup is guarded by `resolved`, so late notifications or
timers that fire after resolution have no effect.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Generator, List, Optional

from spec.monitoring import EventSink
from spec.session import GameSession

from .timeouts import ignore_failure

log = logging.getLogger(__name__)

Callback = Callable[[], None]


class GoalOutcome(Enum):
    REACHED = "reached"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class GoalRegistry:
    """
    Owner of every unresolved GoalWaitHandle.

    Outlives individual sessions so that disconnect cleanup and the `stop`
    command can force-resolve everything still outstanding.
    """

    def __init__(self) -> None:
        self._handles: List["GoalWaitHandle"] = []

    def __len__(self) -> int:
        return len(self._handles)

    def add(self, handle: "GoalWaitHandle") -> None:
        self._handles.append(handle)

    def discard(self, handle: "GoalWaitHandle") -> None:
        if handle in self._handles:
            self._handles.remove(handle)

    def cancel_all(self) -> int:
        """Force-resolve all outstanding handles; returns how many there were."""
        pending = list(self._handles)
        for handle in pending:
            handle.cancel()
        self._handles.clear()
        return len(pending)


class GoalWaitHandle:
    """One outstanding subscription to the session's goal_reached notification."""

    def __init__(
        self,
        *,
        session: GameSession,
        registry: GoalRegistry,
        sink: EventSink,
        timeout_s: float,
        on_reached: Optional[Callback] = None,
        on_timeout: Optional[Callback] = None,
    ) -> None:
        loop = asyncio.get_running_loop()

        self.resolved: bool = False
        self.outcome: Optional[GoalOutcome] = None

        self._session = session
        self._registry = registry
        self._sink = sink
        self._timeout_s = timeout_s
        self._on_reached = on_reached
        self._on_timeout = on_timeout

        self._future: asyncio.Future[GoalOutcome] = loop.create_future()
        # Whoever awaits us got cancelled: release our resources too.
        self._future.add_done_callback(self._on_future_done)

        self._subscription = session.subscribe("goal_reached", self._handle_goal_reached)
        self._timer = loop.call_later(timeout_s, self._handle_deadline)
        registry.add(self)

    # ------------------------------------------------------------------
    # Resolution paths
    # ------------------------------------------------------------------

    def _handle_goal_reached(self, *_: Any) -> None:
        if not self._cleanup():
            return
        self._resolve(GoalOutcome.REACHED)
        self._invoke(self._on_reached, "on_reached")

    def _handle_deadline(self) -> None:
        if not self._cleanup():
            return
        ignore_failure(self._session.set_goal, None, what="clear goal after timeout")
        timeout_ms = int(round(self._timeout_s * 1000))
        log.warning("goal wait timed out after %dms", timeout_ms)
        self._sink.send(
            {"event": "error", "message": f"Pathfinding timed out after {timeout_ms}ms"}
        )
        self._resolve(GoalOutcome.TIMED_OUT)
        self._invoke(self._on_timeout, "on_timeout")

    def cancel(self) -> None:
        """Resolve without invoking any callback. Idempotent."""
        if self._cleanup():
            self._resolve(GoalOutcome.CANCELLED)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _cleanup(self) -> bool:
        """Release subscription, timer and registry slot. True on first call only."""
        if self.resolved:
            return False
        self.resolved = True
        self._subscription.unsubscribe()
        self._timer.cancel()
        self._registry.discard(self)
        return True

    def _resolve(self, outcome: GoalOutcome) -> None:
        self.outcome = outcome
        if not self._future.done():
            self._future.set_result(outcome)

    def _on_future_done(self, future: "asyncio.Future[GoalOutcome]") -> None:
        if future.cancelled():
            self.cancel()

    @staticmethod
    def _invoke(callback: Optional[Callback], name: str) -> None:
        if callback is None:
            return
        try:
            callback()
        except Exception:
            log.exception("goal wait %s callback raised", name)

    def __await__(self) -> Generator[Any, None, GoalOutcome]:
        return self._future.__await__()


class GoalWaiter:
    """Factory for GoalWaitHandles bound to one session."""

    def __init__(
        self,
        session: GameSession,
        registry: GoalRegistry,
        sink: EventSink,
        *,
        default_timeout_s: float = 30.0,
    ) -> None:
        self._session = session
        self._registry = registry
        self._sink = sink
        self._default_timeout_s = default_timeout_s

    @property
    def registry(self) -> GoalRegistry:
        return self._registry

    def wait(
        self,
        on_reached: Optional[Callback] = None,
        timeout_s: Optional[float] = None,
        on_timeout: Optional[Callback] = None,
    ) -> GoalWaitHandle:
        """Register interest in the next goal_reached notification."""
        return GoalWaitHandle(
            session=self._session,
            registry=self._registry,
            sink=self._sink,
            timeout_s=self._default_timeout_s if timeout_s is None else timeout_s,
            on_reached=on_reached,
            on_timeout=on_timeout,
        )

    def pursue(
        self,
        goal: Dict[str, Any],
        timeout_s: Optional[float] = None,
    ) -> GoalWaitHandle:
        """
        Subscribe, then hand `goal` to the session.

        Subscribing first means a session that reports arrival immediately
        cannot slip the notification past us.
        """
        handle = self.wait(timeout_s=timeout_s)
        try:
            self._session.set_goal(goal)
        except Exception:
            handle.cancel()
            raise
        return handle


__all__ = ["GoalOutcome", "GoalRegistry", "GoalWaitHandle", "GoalWaiter"]
