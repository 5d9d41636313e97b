# src/bot_core/reconnect.py
"""
Reconnection controller for bot_core.

State machine:

    CONNECTED -> DISCONNECTED -> BACKOFF(n) -> CONNECTING -> CONNECTED
                                                          `-> TERMINATED

Public contract:
    handle_termination(reason)   session ended for any cause
    handle_kick(reason)          server kicked us; fatal reasons terminate
    on_ready()                   session reached its ready state

Rules:
- Disconnect cleanup runs exactly once per termination, before anything
  else is decided.
- While `reconnecting` is True, further termination signals are no-ops.
- A failed re-establishment counts as another retryable termination: it
  advances `attempt` and goes around the backoff loop again.
- `attempt` and `reconnecting` go back to (0, False) only in on_ready().
"""

from __future__ import annotations

import asyncio
import logging
import re
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

from env.schema import ReconnectConfig
from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event
from spec.monitoring import EventSink

from .timeouts import with_timeout

log = logging.getLogger(__name__)

MODULE = "bot_core.reconnect"

EXIT_FATAL = 1

ConnectFn = Callable[[], Awaitable[None]]
SleepFn = Callable[[float], Awaitable[None]]


class ConnectionPhase(Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    BACKOFF = "backoff"
    TERMINATED = "terminated"


def compute_backoff(attempt: int, base_s: float, cap_s: float) -> float:
    """min(base * 2^(attempt-1), cap). attempt counts from 1."""
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return min(base_s * (2 ** (attempt - 1)), cap_s)


def is_fatal_reason(reason: str, patterns: Iterable[str]) -> bool:
    """True if `reason` matches any pattern (case-insensitive regex search)."""
    return any(re.search(p, reason or "", re.IGNORECASE) for p in patterns)


class ReconnectController:
    """
    Owns `attempt` / `reconnecting` and drives the retry loop.

    The controller does not know how a session is built: `connect` creates
    and readies a fresh session (raising on failure), `cleanup` runs the
    bridge's disconnect cleanup and `terminate(code)` ends the process.
    """

    def __init__(
        self,
        config: ReconnectConfig,
        *,
        connect: ConnectFn,
        cleanup: Callable[[], None],
        terminate: Callable[[int], None],
        sink: EventSink,
        bus: Optional[EventBus] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.attempt: int = 0
        self.reconnecting: bool = False
        self.phase: ConnectionPhase = ConnectionPhase.CONNECTING

        self._config = config
        self._connect = connect
        self._cleanup = cleanup
        self._terminate = terminate
        self._sink = sink
        self._bus = bus
        self._sleep = sleep

    @property
    def terminated(self) -> bool:
        return self.phase is ConnectionPhase.TERMINATED

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """First connection. A failure here enters the normal retry loop."""
        self.phase = ConnectionPhase.CONNECTING
        try:
            await with_timeout(self._connect(), self._config.connect_timeout_s, "connect")
        except Exception as exc:
            log.warning("initial connect failed: %s", exc)
            await self.handle_termination(str(exc) or exc.__class__.__name__)
            return
        self.on_ready()

    def on_ready(self) -> None:
        if self.attempt:
            log.info("session ready after %d reconnect attempt(s)", self.attempt)
        self.attempt = 0
        self.reconnecting = False
        self.phase = ConnectionPhase.CONNECTED
        self._publish(EventType.SESSION_READY, "Session ready", {})

    def handle_kick(self, reason: str) -> None:
        """Fatal kick reasons end the process; anything else waits for `end`."""
        if self.terminated:
            return
        if is_fatal_reason(reason, self._config.fatal_kick_patterns):
            log.error("fatal kick, not reconnecting: %s", reason)
            self._run_cleanup()
            self._finish(EXIT_FATAL, f"fatal kick: {reason}")
        else:
            log.warning("kicked: %s", reason)

    async def handle_termination(self, reason: str) -> None:
        if self.terminated:
            return
        if self.reconnecting:
            log.debug("termination (%s) ignored; reconnect already in progress", reason)
            return

        log.warning("session ended: %s", reason)
        self.reconnecting = True
        self.phase = ConnectionPhase.DISCONNECTED
        self._publish(EventType.SESSION_LOST, f"Session lost: {reason}", {"reason": reason})
        self._run_cleanup()

        if is_fatal_reason(reason, self._config.fatal_kick_patterns):
            self._finish(EXIT_FATAL, f"fatal disconnect: {reason}")
            return

        await self._retry_loop()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _retry_loop(self) -> None:
        cfg = self._config
        while not self.terminated:
            self.attempt += 1
            if self.attempt > cfg.max_attempts:
                log.error("max reconnect attempts (%d) reached, exiting", cfg.max_attempts)
                self._sink.send(
                    {
                        "event": "error",
                        "message": f"Failed to reconnect after {cfg.max_attempts} attempts",
                    }
                )
                self._finish(EXIT_FATAL, "reconnect attempts exhausted")
                return

            backoff_s = compute_backoff(self.attempt, cfg.base_backoff_s, cfg.max_backoff_s)
            backoff_ms = int(round(backoff_s * 1000))
            log.info(
                "reconnecting in %dms (attempt %d/%d)", backoff_ms, self.attempt, cfg.max_attempts
            )
            self.phase = ConnectionPhase.BACKOFF
            self._sink.send(
                {"event": "reconnecting", "attempt": self.attempt, "backoff_ms": backoff_ms}
            )
            self._publish(
                EventType.RECONNECT_SCHEDULED,
                f"Reconnecting in {backoff_ms}ms",
                {"attempt": self.attempt, "backoff_ms": backoff_ms},
            )

            await self._sleep(backoff_s)
            if self.terminated:
                return

            self.phase = ConnectionPhase.CONNECTING
            try:
                await with_timeout(self._connect(), cfg.connect_timeout_s, "connect")
            except Exception as exc:
                log.warning("reconnect attempt %d failed: %s", self.attempt, exc)
                self._run_cleanup()
                continue

            self.on_ready()
            return

    def _run_cleanup(self) -> None:
        try:
            self._cleanup()
        except Exception:
            log.exception("disconnect cleanup failed")

    def _finish(self, code: int, why: str) -> None:
        self.phase = ConnectionPhase.TERMINATED
        self._publish(EventType.BRIDGE_TERMINATED, why, {"exit_code": code})
        self._terminate(code)

    def _publish(self, event_type: EventType, message: str, payload: dict) -> None:
        if self._bus is None:
            return
        log_event(
            bus=self._bus,
            module=MODULE,
            event_type=event_type,
            message=message,
            payload={**payload, "attempt": self.attempt, "phase": self.phase.value},
        )


__all__ = [
    "ConnectionPhase",
    "ReconnectController",
    "compute_backoff",
    "is_fatal_reason",
]
