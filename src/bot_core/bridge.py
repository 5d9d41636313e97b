# src/bot_core/bridge.py
"""
Bridge process wiring for bot_core.

One Bridge owns, for the lifetime of the process:

    - the ActionQueue, GoalRegistry, CancelFlag and ControlTimer
    - the ReconnectController and the current GameSession
    - the CommandTable (and its ActionTracer)

and runs two loops on the same event loop: the controller's command stream
(stdin) and whatever the session pushes. Sessions come and go on
reconnect; everything above survives them.

Public contract:
    await bridge.run(reader)   returns the process exit code
    bridge.handle_line(line)   feed one controller line (tests, embedding)
    bridge.quit(code)          graceful stop
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, List, Optional, Set

from env.schema import BridgeProfile
from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event
from spec.monitoring import EventSink
from spec.session import GameSession, SessionFactory, Subscription
from spec.types import Command

from .action_queue import ActionQueue
from .bulk import CancelFlag
from .commands import build_command_table
from .commands.movement import cleanup_movement
from .dispatch import CommandContext, ControlTimer
from .errors import CommandError
from .events import bind_session_events
from .goals import GoalRegistry, GoalWaiter
from .net.protocol import decode_command
from .reconnect import ConnectionPhase, ReconnectController, SleepFn
from .timeouts import ignore_failure
from .tracing import ActionTracer

log = logging.getLogger(__name__)

MODULE = "bot_core.bridge"

EXIT_OK = 0


class Bridge:
    """Long-lived coordinator between the controller and the game session."""

    def __init__(
        self,
        profile: BridgeProfile,
        session_factory: SessionFactory,
        sink: EventSink,
        *,
        bus: Optional[EventBus] = None,
        tracer: Optional[ActionTracer] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.profile = profile
        self.sink = sink
        self.bus = bus or EventBus()
        self.tracer = tracer or ActionTracer()

        self.table = build_command_table(self.tracer)
        self.registry = GoalRegistry()
        self.cancel_flag = CancelFlag()
        self.control_timer = ControlTimer()
        self.queue = ActionQueue(
            self.table.classify,
            self._run_immediate,
            self._run_exclusive,
            sink,
            bus=self.bus,
        )
        self.reconnect = ReconnectController(
            profile.reconnect,
            connect=self._connect_session,
            cleanup=self.cleanup_on_disconnect,
            terminate=self._finish,
            sink=sink,
            bus=self.bus,
            sleep=sleep,
        )

        self.session: Optional[GameSession] = None
        self._ctx: Optional[CommandContext] = None
        self._factory = session_factory
        self._subscriptions: List[Subscription] = []
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._done: Optional["asyncio.Future[int]"] = None
        self._closing = False

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self._ctx is not None and self.reconnect.phase is ConnectionPhase.CONNECTED

    @property
    def context(self) -> Optional[CommandContext]:
        return self._ctx

    # ------------------------------------------------------------------
    # Process lifecycle
    # ------------------------------------------------------------------

    async def run(self, reader: asyncio.StreamReader) -> int:
        """Connect, serve commands until quit/EOF/fatal loss, return the exit code."""
        self._done = asyncio.get_running_loop().create_future()
        cfg = self.profile.session
        log.info("connecting as %s to %s:%d", cfg.username, cfg.host, cfg.port)

        self.spawn(self.reconnect.start(), name="bridge:connect")
        self.spawn(self._read_commands(reader), name="bridge:stdin")

        code = await self._done
        await self.shutdown()
        return code

    def quit(self, code: int = EXIT_OK) -> None:
        """Leave the world and end run() with `code`."""
        if self._closing:
            return
        self._closing = True
        if self.session is not None:
            ignore_failure(self.session.quit, "bridge shutting down", what="session quit")
        self._finish(code)

    async def shutdown(self) -> None:
        """Cancel background work and release everything the bridge holds."""
        self._closing = True
        self.registry.cancel_all()
        self.queue.reset()
        self.control_timer.cancel()
        self._release_session()

        current = asyncio.current_task()
        tasks = [t for t in self._tasks if t is not current and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def spawn(self, coro: Awaitable[Any], *, name: str) -> "asyncio.Task[Any]":
        """Run `coro` in the background; failures are logged."""
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("background task %s failed", task.get_name(), exc_info=exc)

    def _finish(self, code: int) -> None:
        log.info("bridge finishing with exit code %d", code)
        if self._done is not None and not self._done.done():
            self._done.set_result(code)

    # ------------------------------------------------------------------
    # Controller input
    # ------------------------------------------------------------------

    async def _read_commands(self, reader: asyncio.StreamReader) -> None:
        while True:
            try:
                raw = await reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as exc:
                raw = exc.partial
            except asyncio.LimitOverrunError as exc:
                await _skip_line(reader, exc.consumed)
                log.warning("dropped controller line longer than the reader limit")
                self.sink.send({"event": "error", "message": "Command line too long"})
                continue
            if not raw:
                log.info("stdin closed, shutting down")
                self.quit(EXIT_OK)
                return
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                self.handle_line(line)

    def handle_line(self, line: str) -> None:
        try:
            command = decode_command(line)
        except CommandError as exc:
            log.info("rejected controller line: %s", exc)
            self.sink.send({"event": "error", "message": str(exc)})
            return

        log_event(
            bus=self.bus,
            module=MODULE,
            event_type=EventType.COMMAND_RECEIVED,
            message=f"Received {command.kind}",
            payload={"action": command.kind},
        )

        if not self.ready:
            self.sink.send({"event": "error", "message": "Bot not connected yet"})
            return
        self.queue.dispatch(command)

    def _run_immediate(self, command: Command) -> None:
        assert self._ctx is not None
        self.table.execute_immediate(self._ctx, command)

    async def _run_exclusive(self, command: Command) -> None:
        assert self._ctx is not None
        await self.table.execute_exclusive(self._ctx, command)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def _connect_session(self) -> None:
        """Build a fresh session, bind its notifications, wait until spawned."""
        self._release_session()

        session = self._factory()
        self.session = session
        self._subscriptions = bind_session_events(
            session,
            self.sink,
            on_kicked=self.reconnect.handle_kick,
            on_end=self._on_session_end,
        )
        self._ctx = CommandContext(
            session=session,
            sink=self.sink,
            goals=GoalWaiter(
                session,
                self.registry,
                self.sink,
                default_timeout_s=self.profile.timeouts.goal_s,
            ),
            queue=self.queue,
            cancel_flag=self.cancel_flag,
            control_timer=self.control_timer,
            timeouts=self.profile.timeouts,
            dig_area=self.profile.dig_area,
            request_quit=self.quit,
        )
        await session.connect()

    def _on_session_end(self, reason: str) -> None:
        if self._closing:
            return
        self.spawn(self.reconnect.handle_termination(reason), name="bridge:reconnect")

    def cleanup_on_disconnect(self) -> None:
        """Force-resolve goal waits, drop the queue, stop movement and bulk work."""
        cancelled = self.registry.cancel_all()
        dropped = self.queue.reset()
        if self._ctx is not None:
            cleanup_movement(self._ctx)
        log.info(
            "disconnect cleanup: %d goal wait(s) cancelled, %d queued command(s) dropped",
            cancelled, dropped,
        )

    def _release_session(self) -> None:
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []


async def _skip_line(reader: asyncio.StreamReader, consumed: int) -> None:
    """Throw away the rest of an oversized line, up to and including its newline."""
    while True:
        await reader.readexactly(consumed)
        try:
            await reader.readuntil(b"\n")
            return
        except asyncio.IncompleteReadError:
            return
        except asyncio.LimitOverrunError as exc:
            consumed = exc.consumed


__all__ = ["Bridge", "EXIT_OK"]
