# rich-based TUI dashboard
#src/monitoring/dashboard_tui.py
"""
TUI dashboard for the bridge.

A lightweight terminal UI (using `rich`) that subscribes to the monitoring
EventBus and renders:

- Connection:
    - Phase (connecting / connected / backoff / terminated)
    - Reconnect attempt and last backoff

- Action lane:
    - In-flight exclusive action
    - Queue depth

- Recent actions:
    - Last few started / completed / queued actions

The dashboard draws on stderr; stdout belongs to the controller protocol.
This runs entirely offline. No web server, no external services.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Deque, Dict, Optional

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .bus import EventBus
from .events import EventType, MonitoringEvent

RECENT_ACTIONS = 10


# ============================================================
# TUI Dashboard
# ============================================================

class TuiDashboard:
    """
    Live terminal dashboard bound to a monitoring.EventBus.

    It consumes MonitoringEvents and keeps a small in-memory state
    representation, which is rendered periodically via rich.
    """

    def __init__(self, bus: EventBus, console: Optional[Console] = None) -> None:
        self._bus = bus
        self._console = console or Console(stderr=True)
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        # Internal state snapshot for display
        self._state: Dict[str, Any] = {
            "phase": "connecting",
            "attempt": 0,
            "backoff_ms": None,
            "last_reason": None,
            "current_action": None,
            "queue_length": 0,
            "commands_received": 0,
        }
        self._recent: Deque[str] = deque(maxlen=RECENT_ACTIONS)

        # Subscribe to events
        self._bus.subscribe(self._on_event)

    @property
    def state(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._state)

    # --------------------------------------------------------
    # Event handler
    # --------------------------------------------------------

    def _on_event(self, event: MonitoringEvent) -> None:
        """
        Update dashboard state based on a MonitoringEvent.
        This should be cheap and non-blocking.
        """
        et = event.event_type
        payload = event.payload

        with self._lock:
            if et == EventType.COMMAND_RECEIVED:
                self._state["commands_received"] += 1

            elif et == EventType.ACTION_STARTED:
                self._state["current_action"] = payload.get("action")
                self._recent.appendleft(f"start  {payload.get('action')}")

            elif et == EventType.ACTION_QUEUED:
                self._state["queue_length"] = payload.get("queue_length", 0)
                self._recent.appendleft(f"queue  {payload.get('action')}")

            elif et == EventType.ACTION_COMPLETED:
                self._state["current_action"] = None
                self._state["queue_length"] = payload.get("queue_length", 0)
                self._recent.appendleft(f"done   {payload.get('action')}")

            elif et == EventType.SESSION_READY:
                self._state["phase"] = "connected"
                self._state["attempt"] = 0
                self._state["backoff_ms"] = None

            elif et == EventType.SESSION_LOST:
                self._state["phase"] = "disconnected"
                self._state["last_reason"] = payload.get("reason")
                self._state["current_action"] = None
                self._state["queue_length"] = 0

            elif et == EventType.RECONNECT_SCHEDULED:
                self._state["phase"] = "backoff"
                self._state["attempt"] = payload.get("attempt", 0)
                self._state["backoff_ms"] = payload.get("backoff_ms")

            elif et == EventType.BRIDGE_TERMINATED:
                self._state["phase"] = "terminated"
                self._state["last_reason"] = event.message

    # --------------------------------------------------------
    # Rendering helpers
    # --------------------------------------------------------

    def _render_connection_panel(self, state: Dict[str, Any]) -> Panel:
        """
        Top: connection phase + reconnect attempt.
        """
        txt = Text()
        txt.append("Phase: ", style="bold")
        txt.append(f"{state['phase']}\n")
        txt.append("Attempt: ", style="bold")
        backoff = state["backoff_ms"]
        txt.append(f"{state['attempt']}" + (f" (backoff {backoff}ms)" if backoff else "") + "\n")
        txt.append("Last reason: ", style="bold")
        txt.append(f"{state['last_reason'] or '<none>'}\n")
        return Panel(txt, title="Session", border_style="cyan")

    def _render_queue_panel(self, state: Dict[str, Any]) -> Panel:
        table = Table.grid(pad_edge=False)
        table.add_column(justify="left")
        table.add_row(f"[bold]In flight:[/bold] {state['current_action'] or '<idle>'}")
        table.add_row(f"[bold]Queued:[/bold] {state['queue_length']}")
        table.add_row(f"[bold]Commands received:[/bold] {state['commands_received']}")
        return Panel(table, title="Action Queue", border_style="green")

    def _render_recent_panel(self) -> Panel:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Recent actions", style="bold")
        with self._lock:
            recent = list(self._recent)
        if recent:
            for line in recent:
                table.add_row(line)
        else:
            table.add_row("<none>")
        return Panel(table, title="History", border_style="magenta")

    def render(self) -> Layout:
        """
        Construct the overall layout for the dashboard.
        """
        state = self.state
        layout = Layout()

        # Overall layout: top bar + middle row
        layout.split(
            Layout(name="top", size=5),
            Layout(name="middle", ratio=1),
        )
        layout["top"].update(self._render_connection_panel(state))

        # Middle row: queue | history
        layout["middle"].split_row(
            Layout(name="queue"),
            Layout(name="recent"),
        )
        layout["queue"].update(self._render_queue_panel(state))
        layout["recent"].update(self._render_recent_panel())

        return layout

    # --------------------------------------------------------
    # Main loop
    # --------------------------------------------------------

    def run(self, refresh_per_second: float = 4.0) -> None:
        """
        Run the TUI render loop until stop() is called.

        This blocks the current thread; see start() for the threaded variant.
        """
        refresh_delay = 1.0 / max(refresh_per_second, 0.1)
        with Live(self.render(), console=self._console, refresh_per_second=refresh_per_second) as live:
            while not self._stop.is_set():
                live.update(self.render())
                self._stop.wait(refresh_delay)

    def start(self) -> None:
        """Render from a daemon thread so the event loop stays free."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, name="tui-dashboard", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._bus.unsubscribe(self._on_event)
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
