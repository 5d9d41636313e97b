# EventBus for monitoring events
"""
Event bus for the bridge monitoring layer.

Provides a minimal, in-process pub/sub mechanism:

- Subscribers receive MonitoringEvent objects.
- Used by:
    - ActionQueue / ReconnectController / Bridge instrumentation
    - JsonFileLogger (JSONL event log)
    - TUI dashboard
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, List

from .events import MonitoringEvent

log = logging.getLogger(__name__)


# ============================================================
# Type aliases
# ============================================================

SubscriberFn = Callable[[MonitoringEvent], None]


# ============================================================
# Event Bus
# ============================================================

class EventBus:
    """
    Simple in-process event bus for monitoring events.

    Design goals:
    - Minimal: no external dependencies or IPC.
    - Thread-safe: subscribers list protected by a Lock, so the dashboard
      render thread can subscribe while the event loop publishes.
    - Non-blocking-ish: each publish iterates over a snapshot of subscribers.
    """

    def __init__(self) -> None:
        # Registered monitoring event subscribers
        self._subscribers: List[SubscriberFn] = []
        self._lock = Lock()

    # --------------------------------------------------------
    # Subscription API
    # --------------------------------------------------------

    def subscribe(self, fn: SubscriberFn) -> None:
        """
        Register a subscriber to receive MonitoringEvent instances.
        """
        with self._lock:
            self._subscribers.append(fn)

    def unsubscribe(self, fn: SubscriberFn) -> None:
        """
        Remove a previously registered MonitoringEvent subscriber.

        Safe to call even if `fn` is not present.
        """
        with self._lock:
            if fn in self._subscribers:
                self._subscribers.remove(fn)

    # --------------------------------------------------------
    # Publish API
    # --------------------------------------------------------

    def publish(self, event: MonitoringEvent) -> None:
        """
        Publish a MonitoringEvent to all subscribers.

        Takes a snapshot of subscribers under the lock, then iterates without
        holding the lock to avoid deadlocks if subscribers call back into the bus.
        A failing subscriber is logged and skipped; it never breaks the others.
        """
        with self._lock:
            subscribers = list(self._subscribers)

        for fn in subscribers:
            try:
                fn(event)
            except Exception:
                log.exception("monitoring subscriber %r failed", fn)

    # --------------------------------------------------------
    # Utility
    # --------------------------------------------------------

    def clear(self) -> None:
        """
        Clear all subscribers.

        Mostly useful for tests; probably not what you want in production.
        """
        with self._lock:
            self._subscribers.clear()
