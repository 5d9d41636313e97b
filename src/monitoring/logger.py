# JSON logger subscribing to EventBus
"""
JSONL event log for the bridge.

JsonFileLogger appends one object per MonitoringEvent to a file. Records are
numbered (`seq`) and grouped by session: every SESSION_READY opens a new
session number, and events published without a correlation id are stamped
with the current one ("session-<n>"; "session-0" before the first spawn).
An optional set of EventTypes narrows what gets written.

log_event builds a MonitoringEvent with the current time and publishes it.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .bus import EventBus
from .events import EventType, MonitoringEvent

log = logging.getLogger(__name__)


# ============================================================
# JSONL File Logger
# ============================================================

class JsonFileLogger:
    """Write bus events to `path` as JSON lines until close()."""

    def __init__(
        self,
        path: Path,
        bus: EventBus,
        event_types: Optional[Iterable[EventType]] = None,
    ) -> None:
        self._path = path
        self._bus = bus
        self._event_types = frozenset(event_types) if event_types is not None else None
        self._seq = 0
        self._session = 0

        path.parent.mkdir(parents=True, exist_ok=True)
        self._file = path.open("a", encoding="utf-8")
        bus.subscribe(self._on_event)
        log.info("writing monitoring events to %s", path)

    @property
    def written(self) -> int:
        return self._seq

    def _on_event(self, event: MonitoringEvent) -> None:
        # Session numbering follows every event, filtered or not.
        if event.event_type is EventType.SESSION_READY:
            self._session += 1
        if self._event_types is not None and event.event_type not in self._event_types:
            return

        self._seq += 1
        data: Dict[str, Any] = {"seq": self._seq}
        data.update(event.to_dict())
        if data.get("correlation_id") is None:
            data["correlation_id"] = f"session-{self._session}"

        try:
            self._file.write(json.dumps(data, ensure_ascii=False, default=str) + "\n")
            self._file.flush()
        except OSError:
            log.warning("failed to write monitoring event to %s", self._path, exc_info=True)

    def close(self) -> None:
        """Unsubscribe and close the file. Safe to call twice."""
        self._bus.unsubscribe(self._on_event)
        if self._file.closed:
            return
        try:
            self._file.close()
        except OSError:
            log.debug("closing %s failed", self._path, exc_info=True)


def parse_event_types(names: Optional[Iterable[str]]) -> Optional[frozenset]:
    """Map EventType names from config to members; None means everything."""
    if names is None:
        return None
    selected = set()
    for name in names:
        try:
            selected.add(EventType[str(name).upper()])
        except KeyError:
            raise ValueError(f"Unknown monitoring event type: {name!r}") from None
    return frozenset(selected)


# ============================================================
# Convenience helper for emitting events
# ============================================================

def log_event(
    bus: EventBus,
    module: str,
    event_type: EventType,
    message: str,
    payload: Optional[Dict[str, Any]] = None,
    correlation_id: Optional[str] = None,
) -> None:
    """
    Create and publish a MonitoringEvent stamped with the current time.

    `module` names the publisher ("bot_core.action_queue", "bot_core.reconnect").
    `payload` must be JSON-safe.
    """
    event = MonitoringEvent(
        ts=time.time(),
        module=module,
        event_type=event_type,
        message=message,
        payload=payload or {},
        correlation_id=correlation_id,
    )
    bus.publish(event)
