# path: src/monitoring/events.py
"""
Event schemas for the bridge monitoring layer.

This module defines:
- MonitoringEvent (structured internal events)
- EventType enum

All events are JSON-serializable via `.to_dict()` and are intended
for use with monitoring.bus.EventBus and monitoring.logger.JsonFileLogger.

MonitoringEvents are internal observability. The controller-facing
protocol (queued / ack / error / *_done ...) goes through an EventSink.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum, auto
from typing import Any, Dict, Optional


# ============================================================
# Event Types
# ============================================================

class EventType(Enum):
    """Typed monitoring events emitted throughout the bridge."""

    # Inbound traffic
    COMMAND_RECEIVED = auto()

    # Action queue lifecycle
    ACTION_QUEUED = auto()
    ACTION_STARTED = auto()
    ACTION_COMPLETED = auto()

    # Session lifecycle
    SESSION_READY = auto()
    SESSION_LOST = auto()
    RECONNECT_SCHEDULED = auto()
    BRIDGE_TERMINATED = auto()


# ============================================================
# Monitoring Event Structure
# ============================================================

@dataclass
class MonitoringEvent:
    """
    Runtime event emitted by the action queue, reconnect controller or bridge.

    All fields must be JSON-safe.
    """

    ts: float                   # UNIX timestamp (seconds)
    module: str                 # Source module string ("bot_core.action_queue", ...)
    event_type: EventType       # Enum describing the event class
    message: str                # Short human-readable description
    payload: Dict[str, Any]     # Structured data (action, attempt, queue length)
    correlation_id: Optional[str] = None  # Used for grouping events per session

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict for loggers."""
        data = asdict(self)
        data["event_type"] = self.event_type.name  # store name, not enum
        return data
