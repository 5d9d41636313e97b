# BridgeProfile, SessionConfig, ReconnectConfig dataclasses
# src/env/schema.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class SessionConfig:
    """Where and as whom the game session connects."""
    host: str = "localhost"
    port: int = 25565
    username: str = "McFunBot"
    auth: str = "offline"
    # Address of the game-side IPC agent that drives the session.
    ipc_host: str = "127.0.0.1"
    ipc_port: int = 25600


@dataclass
class ReconnectConfig:
    """Retry limits and backoff curve for session loss."""
    max_attempts: int = 10
    base_backoff_s: float = 1.0
    max_backoff_s: float = 30.0
    connect_timeout_s: float = 60.0
    # Kick reasons matching any of these (case-insensitive regex) are fatal.
    fatal_kick_patterns: List[str] = field(
        default_factory=lambda: ["not whitelisted", "banned"]
    )


@dataclass
class TimeoutConfig:
    """Per-action deadlines (seconds): uniform default with overrides."""
    default_s: float = 30.0
    goal_s: float = 30.0
    per_action: Dict[str, float] = field(default_factory=dict)

    def for_action(self, kind: str) -> float:
        return float(self.per_action.get(kind, self.default_s))


@dataclass
class DigAreaConfig:
    """Bounds and pacing for the area-clearing bulk operation."""
    default_width: int = 5
    default_height: int = 3
    default_depth: int = 5
    max_width: int = 20
    max_height: int = 10
    max_depth: int = 20
    reach: float = 4.5
    approach_range: int = 3
    approach_timeout_s: float = 10.0
    dig_timeout_s: float = 30.0
    progress_every: int = 10


@dataclass
class MonitoringConfig:
    """Optional observability outputs."""
    events_log: Optional[str] = None
    # EventType names to write; unset writes every event.
    events_filter: Optional[List[str]] = None
    dashboard: bool = False


@dataclass
class BridgeProfile:
    """Resolved configuration for one active profile."""
    name: str
    session: SessionConfig
    reconnect: ReconnectConfig
    timeouts: TimeoutConfig
    dig_area: DigAreaConfig
    monitoring: MonitoringConfig
