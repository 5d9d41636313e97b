# src/bot_core/tracing.py
"""
Tracing for exclusive action execution.

This module provides a thin, structured logging layer around every
exclusive command the bridge runs, so that monitoring tools can consume
consistent traces (what ran, for how long, how it ended).

It does NOT:
- Emit controller-facing events
- Make control decisions
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

from spec.types import Command, Vec3


@dataclass
class ActionTraceRecord:
    """
    Structured record of a single exclusive action execution.
    """

    timestamp: float           # wall-clock time (time.time())
    duration_s: float          # execution duration in seconds

    kind: str
    params: Dict[str, Any]

    success: bool
    error: Optional[str]

    # Player position when the action finished, if spawned
    position: Optional[Dict[str, float]]


class ActionTracer:
    """
    In-memory action tracer with optional logging.

    Responsibilities:
    - Keep a rolling buffer of recent ActionTraceRecord entries.
    - Emit a single structured log line per action (info level).
    """

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        max_records: int = 1_000,
    ) -> None:
        self._logger = logger or logging.getLogger("bot_core.action")
        self._records: Deque[ActionTraceRecord] = deque(maxlen=max_records)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def record(
        self,
        *,
        command: Command,
        success: bool,
        error: Optional[str],
        duration_s: float,
        position: Optional[Vec3] = None,
    ) -> None:
        """
        Record a trace for a finished action.

        This should be called even on failures; `success` and `error`
        capture outcome.
        """
        record = ActionTraceRecord(
            timestamp=time.time(),
            duration_s=duration_s,
            kind=command.kind,
            params=dict(command.params),
            success=success,
            error=error,
            position=position.to_dict() if position is not None else None,
        )
        self._records.append(record)

        self._logger.info(
            "action_exec kind=%s success=%s error=%s duration=%.4fs",
            record.kind,
            record.success,
            record.error,
            record.duration_s,
        )

    def get_records(self) -> List[ActionTraceRecord]:
        """
        Return a snapshot of all currently buffered records.

        Intended for debugging and the dashboard; not performance-critical.
        """
        return list(self._records)
