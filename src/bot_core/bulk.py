# src/bot_core/bulk.py
"""
Cooperatively cancellable bulk operations.

A bulk operation walks a precomputed, finite list of targets with an
explicit cursor:

    Running(cursor) --step--> Running(cursor + 1)
    Running(cursor) --flag set at a step boundary--> Cancelled(cursor)
    Running(len)    ------------------------------> Done

Cancellation is polled, never preemptive: a slow step always finishes,
only its successor is prevented from starting. The bulk operation runs
as one exclusive action, so the queue sees a single completion when the
run reaches Cancelled or Done.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

# A step returns True when it handled the target, False when it skipped it.
StepFn = Callable[[T], Awaitable[bool]]
ProgressFn = Callable[[int, int], None]


class CancelFlag:
    """Cancellation request shared by the running bulk operation and `stop`."""

    def __init__(self) -> None:
        self.cancelled: bool = False

    def set(self) -> None:
        self.cancelled = True

    def clear(self) -> None:
        self.cancelled = False


class BulkState(Enum):
    RUNNING = "running"
    CANCELLED = "cancelled"
    DONE = "done"


@dataclass
class BulkResult:
    state: BulkState
    processed: int          # targets actually handled (skips excluded)
    cursor: int             # targets visited
    total: int


class BulkRun(Generic[T]):
    """One pass over `targets`, honoring `flag` between steps."""

    def __init__(
        self,
        targets: Sequence[T],
        flag: CancelFlag,
        *,
        progress_every: int = 10,
        on_progress: Optional[ProgressFn] = None,
    ) -> None:
        self.targets: List[T] = list(targets)
        self.cursor: int = 0
        self.processed: int = 0
        self.state: BulkState = BulkState.RUNNING

        self._flag = flag
        self._progress_every = progress_every
        self._on_progress = on_progress

    @property
    def total(self) -> int:
        return len(self.targets)

    async def run(self, step: StepFn) -> BulkResult:
        while True:
            if self._flag.cancelled:
                self.state = BulkState.CANCELLED
                break
            if self.cursor >= len(self.targets):
                self.state = BulkState.DONE
                break

            handled = await step(self.targets[self.cursor])
            self.cursor += 1
            if handled:
                self.processed += 1
                if self._on_progress is not None and self.cursor % self._progress_every == 0:
                    self._on_progress(self.cursor, len(self.targets))

        log.debug(
            "bulk run finished state=%s processed=%d cursor=%d/%d",
            self.state.value, self.processed, self.cursor, len(self.targets),
        )
        return BulkResult(
            state=self.state,
            processed=self.processed,
            cursor=self.cursor,
            total=len(self.targets),
        )


__all__ = ["CancelFlag", "BulkState", "BulkResult", "BulkRun"]
