# src/bot_core/timeouts.py
"""
Deadline helpers for calls into the game session.

- with_timeout: race an awaitable against a deadline. Whichever settles
  first decides the outcome; the deadline timer never outlives the race.
- ignore_failure: run a best-effort cleanup call at the session boundary
  (clearing a goal, stopping pathing). Failures are logged at debug level
  and dropped, since cleanup is never the primary outcome.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from .errors import OperationTimeout

log = logging.getLogger(__name__)

T = TypeVar("T")


async def with_timeout(awaitable: Awaitable[T], timeout_s: float, label: str) -> T:
    """
    Await `awaitable`, failing with OperationTimeout after `timeout_s`.

    The OperationTimeout message names the operation and the deadline in
    milliseconds, e.g. "dig timed out after 30000ms". On timeout the losing
    operation is cancelled.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        raise OperationTimeout(label, timeout_s) from exc


def ignore_failure(fn: Callable[..., Any], *args: Any, what: str = "") -> None:
    """Call `fn(*args)`; any Exception is logged and discarded."""
    try:
        fn(*args)
    except Exception:
        log.debug("best-effort %s failed", what or getattr(fn, "__name__", "call"), exc_info=True)


__all__ = ["with_timeout", "ignore_failure"]
