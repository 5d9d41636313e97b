# line-delimited JSON framing for the controller link
# src/bot_core/net/protocol.py
"""
Controller wire protocol.

Inbound:  one JSON object per line, {"kind": "<action>", ...params}.
          The older {"action": "<action>", ...} spelling is accepted too.
Outbound: one compact JSON object per line, {"event": "<name>", ...fields}.
"""

from __future__ import annotations

import json
import logging
from threading import Lock
from typing import Any, Dict, TextIO

from spec.monitoring import EventSink
from spec.types import Command

from ..errors import CommandError

log = logging.getLogger(__name__)

KIND_KEYS = ("kind", "action")


def decode_command(line: str) -> Command:
    """
    Parse one inbound line.

    Raises CommandError with the controller-facing message when the line is
    not JSON, not an object, or names no action.
    """
    try:
        obj = json.loads(line)
    except ValueError:
        raise CommandError(f"Invalid JSON: {line}") from None

    if not isinstance(obj, dict):
        raise CommandError(f"Command must be a JSON object: {line}")

    params = dict(obj)
    kind = None
    for key in KIND_KEYS:
        if key in params:
            kind = params.pop(key)
            break
    if not isinstance(kind, str) or not kind:
        raise CommandError(f"Command is missing 'kind': {line}")
    return Command(kind=kind, params=params)


def encode_event(event: Dict[str, Any]) -> str:
    return json.dumps(event, separators=(",", ":"), default=str)


class StreamEventSink(EventSink):
    """Writes each outbound event as one JSON line and flushes."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._lock = Lock()

    def send(self, event: Dict[str, Any]) -> None:
        line = encode_event(event)
        with self._lock:
            try:
                self._stream.write(line + "\n")
                self._stream.flush()
            except (OSError, ValueError):
                # Controller went away; stdin EOF will end the process.
                log.warning("dropping outbound event %s: output closed", event.get("event"))


__all__ = ["KIND_KEYS", "StreamEventSink", "decode_command", "encode_event"]
