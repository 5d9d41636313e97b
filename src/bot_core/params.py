# src/bot_core/params.py
"""
Parameter validation helpers for command handlers.

Commands arrive as loose JSON, so handlers pull typed values out through
these helpers. Failures raise CommandError with a controller-readable message.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from spec.types import Vec3

from .errors import CommandError


def is_number(value: Any) -> bool:
    """True for finite ints/floats (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def valid_coords(x: Any, y: Any, z: Any) -> bool:
    return is_number(x) and is_number(y) and is_number(z)


def require_coords(params: Mapping[str, Any]) -> Vec3:
    """Extract finite x/y/z or raise CommandError."""
    x, y, z = params.get("x"), params.get("y"), params.get("z")
    if not valid_coords(x, y, z):
        raise CommandError(f"Invalid coordinates: {x}, {y}, {z}")
    return Vec3(x, y, z)


def optional_int(params: Mapping[str, Any], key: str, default: Optional[int] = None) -> Optional[int]:
    """Positive int parameter, or `default` when absent/zero/null."""
    value = params.get(key)
    if value is None or value == 0:
        return default
    if not is_number(value) or value < 0:
        raise CommandError(f"Invalid {key}: {value}")
    return int(value)


def require_str(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise CommandError(f"Missing or invalid {key}")
    return value


__all__ = ["is_number", "valid_coords", "require_coords", "optional_int", "require_str"]
