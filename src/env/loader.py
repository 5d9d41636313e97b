from __future__ import annotations

import os
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import yaml

from .schema import (
    BridgeProfile,
    DigAreaConfig,
    MonitoringConfig,
    ReconnectConfig,
    SessionConfig,
    TimeoutConfig,
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONFIG_ROOT = PROJECT_ROOT / "config"
DEFAULT_CONFIG = CONFIG_ROOT / "bridge.yaml"

PROFILE_SECTIONS = ("session", "reconnect", "timeouts", "dig_area", "monitoring")

# Default per-action deadlines, mirroring what each session call needs.
DEFAULT_ACTION_TIMEOUTS: Dict[str, float] = {
    "dig": 30.0,
    "dig_looking_at": 30.0,
    "find_and_dig": 30.0,
    "place": 10.0,
    "activate_block": 10.0,
    "equip": 10.0,
    "craft": 15.0,
    "drop": 10.0,
    "drop_item": 10.0,
    "sleep": 10.0,
}


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML config file."""
    if not path.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at top of {path}, got {type(data)}")
    return data


def _select_profile(cfg: Dict[str, Any], name: Optional[str]) -> Tuple[str, Dict[str, Any]]:
    """Return (active_profile_name, active_profile_mapping)."""
    profile_name = name or cfg.get("profile")
    if not profile_name:
        raise ValueError("bridge.yaml must define a 'profile' key.")
    profiles = cfg.get("profiles")
    if not isinstance(profiles, dict):
        raise ValueError("bridge.yaml must define a 'profiles' mapping.")
    if profile_name not in profiles:
        raise KeyError(f"Profile '{profile_name}' not found in bridge.yaml profiles.")
    return profile_name, profiles[profile_name] or {}


def _section(raw: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Section '{key}' must be a mapping, got {type(value)}")
    return value


def _check_keys(key: str, raw: Mapping[str, Any], known: Iterable[str]) -> None:
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ValueError(f"Unknown key(s) in '{key}': {', '.join(unknown)}")


def _build(cls: Any, key: str, raw: Mapping[str, Any]) -> Any:
    """Construct a config dataclass, rejecting keys it does not declare."""
    _check_keys(key, raw, (f.name for f in fields(cls)))
    return cls(**raw)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_profile(name: str, raw: Mapping[str, Any]) -> BridgeProfile:
    """Turn a raw profile mapping into a validated BridgeProfile."""
    _check_keys(f"profiles.{name}", raw, PROFILE_SECTIONS)
    session_raw = _section(raw, "session")
    reconnect_raw = _section(raw, "reconnect")
    timeouts_raw = _section(raw, "timeouts")
    dig_raw = _section(raw, "dig_area")
    monitoring_raw = _section(raw, "monitoring")

    session = _build(SessionConfig, "session", session_raw)
    session.port = int(session.port)
    session.ipc_port = int(session.ipc_port)

    reconnect = _build(ReconnectConfig, "reconnect", reconnect_raw)

    _check_keys("timeouts", timeouts_raw, (f.name for f in fields(TimeoutConfig)))
    per_action = dict(DEFAULT_ACTION_TIMEOUTS)
    per_action.update(timeouts_raw.get("per_action") or {})
    timeouts = TimeoutConfig(
        default_s=float(timeouts_raw.get("default_s", 30.0)),
        goal_s=float(timeouts_raw.get("goal_s", 30.0)),
        per_action={k: float(v) for k, v in per_action.items()},
    )

    profile = BridgeProfile(
        name=name,
        session=session,
        reconnect=reconnect,
        timeouts=timeouts,
        dig_area=_build(DigAreaConfig, "dig_area", dig_raw),
        monitoring=_build(MonitoringConfig, "monitoring", monitoring_raw),
    )
    _validate_profile(profile)
    return profile


def apply_overrides(
    profile: BridgeProfile,
    *,
    host: Optional[str] = None,
    port: Optional[int] = None,
    username: Optional[str] = None,
) -> BridgeProfile:
    """Return a copy of `profile` with session identity overridden.

    Precedence (highest first): environment variables MC_HOST / MC_PORT /
    BOT_USERNAME, explicit arguments, config file.
    """
    host = os.getenv("MC_HOST") or host or profile.session.host
    raw_port = os.getenv("MC_PORT") or port or profile.session.port
    username = os.getenv("BOT_USERNAME") or username or profile.session.username

    try:
        port_value = int(raw_port)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid port: {raw_port!r}") from exc

    session = replace(profile.session, host=host, port=port_value, username=username)
    updated = replace(profile, session=session)
    _validate_profile(updated)
    return updated


def load_environment(
    path: Optional[Path] = None,
    profile_name: Optional[str] = None,
) -> BridgeProfile:
    """Main entry point: returns a fully resolved BridgeProfile.

    The config path defaults to $BRIDGE_CONFIG, then config/bridge.yaml.
    If neither exists, built-in defaults are used.
    """
    if path is None:
        env_path = os.getenv("BRIDGE_CONFIG")
        path = Path(env_path) if env_path else DEFAULT_CONFIG

    if not path.exists() and path == DEFAULT_CONFIG:
        profile = build_profile("default", {})
    else:
        cfg = _load_yaml(path)
        name, raw = _select_profile(cfg, profile_name)
        profile = build_profile(name, raw)

    return apply_overrides(profile)


def _validate_profile(profile: BridgeProfile) -> None:
    """Minimal sanity checks for the profile."""
    session = profile.session
    if not session.host:
        raise ValueError("session.host must not be empty")
    if not (0 < session.port < 65536):
        raise ValueError(f"session.port out of range: {session.port}")
    if not session.username:
        raise ValueError("session.username must not be empty")

    rc = profile.reconnect
    if rc.max_attempts < 0:
        raise ValueError(f"reconnect.max_attempts must be >= 0, got {rc.max_attempts}")
    if rc.base_backoff_s <= 0 or rc.max_backoff_s < rc.base_backoff_s:
        raise ValueError(
            "reconnect backoff must satisfy 0 < base_backoff_s <= max_backoff_s"
        )

    if profile.timeouts.default_s <= 0 or profile.timeouts.goal_s <= 0:
        raise ValueError("timeouts must be positive")
    for kind, value in profile.timeouts.per_action.items():
        if value <= 0:
            raise ValueError(f"timeout for {kind!r} must be positive, got {value}")

    dig = profile.dig_area
    if min(dig.max_width, dig.max_height, dig.max_depth) <= 0:
        raise ValueError("dig_area maxima must be positive")
    if dig.progress_every <= 0:
        raise ValueError("dig_area.progress_every must be positive")
