# src/app/__init__.py
"""
Application entrypoints for the bridge.

- main: CLI entry (`mc-bridge [host] [port] [username]`)
"""

from __future__ import annotations

from .main import main

__all__ = ["main"]
