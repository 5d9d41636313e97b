# src/app/logging_config.py
"""
Central logging configuration for the bridge process.

Call configure_logging() from your main entrypoint once, for example:

    from app.logging_config import configure_logging
    configure_logging()

Everything goes to stderr. stdout carries the controller protocol and must
never see a log line.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """
    Configure root logging if no handlers are attached yet.

    Args:
        level: default logging level (e.g., logging.INFO, logging.DEBUG)
    """
    root = logging.getLogger()

    # Don't duplicate handlers if someone already configured logging.
    if root.handlers:
        return

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
