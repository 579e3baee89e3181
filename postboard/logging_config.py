"""Logging setup for scripts and interactive sessions."""
from __future__ import annotations

import logging

from .config import get_settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | int | None = None) -> None:
    """Install a basic stream handler at the configured level."""

    resolved = level if level is not None else get_settings().log_level
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved.upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO
    logging.basicConfig(level=resolved, format=_FORMAT)
    logging.getLogger("httpx").setLevel(max(resolved, logging.WARNING))
    logging.getLogger("botocore").setLevel(max(resolved, logging.WARNING))


__all__ = ["configure_logging"]
