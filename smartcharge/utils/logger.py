"""Process-wide logging setup and pipe-delimited event formatting."""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

from smartcharge.utils.config import get_settings


_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Install the stdout handler once; later calls only adjust the level."""
    global _configured
    resolved_level = (level or get_settings().log_level).upper()
    if _configured:
        logging.getLogger().setLevel(resolved_level)
        return

    logging.basicConfig(level=resolved_level, format=_LOG_FORMAT, stream=sys.stdout)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def describe(event: str, **fields: Any) -> str:
    """Render `event | key=value | key=value` in a stable key order."""
    parts = [event]
    parts.extend(f"{key}={fields[key]}" for key in sorted(fields))
    return " | ".join(parts)
