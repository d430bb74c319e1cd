"""Console logging setup for the toolbridge service."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-28s | %(message)s"
DATE_FORMAT = "%H:%M:%S"

_configured = False


def setup_logging(level: str | int = "INFO") -> None:
    """Attach one console handler to the `toolbridge` logger (idempotent)."""
    global _configured
    logger = logging.getLogger("toolbridge")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if _configured:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    _configured = True
