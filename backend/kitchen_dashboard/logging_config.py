"""Centralised logging configuration.

The app calls `configure_logging` once at import; other modules simply use
`logging.getLogger(__name__)`.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(max(resolved, logging.WARNING))
