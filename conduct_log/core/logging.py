# conduct_log/core/logging.py
from __future__ import annotations

import logging

from conduct_log.core.config import LOG_LEVEL

_configured = False


def setup_logging(level: str | int | None = None) -> None:
    """Configure root logging once; later calls are no-ops."""
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    _configured = True
