"""
Logging setup.

Modules log through `logging.getLogger(__name__)`; the host process calls
configure_logging() once at startup. stdout only.
"""
from __future__ import annotations

import logging
import sys
from typing import Optional

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_HANDLER_NAME = "learnsync-stdout"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Install a single stdout handler on the root logger and set its level.
    Safe to call repeatedly: the handler is added only once.
    """
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    if not any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    # SQL echo is noise at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logging.getLogger("app")
