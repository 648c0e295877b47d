"""Opt-in logging setup driven by MEGAMORPHIC_LOG_LEVEL and MEGAMORPHIC_LOG_FILE."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
    """Configure the ``megamorphic`` logger from the environment.

    MEGAMORPHIC_LOG_LEVEL: 0 (default) is silent, 1 is INFO, 2 or more is DEBUG.
    MEGAMORPHIC_LOG_FILE: append to this file; stderr when unset.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    level = _read_level(os.getenv("MEGAMORPHIC_LOG_LEVEL", "0"))
    logger = logging.getLogger("megamorphic")

    if level is None or level <= 0:
        # Silent mode; keep the package quiet even if the root logger is not.
        logger.addHandler(logging.NullHandler())
        logger.propagate = False
        _CONFIGURED = True
        return

    log_path = os.getenv("MEGAMORPHIC_LOG_FILE")
    handler: logging.Handler
    if log_path:
        log_file = Path(log_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, mode="a")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(_map_level(level))
    _CONFIGURED = True


def reset_logging() -> None:
    """Undo configure_logging(); used by tests."""
    global _CONFIGURED
    logger = logging.getLogger("megamorphic")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    _CONFIGURED = False


def _read_level(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except ValueError:
        return None


def _map_level(level: int) -> int:
    if level >= 2:
        return logging.DEBUG
    return logging.INFO
