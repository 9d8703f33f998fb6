#!/usr/bin/env python3
"""Shared logging helpers for Atlas.

Every component logs through ``get_logger("atlas.<component>")``. The
level comes from ``ATLAS_LOG_LEVEL`` (a name like ``DEBUG`` or a number).
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from env_utils import env_str

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def resolve_level(value: Union[str, int, None], default: int = logging.INFO) -> int:
    """``"debug"``, ``"10"`` and ``10`` all resolve to ``logging.DEBUG``."""
    if value is None:
        return default
    if isinstance(value, int):
        return value
    text = str(value).strip().upper()
    if not text:
        return default
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text)
    return level if isinstance(level, int) else default


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Get or create a logger with the Atlas console format."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(handler)
    logger.setLevel(resolve_level(env_str("ATLAS_LOG_LEVEL")) if level is None else level)
    return logger
