from __future__ import annotations

import logging
import os
from typing import Optional, TextIO

LOG_LEVEL_ENV = "SAVECODEC_LOG_LEVEL"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def resolve_level(default_level: int = logging.WARNING) -> int:
    """Return the level named by SAVECODEC_LOG_LEVEL, or ``default_level``."""
    level_name = os.getenv(LOG_LEVEL_ENV)
    if not level_name:
        return default_level
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else default_level


def configure_logging(level: Optional[int] = None, stream: Optional[TextIO] = None) -> None:
    """Configure the root logger for hosts and the inspect CLI.

    An explicit ``level`` wins over the environment. The library never calls
    this on import.
    """
    logging.basicConfig(
        level=level if level is not None else resolve_level(),
        format=LOG_FORMAT,
        stream=stream,
    )
