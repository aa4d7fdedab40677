from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from .errors import SaveFileNotFound

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def write_save_file(path: PathLike, data: bytes) -> Path:
    """Atomically write save bytes to ``path`` using a temporary file and replace.

    Either the old file remains or the new file fully replaces it.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_name, exc_info=True)
    logger.info("Wrote save file %s (%d bytes)", target, len(data))
    return target


def read_save_file(path: PathLike) -> bytes:
    target = Path(path)
    try:
        data = target.read_bytes()
    except FileNotFoundError as e:
        raise SaveFileNotFound(f"Save file not found: {target}") from e
    logger.debug("Read save file %s (%d bytes)", target, len(data))
    return data
