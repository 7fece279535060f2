from __future__ import annotations

import logging
import os
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"


def _resolve_level() -> int:
    level_name = os.getenv("FOCUSQ_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger configured with a single stream handler.

    When FOCUSQ_LOG_FILE is set, the same records are also appended to that file.
    """
    global _HANDLER_ATTACHED

    level = _resolve_level()

    if not _HANDLER_ATTACHED:
        formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
        root = logging.getLogger()

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        root.addHandler(handler)

        if log_file := os.getenv("FOCUSQ_LOG_FILE"):
            file_handler = logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8")
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        root.setLevel(level)
        _HANDLER_ATTACHED = True
    else:
        logging.getLogger().setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
