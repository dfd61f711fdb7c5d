from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

LOGGER_NAME = "agent_backup"


def get_logger(logger: Any = None) -> logging.Logger:
    """Return the injected logger, or the package logger when none was given."""
    if logger is not None:
        return logger
    return logging.getLogger(LOGGER_NAME)


def setup_logging(log_dir: Optional[str] = None, *, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if log_dir and not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        os.makedirs(log_dir, exist_ok=True)
        text_path = os.path.join(log_dir, "agent_backup.log")
        h = RotatingFileHandler(text_path, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        h.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        logger.addHandler(h)

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler) for h in logger.handlers):
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(sh)

    return logger
