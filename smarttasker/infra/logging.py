from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from smarttasker.config import PROJECT_ROOT, SETTINGS, Settings

LOGGER_NAME = "smarttasker"
LOG_FILE_NAME = "smarttasker.log"


def setup_logging(settings: Settings = SETTINGS, base_dir: Path = PROJECT_ROOT) -> logging.Logger:
    """Attach the rotating file and console handlers to the package logger.

    Calling it again replaces the handlers instead of stacking duplicates,
    so repeated CLI runs in one process log each line once.
    """
    log_dir = base_dir / settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    console_handler = logging.StreamHandler()

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(settings.log_level.upper())
    logger.propagate = False
    return logger
