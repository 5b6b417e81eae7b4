"""
Multiparty - Logging configuration.

Created by orpheus497

Modules log through logging.getLogger(__name__); this module only wires
handlers for the command line entry point. Key material is never logged.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import Config
from .constants import LOG_BACKUP_COUNT, LOG_DATE_FORMAT, LOG_FILENAME, LOG_FORMAT, LOG_MAX_BYTES

PACKAGE_LOGGER = "multiparty"


def setup_logging(config: Config, log_dir: Optional[Path] = None,
                  debug: bool = False) -> logging.Logger:
    """
    Configure the package logger from the [logging] config section.

    Args:
        config: Loaded configuration
        log_dir: Directory for the rotating log file (file logging only)
        debug: Force DEBUG level regardless of config

    Returns:
        The package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    level_name = "DEBUG" if debug else str(config.get("logging", "level", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if config.get("logging", "console_logging", True):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    if config.get("logging", "file_logging", False) and log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILENAME,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger
