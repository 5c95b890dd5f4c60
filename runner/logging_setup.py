"""
Logging setup for place-rank-tracker.

All modules log through children of one project logger:

    logger = get_logger("place_collector")   # -> place_rank_tracker.place_collector

Handlers are attached once, by the entry point, from the run's PlaceConfig
(setup_logging). Until then records only reach Python's last-resort handler
(warnings and errors on stderr), so importing a module never creates log files.
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional, Union


ROOT_LOGGER = "place_rank_tracker"

CONSOLE_FORMAT = "%(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Union[str, Path]] = None,
    log_name: str = "place-rank-tracker",
) -> logging.Logger:
    """
    Attach console and rotating file handlers to the project logger.

    Calling it again replaces the handlers, so a run can switch level or
    directory without duplicate output.

    Args:
        level: Level name (PlaceConfig.log_level)
        log_dir: Directory of the log file (PlaceConfig.log_dir); None logs to
            the console only
        log_name: File name stem, e.g. the run mode

    Returns:
        The configured project logger
    """
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(numeric_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    log_file = None
    if log_dir:
        logs_dir = Path(log_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = logs_dir / f"{log_name}.log"

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    logger.debug(f"Logging initialized: level={logging.getLevelName(numeric_level)}, file={log_file or '-'}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child of the project logger for one module."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
