"""Logging for scheduler runs and CLI commands.

Level and file come from Settings (LOG_LEVEL, LOG_FILE) unless passed in.
Records go to stdout and the log file. APScheduler's per-job chatter is
kept at WARNING unless running at DEBUG.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from estatebill.config import get_settings

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

QUIET_LOGGERS = ("apscheduler.scheduler", "apscheduler.executors.default")


def setup_logging(log_file: Optional[str] = None, level: Optional[str] = None) -> int:
    """Configure the root logger.

    Args:
        log_file: Log file path; default settings.log_file
        level: Level name; default settings.log_level. Unknown names mean INFO

    Returns:
        The level applied
    """
    settings = get_settings()
    log_path = Path(log_file or settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    log_level = LOG_LEVEL_MAP.get((level or settings.log_level).upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    for handler in (logging.StreamHandler(sys.stdout), logging.FileHandler(log_path)):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    quiet_level = logging.NOTSET if log_level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
    return log_level


__all__ = ["LOG_LEVEL_MAP", "QUIET_LOGGERS", "setup_logging"]
