"""
Logging configuration for the bulk applier.

Colored console output plus rotating log files (everything, and errors only).
Modules log through logging.getLogger(__name__); the CLI calls setup_logging()
once on the root application logger.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

DEFAULT_LOG_DIR = Path(__file__).parent.parent / "logs"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        # Color a copy so file handlers sharing the record stay plain.
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    name: Optional[str] = None,
    log_dir: Optional[Union[str, Path]] = None,
    level: Optional[str] = None,
    file_logging: bool = True,
) -> logging.Logger:
    """
    Setup and return a configured logger.

    Args:
        name: Logger name (default: root logger, so every module inherits it)
        log_dir: Directory for log files (default: $LOG_DIR or ./logs)
        level: Level name (default: $LOG_LEVEL or INFO)
        file_logging: Also write rotating log files

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if getattr(logger, "_bulk_applier_configured", False):
        return logger

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(ColoredFormatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(console_handler)

    if file_logging:
        directory = Path(log_dir or os.getenv("LOG_DIR") or DEFAULT_LOG_DIR)
        directory.mkdir(parents=True, exist_ok=True)
        file_stem = name or "bulk_applier"

        file_format = logging.Formatter(
            '%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        file_handler = RotatingFileHandler(
            directory / f"{file_stem}.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

        error_handler = RotatingFileHandler(
            directory / f"{file_stem}_errors.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_format)
        logger.addHandler(error_handler)

    logger._bulk_applier_configured = True
    return logger
