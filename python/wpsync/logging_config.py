"""
Logging configuration for wpsync.

All logs go to file: .wpsync/logs/wpsync-YYYY-MM-DD.log (new file each day).
The CLI also enables console logging on stderr so sync activity is visible
while the session runs.
"""

import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


LOGGER_NAME = "wpsync"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
CONSOLE_FORMAT = "%(asctime)s | %(message)s"


class FlushingHandler(logging.handlers.TimedRotatingFileHandler):
    """Handler that flushes after every emit for immediate visibility."""

    def emit(self, record):
        super().emit(record)
        self.flush()


def setup_logging(
    log_dir: Optional[Path] = None,
    level: int = logging.INFO,
    backup_count: int = 7,  # Keep a week of logs
    console: bool = False,
) -> logging.Logger:
    """
    Set up file-based logging for wpsync with daily rotation.

    Args:
        log_dir: Directory for log files (default: .wpsync/logs)
        level: Logging level (default: INFO)
        backup_count: Number of daily backup files to keep
        console: If True, also log to stderr

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        log_dir = Path.cwd() / ".wpsync" / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Check existing handlers to avoid duplicates on repeated setup
    has_file_handler = any(isinstance(h, FlushingHandler) for h in logger.handlers)
    has_console_handler = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in logger.handlers
    )

    if has_file_handler and (not console or has_console_handler):
        return logger

    if not has_file_handler:
        log_file = log_dir / f"wpsync-{datetime.now().strftime('%Y-%m-%d')}.log"

        file_handler = FlushingHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(file_handler)

        logger.debug(f"Log file: {log_file}")
        logger.debug(f"Log level: {logging.getLevelName(level)}")

    if console and not has_console_handler:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """
    Get wpsync logger instance.

    Args:
        name: Logger name (default: "wpsync")

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
