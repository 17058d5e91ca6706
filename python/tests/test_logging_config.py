"""
Tests for logging setup.
"""

import logging
import sys

from wpsync.logging_config import FlushingHandler, get_logger, setup_logging


def test_setup_logging_creates_daily_file(tmp_path):
    logger = setup_logging(log_dir=tmp_path / "logs")
    logger.info("📁 hello")

    files = list((tmp_path / "logs").glob("wpsync-*.log"))
    assert len(files) == 1
    assert "📁 hello" in files[0].read_text(encoding="utf-8")


def test_setup_logging_is_idempotent(tmp_path):
    """Test: Repeated setup does not stack handlers."""
    setup_logging(log_dir=tmp_path)
    logger = setup_logging(log_dir=tmp_path)

    assert sum(isinstance(h, FlushingHandler) for h in logger.handlers) == 1


def test_setup_logging_console_handler(tmp_path):
    logger = setup_logging(log_dir=tmp_path, console=True)
    setup_logging(log_dir=tmp_path, console=True)

    console = [
        h for h in logger.handlers
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
    ]
    assert len(console) == 1


def test_setup_logging_level(tmp_path):
    assert setup_logging(log_dir=tmp_path, level=logging.DEBUG).level == logging.DEBUG


def test_child_loggers_share_handlers(tmp_path):
    setup_logging(log_dir=tmp_path)
    get_logger("wpsync.engine").info("➕ Added: a.php")

    text = next(tmp_path.glob("wpsync-*.log")).read_text(encoding="utf-8")
    assert "wpsync.engine" in text
    assert "Added: a.php" in text
