"""
Pytest configuration and fixtures for wpsync tests.

Specialized fixtures are organized in the fixtures/ directory:
- fixtures.sync: Plugin trees, runtime layout, fake compiler, engine factory
- fixtures.watcher: RootWatcher fixtures
"""

import logging

import pytest

# Load fixture modules
pytest_plugins = [
    "tests.fixtures.sync",
    "tests.fixtures.watcher",
]


@pytest.fixture(autouse=True)
def reset_wpsync_logger():
    """
    Remove handlers added by setup_logging() during a test.

    The wpsync logger is process-global; without this, file handlers from one
    test's tmp_path would keep receiving records in later tests.
    """
    logger = logging.getLogger("wpsync")
    before = list(logger.handlers)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in before:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
