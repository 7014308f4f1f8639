"""
Unit Tests - Logging Configuration
"""
import logging

import pytest
import structlog

from retail_analytics.config.logging import configure_logging, service_context
from retail_analytics.config.settings import DatabaseSettings, Settings


@pytest.fixture
def restore_logging():
    """Undo the global logging changes made by configure_logging."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    names = ("sqlalchemy.engine", "uvicorn.access", "uvicorn", "uvicorn.error")
    levels = {name: logging.getLogger(name).level for name in names}

    yield

    root.handlers = handlers
    root.setLevel(level)
    for name, previous in levels.items():
        logging.getLogger(name).setLevel(previous)
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging()"""

    def test_sql_echo_routes_engine_logger(self, restore_logging):
        configure_logging(settings=Settings(database=DatabaseSettings(echo=True)))
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO

        configure_logging(settings=Settings(database=DatabaseSettings(echo=False)))
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_access_lines_are_dropped(self, restore_logging):
        configure_logging(log_level="DEBUG", settings=Settings())

        assert logging.getLogger("uvicorn.access").level == logging.WARNING
        assert logging.getLogger("uvicorn").level == logging.DEBUG
        assert len(logging.getLogger().handlers) == 1


def test_service_context_stamps_events():
    settings = Settings()
    event = service_context(settings)(None, "info", {"event": "Report built"})

    assert event["service"] == settings.app_name
    assert event["environment"] == settings.app_env
