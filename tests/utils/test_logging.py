"""
Unit tests for structlog setup.

Tests cover:
- Renderer selection without a log file
- Rotating JSON file output
"""

import json
import logging

import pytest
import structlog

from agentrelay.core.config import RelayConfig
from agentrelay.utils.logging import setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:
    """Tests for renderer and handler selection."""

    def test_debug_without_file_prints_json(self, capsys):
        setup_logging(RelayConfig(log_level="DEBUG"))

        structlog.get_logger("test").info("relay_started", agents=2)

        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["event"] == "relay_started"
        assert record["agents"] == 2

    def test_info_without_file_prints_console_format(self, capsys):
        setup_logging(RelayConfig(log_level="INFO"))

        structlog.get_logger("test").info("relay_started", agents=2)

        line = capsys.readouterr().out.strip().splitlines()[-1]
        assert "relay_started" in line
        with pytest.raises(json.JSONDecodeError):
            json.loads(line)

    def test_log_file_receives_json(self, temp_dir):
        log_file = temp_dir / "logs" / "relay.log"
        setup_logging(RelayConfig(log_level="INFO", log_file=log_file))

        structlog.get_logger("test").info("relay_started", agents=2)
        for handler in logging.getLogger().handlers:
            handler.flush()

        record = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert record["event"] == "relay_started"
