"""Tests for structured logging setup."""

import json

import pytest
import structlog

from json_tables.logging_setup import setup_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


class TestSetupLogging:
    """Tests for the structlog configuration."""

    def test_json_lines(self, capsys):
        setup_logging(debug=False)
        structlog.get_logger().info("database_loaded", tables=9)

        line = capsys.readouterr().out.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "database_loaded"
        assert event["tables"] == 9
        assert event["level"] == "info"
        assert "timestamp" in event

    def test_info_level_drops_debug(self, capsys):
        setup_logging(debug=False)
        structlog.get_logger().debug("flush_scheduled", delay=0.2)

        assert "flush_scheduled" not in capsys.readouterr().out

    def test_debug_console(self, capsys):
        setup_logging(debug=True)
        structlog.get_logger().debug("flush_scheduled", delay=0.2)

        out = capsys.readouterr().out
        assert "flush_scheduled" in out
        assert "delay" in out
