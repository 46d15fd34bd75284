"""Unit tests for vatcheck.utils.logging."""

from __future__ import annotations

import io
import json
import logging
import sys
from unittest.mock import patch

import pytest

from vatcheck.config.settings import Settings
from vatcheck.utils.logging import configure_from_settings, configure_logging, get_logger


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    configure_logging(log_level="WARNING", stream=sys.stderr)


class TestConfigureLogging:
    def test_console_lines_go_to_the_given_stream(self) -> None:
        buffer = io.StringIO()
        configure_logging(log_level="INFO", stream=buffer)

        get_logger("tests.logging").info("vat_verified", vat_code="ESB12345678")

        assert "vat_verified" in buffer.getvalue()
        assert "ESB12345678" in buffer.getvalue()

    def test_json_lines(self) -> None:
        buffer = io.StringIO()
        configure_logging(log_level="INFO", json_output=True, stream=buffer)

        get_logger("tests.logging").warning("vat_provider_failed", provider="ISVAT")

        line = json.loads(buffer.getvalue().strip().splitlines()[-1])
        assert line["event"] == "vat_provider_failed"
        assert line["level"] == "warning"
        assert line["provider"] == "ISVAT"
        assert "timestamp" in line

    def test_below_threshold_is_dropped(self) -> None:
        buffer = io.StringIO()
        configure_logging(log_level="WARNING", stream=buffer)

        get_logger("tests.logging").info("vat_verified")

        assert buffer.getvalue() == ""

    def test_stdlib_records_share_the_stream(self) -> None:
        buffer = io.StringIO()
        configure_logging(log_level="INFO", stream=buffer)

        logging.getLogger("aiosqlite").warning("database is locked")

        assert "database is locked" in buffer.getvalue()

    @pytest.mark.parametrize(
        ("level", "expected"),
        [("INFO", logging.WARNING), ("ERROR", logging.ERROR), ("DEBUG", logging.DEBUG)],
    )
    def test_http_library_loggers_are_held_back(self, level: str, expected: int) -> None:
        configure_logging(log_level=level, stream=io.StringIO())

        assert logging.getLogger("httpx").level == expected
        assert logging.getLogger("httpcore").level == expected

    def test_unknown_level_falls_back_to_info(self) -> None:
        configure_logging(log_level="chatty", stream=io.StringIO())
        assert logging.getLogger().level == logging.INFO


class TestConfigureFromSettings:
    def test_production_renders_json(self) -> None:
        with patch("vatcheck.utils.logging.configure_logging") as configure:
            configure_from_settings(Settings(log_level="DEBUG", app_env="production"))

        configure.assert_called_once_with(log_level="DEBUG", json_output=True)

    def test_quiet_raises_threshold(self) -> None:
        with patch("vatcheck.utils.logging.configure_logging") as configure:
            configure_from_settings(Settings(log_level="DEBUG", app_env="development"), quiet=True)

        configure.assert_called_once_with(log_level="WARNING", json_output=False)
