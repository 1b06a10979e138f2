"""Tests for logging configuration."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from loguru import logger

from canvas_fetch.logging import (
    LogContext,
    _console_format,
    bind_key,
    bind_url,
    get_logger,
    is_configured,
    reset_logging,
    setup_logging,
)

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def _reset_logging_state() -> Generator[None, None, None]:
    """Reset loguru state before and after each test."""
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def captured() -> Generator[list[str], None, None]:
    """Messages rendered as '{extra} | {message}' after DEBUG setup."""
    messages: list[str] = []
    setup_logging(level="DEBUG")
    handler_id = logger.add(
        lambda msg: messages.append(str(msg)),
        format="{extra} | {message}",
    )
    yield messages
    logger.remove(handler_id)


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_default_level(self) -> None:
        """Test default INFO level setup."""
        setup_logging(level="INFO")
        assert is_configured()

    def test_setup_logging_verbose_overrides_level(self) -> None:
        """Test that verbose flag sets DEBUG level."""
        messages: list[str] = []
        setup_logging(level="WARNING", verbose=True)

        handler_id = logger.add(lambda msg: messages.append(str(msg)))
        try:
            logger.bind(name="test").debug("debug message")
            assert any("debug message" in msg for msg in messages)
        finally:
            logger.remove(handler_id)

    def test_setup_logging_verbose_takes_precedence(self) -> None:
        """Test verbose takes precedence over quiet when both set."""
        setup_logging(level="INFO", verbose=True, quiet=True)

        assert logging.getLogger("httpx").level == logging.DEBUG

    def test_setup_logging_with_file(self, tmp_path: Path) -> None:
        """Test file logging setup."""
        log_file = tmp_path / "test.log"
        setup_logging(level="INFO", log_file=log_file)

        logger.bind(name="test").info("Test file message")

        # Give loguru a moment to flush
        time.sleep(0.1)

        assert log_file.exists()
        assert "Test file message" in log_file.read_text()

    def test_setup_logging_sets_configured_flag(self) -> None:
        """Test that setup_logging sets the configured flag."""
        assert not is_configured()
        setup_logging(level="INFO")
        assert is_configured()


class TestConsoleFormat:
    """Tests for the console line template."""

    def test_bound_logger_shows_name(self) -> None:
        template = _console_format({"extra": {"name": "engine"}})  # type: ignore[arg-type]

        assert "{extra[name]}" in template
        assert template.endswith("\n{exception}")

    def test_intercepted_record_shows_module(self) -> None:
        template = _console_format({"extra": {}})  # type: ignore[arg-type]

        assert "<cyan>{name}</cyan>" in template

    def test_key_preferred_over_url(self) -> None:
        template = _console_format(
            {"extra": {"name": "aggregator", "key": "7", "url": "https://x"}}  # type: ignore[arg-type]
        )

        assert "[key={extra[key]}]" in template
        assert "{extra[url]}" not in template

    def test_key_written_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(level="INFO")

        bind_key(4821).warning("Failed to fetch data")

        assert "[key=4821]" in capsys.readouterr().err


class TestInterceptHandler:
    """Tests for stdlib logging interception."""

    def test_intercept_stdlib_logging(self, captured: list[str]) -> None:
        """Test that stdlib logging is routed to loguru."""
        logging.getLogger("test_stdlib_intercept").warning("Hello from stdlib")

        assert any("Hello from stdlib" in msg for msg in captured)

    def test_scheduler_stdlib_logger_routed(self, captured: list[str]) -> None:
        """The scheduler's %-style stdlib messages arrive formatted."""
        logging.getLogger("canvas_fetch.api.pacing.scheduler").debug(
            "Spacing: waiting %.3fs before request", 0.2
        )

        assert any("waiting 0.200s" in msg for msg in captured)

    def test_stdlib_records_reach_file(self, tmp_path: Path) -> None:
        """Intercepted stdlib records are written to the log file too."""
        log_file = tmp_path / "stdlib.log"
        setup_logging(level="INFO", log_file=log_file)

        logging.getLogger("canvas_fetch.api.pacing.scheduler").debug("Submitting request")
        time.sleep(0.1)

        assert "Submitting request" in log_file.read_text()

    def test_httpx_logging_controlled(self) -> None:
        """Test httpx request logs are quiet outside debug."""
        setup_logging(level="INFO")

        assert logging.getLogger("httpx").level >= logging.WARNING
        assert logging.getLogger("httpcore").level >= logging.WARNING


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_returns_logger(self) -> None:
        """Test that get_logger returns a logger instance."""
        test_logger = get_logger("my_module")
        assert hasattr(test_logger, "info")
        assert hasattr(test_logger, "debug")
        assert hasattr(test_logger, "error")

    def test_get_logger_binds_name(self, captured: list[str]) -> None:
        """Test that get_logger binds the module name."""
        get_logger("my_test_module").info("Test message")

        assert any("my_test_module" in msg for msg in captured)


class TestContextBinding:
    """Tests for context binding helpers."""

    def test_bind_key(self, captured: list[str]) -> None:
        """Test bind_key adds the aggregation key."""
        bind_key(4821).warning("Failed to fetch data")

        output = "".join(captured)
        assert "4821" in output
        assert "Failed to fetch data" in output

    def test_bind_url(self, captured: list[str]) -> None:
        """Test bind_url adds the request URL."""
        bind_url("https://canvas.test/api/v1/courses").error("No response")

        assert any("https://canvas.test/api/v1/courses" in msg for msg in captured)

    def test_log_context_manager(self, captured: list[str]) -> None:
        """Test LogContext context manager."""
        with LogContext(operation="get_list"):
            logger.info("Inside context")
        logger.info("Outside context")

        inside = [m for m in captured if "Inside context" in m]
        outside = [m for m in captured if "Outside context" in m]
        assert "get_list" in inside[0]
        assert "get_list" not in outside[0]


class TestLogLevels:
    """Tests for log level handling."""

    @pytest.mark.parametrize("level", ["DEBUG", "INFO", "WARNING", "ERROR"])
    def test_log_level_accepted(self, level: str) -> None:
        """Test that various log levels are accepted."""
        setup_logging(level=level)  # type: ignore[arg-type]
        assert is_configured()


class TestResetLogging:
    """Tests for reset_logging function."""

    def test_reset_logging_clears_configured(self) -> None:
        """Test that reset_logging clears the configured flag."""
        setup_logging(level="INFO")
        assert is_configured()

        reset_logging()
        assert not is_configured()
