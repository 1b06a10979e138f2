"""Centralized logging configuration using loguru.

Provides:
- Configurable log levels from Settings
- CLI flag override (--verbose/--quiet)
- Standard library interception (scheduler, backoff, httpx)
- Structured context binding for key/URL tracking
- Optional file rotation logging
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger, Record

# Type alias for log levels
LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Module-level flag to track if logging has been configured
_configured = False

# Stdlib loggers that are chatty at INFO
_TRANSPORT_LOGGERS = ("httpx", "httpcore")

_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{name}:{function}:{line} | "
    "{extra} | "
    "{message}"
)


class InterceptHandler(logging.Handler):
    """Handler to intercept standard library logging and route to loguru.

    The pacing package logs through stdlib loggers, as does httpx; both
    end up in the loguru sinks configured here.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Route stdlib log record to loguru."""
        from types import FrameType

        # Get corresponding loguru level
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        # Find caller from where originated the logged message
        frame: FrameType | None = logging.currentframe()
        depth = 2
        while frame is not None:
            if frame.f_code.co_filename != logging.__file__:
                break
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _console_format(record: Record) -> str:
    """Console line template for one record.

    Records from get_logger() show their bound name, intercepted stdlib
    records their module. A bound aggregation key or request URL is
    appended in brackets.
    """
    extra = record["extra"]
    source = "{extra[name]}" if "name" in extra else "{name}"

    context = ""
    if "key" in extra:
        context = " <yellow>[key={extra[key]}]</yellow>"
    elif "url" in extra:
        context = " <yellow>[{extra[url]}]</yellow>"

    return (
        "<dim>{time:HH:mm:ss}</dim> | "
        "<level>{level: <8}</level> | "
        f"<cyan>{source}</cyan>{context} - "
        "<level>{message}</level>\n{exception}"
    )


def setup_logging(
    level: LogLevel = "INFO",
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    serialize: bool = False,
) -> Logger:
    """Configure logging for the application.

    Args:
        level: Base log level from config
        verbose: If True, use DEBUG level (overrides level)
        quiet: If True, use WARNING level (overrides level)
        log_file: Optional path for file logging with rotation
        rotation: When to rotate log file (e.g., "10 MB", "1 day")
        retention: How long to keep rotated logs
        serialize: If True, output JSON format (useful for file logs)

    Returns:
        Configured logger instance

    Note:
        verbose takes precedence over quiet if both are True.
    """
    global _configured

    # Determine effective level
    effective_level: LogLevel
    if verbose:
        effective_level = "DEBUG"
    elif quiet:
        effective_level = "WARNING"
    else:
        effective_level = level

    # Clear any existing handlers
    logger.remove()

    # Console handler; one sink for bound and intercepted records alike
    logger.add(
        sys.stderr,
        level=effective_level,
        format=_console_format,
        colorize=True,
        backtrace=True,
        diagnose=True,
    )

    # Optional file handler with rotation
    if log_file:
        logger.add(
            log_file,
            level="DEBUG",  # Always capture everything to file
            format=_FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            compression="gz",
            serialize=serialize,
        )

    # Intercept standard library logging
    _intercept_stdlib_logging(effective_level)

    _configured = True
    return logger


def _intercept_stdlib_logging(level: LogLevel) -> None:
    """Intercept standard library loggers and route to loguru.

    This captures logs from:
    - canvas_fetch.api.pacing (scheduler and backoff)
    - httpx / httpcore (transport)
    """
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # httpx logs every request at INFO: quiet unless debugging
    transport_level = logging.DEBUG if level in ("TRACE", "DEBUG") else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)


def get_logger(name: str) -> Logger:
    """Get a logger with the given name bound as context.

    Usage:
        from canvas_fetch.logging import get_logger
        logger = get_logger(__name__)

        # With additional context binding
        logger = logger.bind(key=1234)
        logger.info("Fetching pages")  # Logs with key context

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance with name bound
    """
    return logger.bind(name=name)


def bind_key(key: object) -> Logger:
    """Bind an aggregation key (e.g. a course id) to the logger.

    Args:
        key: Resource key being aggregated

    Returns:
        Logger with key context bound
    """
    return logger.bind(name="aggregator", key=str(key))


def bind_url(url: str) -> Logger:
    """Bind a request URL to the logger."""
    return logger.bind(name="transport", url=url)


class LogContext:
    """Context manager for temporary log context binding.

    Usage:
        with LogContext(operation="get_list", path="courses/1/users"):
            logger.info("Fetching")  # Has operation and path context
        logger.info("After")  # No longer has context
    """

    def __init__(self, **context: Any) -> None:
        self._context = context
        self._token: Any = None

    def __enter__(self) -> Logger:
        """Enter context and bind values."""
        self._token = logger.contextualize(**self._context)
        self._token.__enter__()
        return logger

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit context and unbind values."""
        if self._token:
            self._token.__exit__(exc_type, exc_val, exc_tb)


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


def reset_logging() -> None:
    """Reset logging state (primarily for testing)."""
    global _configured
    logger.remove()
    _configured = False
