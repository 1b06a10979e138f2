"""Common CLI option factories and helpers.

This module centralizes reusable CLI options and provides
`run_async_command`, the unified async execution wrapper with error
handling for CLI commands.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Coroutine
from enum import Enum
from typing import Annotated, Any, TypeVar

import typer
from rich.console import Console

# Shared console instance for CLI output
console = Console()

T = TypeVar("T")


class OutputFormat(str, Enum):
    """Output format for CLI commands."""

    TEXT = "text"
    """Human-readable summary output."""

    JSON = "json"
    """Machine-readable JSON output."""


def run_async_command(
    coro: Coroutine[object, object, T],
    *,
    error_prefix: str = "Error",
) -> T:
    """Execute async code from synchronous CLI command with unified error handling.

    Uses asyncio.run() for clean event loop management. Catches exceptions,
    prints user-friendly error messages, and exits with code 1.

    Args:
        coro: Async coroutine to execute
        error_prefix: Prefix for error messages (default: "Error")

    Returns:
        Result from the coroutine

    Raises:
        typer.Exit: Re-raised from deliberate exits, or raised with code 1 on error
    """
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]{error_prefix}:[/red] {e}")
        raise typer.Exit(1) from None


def print_json(data: Any) -> None:
    """Print data as highlighted JSON (keys stringified)."""
    console.print_json(json.dumps(data, default=str))


def parse_json_option(value: str | None, option: str) -> Any:
    """Parse a JSON-valued option.

    Raises:
        typer.Exit(1): If the value is not valid JSON
    """
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] {option} must be valid JSON ({e.msg})")
        raise typer.Exit(1) from None


def parse_key_list(keys: str) -> list[str]:
    """Split a comma-separated key list, dropping blanks.

    Raises:
        typer.Exit(1): If no keys remain
    """
    key_list = [k.strip() for k in keys.split(",") if k.strip()]
    if not key_list:
        console.print("[red]Error:[/red] At least one key is required")
        raise typer.Exit(1)
    return key_list


# Typer requires function calls as default arguments, which triggers B008.
# Using Annotated with a centralized type alias keeps the noqa in one place.

OutputFormatOption = Annotated[
    OutputFormat,
    typer.Option(
        "--format",
        "-f",
        help="Output format",
    ),
]
"""Output format option type for CLI commands.

Usage:
    def command(output_format: OutputFormatOption = OutputFormat.TEXT):
"""

PerPageOption = Annotated[
    int | None,
    typer.Option("--per-page", min=1, help="Items per page"),
]

MaxBatchOption = Annotated[
    int | None,
    typer.Option("--max-batch", min=1, help="Maximum requests dispatched together"),
]

FieldOption = Annotated[
    str | None,
    typer.Option(
        "--field",
        help="Extract a single field per record, keyed by record id",
    ),
]
