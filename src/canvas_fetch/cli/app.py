"""Main CLI application for canvas-fetch."""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from canvas_fetch import __version__
from canvas_fetch.cli import api as api_cmd
from canvas_fetch.cli.common import console
from canvas_fetch.config import get_settings
from canvas_fetch.logging import setup_logging

app = typer.Typer(
    name="canvasfetch",
    help="Rate-limited, paginated fetching from the Canvas REST API.",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"canvasfetch version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-error output (WARNING level).",
        ),
    ] = False,
) -> None:
    """canvas-fetch - Fetch Canvas data without exceeding the rate limit."""
    settings = get_settings()
    log_config = settings.logging

    setup_logging(
        level=settings.log_level,
        verbose=verbose,
        quiet=quiet,
        log_file=Path(log_config.log_file) if log_config.log_file else None,
        rotation=log_config.rotation,
        retention=log_config.retention,
        serialize=log_config.serialize,
    )


@app.command()
def config() -> None:
    """Show the effective configuration (token redacted)."""
    settings = get_settings()

    table = Table(title="canvas-fetch configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    token = settings.canvas_access_token
    table.add_row("canvas_domain", settings.canvas_domain or "[red]not set[/red]")
    table.add_row(
        "canvas_access_token", f"...{token[-4:]}" if token else "[red]not set[/red]"
    )
    table.add_row("log_level", settings.log_level)
    for section in ("scheduler", "retry", "pagination"):
        for name, value in getattr(settings, section).model_dump().items():
            table.add_row(f"{section}.{name}", str(value))

    console.print(table)


# Register subcommands
app.add_typer(api_cmd.app, name="api")


if __name__ == "__main__":
    app()
