"""Canvas API fetch commands."""

from __future__ import annotations

from typing import Any

import typer
from rich.table import Table

from canvas_fetch.api import KEY_PLACEHOLDER, CanvasClient, HttpMethod
from canvas_fetch.cli.common import (
    FieldOption,
    MaxBatchOption,
    OutputFormat,
    OutputFormatOption,
    PerPageOption,
    console,
    parse_json_option,
    parse_key_list,
    print_json,
    run_async_command,
)

app = typer.Typer(help="Canvas API commands")


@app.command("get")
def get_resource(
    path: str = typer.Argument(..., help="API path, e.g. courses/123"),
    method: HttpMethod = typer.Option(HttpMethod.GET, "--method", "-X", help="HTTP method"),
    data: str | None = typer.Option(None, "--data", "-d", help="JSON request body"),
    prefix: str | None = typer.Option(
        None, "--prefix", help="Wrap the body under this key (e.g. enrollment)"
    ),
) -> None:
    """Perform a single request and print the response.

    Examples:
        canvasfetch api get courses/123
        canvasfetch api get courses/123/enrollments -X POST --prefix enrollment \\
            -d '{"user_id": 42, "type": "StudentEnrollment"}'
    """
    body = parse_json_option(data, "--data")

    async def _get() -> None:
        async with CanvasClient() as client:
            envelope = await client.request(path, method, body, prefix)

        if envelope.is_transport_failure:
            console.print("[red]Error:[/red] No response received")
            raise typer.Exit(1)

        style = "green" if envelope.ok else "red"
        console.print(f"[{style}]HTTP {envelope.status}[/{style}]")
        if envelope.data is not None:
            print_json(envelope.data)
        if not envelope.ok:
            raise typer.Exit(1)

    run_async_command(_get(), error_prefix="Request failed")


@app.command("list")
def list_resource(
    path: str = typer.Argument(..., help="API path of a listing, e.g. courses/123/users"),
    per_page: PerPageOption = None,
    max_batch: MaxBatchOption = None,
    field: FieldOption = None,
    output_format: OutputFormatOption = OutputFormat.TEXT,
) -> None:
    """Fetch every page of a listing.

    Examples:
        canvasfetch api list courses/123/users
        canvasfetch api list "courses/123/users?enrollment_type[]=student" --field name
        canvasfetch api list accounts/1/courses --format json
    """

    async def _list() -> Any:
        async with CanvasClient() as client:
            return await client.get_list(
                path,
                "?" in path,
                per_page=per_page,
                max_batch=max_batch,
                extract_field=field,
            )

    result = run_async_command(_list(), error_prefix="List failed")

    if output_format == OutputFormat.JSON:
        print_json(result)
        return

    console.print(f"[green]Fetched {len(result)} record(s)[/green] from {path}")
    if field and isinstance(result, dict):
        table = Table(title=f"{field} by id")
        table.add_column("id", style="cyan")
        table.add_column(field)
        for record_id, values in list(result.items())[:20]:
            table.add_row(str(record_id), str(values.get(field, "")))
        console.print(table)
        if len(result) > 20:
            console.print(f"  ... and {len(result) - 20} more")


@app.command("keys")
def list_for_keys(
    template: str = typer.Argument(
        ..., help=f"API path containing {KEY_PLACEHOLDER}, e.g. courses/{KEY_PLACEHOLDER}/users"
    ),
    keys: str = typer.Argument(..., help="Comma-separated keys, e.g. 101,102,103"),
    per_page: PerPageOption = None,
    max_batch: MaxBatchOption = None,
    field: FieldOption = None,
    output_format: OutputFormatOption = OutputFormat.TEXT,
) -> None:
    """Fetch the same listing for many keys at once.

    Examples:
        canvasfetch api keys "courses/<key>/enrollments" 101,102,103
        canvasfetch api keys "courses/<key>/assignments" 101,102 --format json
    """
    if KEY_PLACEHOLDER not in template:
        console.print(f"[red]Error:[/red] Template must contain {KEY_PLACEHOLDER}")
        raise typer.Exit(1)
    key_list = parse_key_list(keys)

    async def _keys() -> Any:
        async with CanvasClient() as client:
            return await client.aggregate_for_keys(
                template,
                key_list,
                "?" in template,
                per_page=per_page,
                max_batch=max_batch,
                extract_field=field,
            )

    result = run_async_command(_keys(), error_prefix="Multi-key fetch failed")

    if output_format == OutputFormat.JSON:
        print_json(result.to_dict())
        return

    table = Table(title=template)
    table.add_column("Key", style="cyan")
    table.add_column("Records", justify="right")
    table.add_column("Failed requests", justify="right")
    for key, records in result.results.items():
        failed = len(result.failed_urls.get(key, []))
        table.add_row(str(key), str(len(records)), f"[red]{failed}[/red]" if failed else "0")
    console.print(table)
    console.print(
        f"{result.total_requests} request(s) in {result.batches} batch(es), "
        f"{result.duration_seconds:.1f}s"
    )
