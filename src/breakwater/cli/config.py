"""
CLI: ``breakwater config``, configuration inspection.
"""

from __future__ import annotations

import typer

from breakwater.cli.utils import console, err_console

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Show the effective configuration (passwords redacted)."""
    from breakwater.core.config import get_settings
    from breakwater.core.connection import redact_target

    settings = get_settings()
    values = settings.model_dump()
    values["database_url"] = redact_target(settings.database_url)

    if format == "json":
        console.print_json(data=values)
        return
    if format != "table":
        err_console.print(f"[bold red]Error[/bold red]: unknown format {format!r}")
        raise typer.Exit(code=2)

    from rich.table import Table

    table = Table(title="breakwater settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(values.items()):
        table.add_row(key, str(value))
    console.print(table)
