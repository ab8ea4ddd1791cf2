"""supabase-mcp entry point and command registration."""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING, Annotated

import sentry_sdk
import typer

from supabase_mcp.__about__ import __version__
from supabase_mcp.cli.output import OutputFormat, get_formatter, write_output
from supabase_mcp.core.client import create_database_client
from supabase_mcp.core.config import DATABASE_TOOLS, load_settings
from supabase_mcp.core.exceptions import ConfigError, InputError, SupabaseMcpError
from supabase_mcp.core.exit_codes import ExitCode
from supabase_mcp.core.logging import get_logger, setup_logging
from supabase_mcp.core.models import QueryResult
from supabase_mcp.core.monitoring import setup_sentry
from supabase_mcp.core.query_source import resolve_query_source

if TYPE_CHECKING:
    from supabase_mcp.core.config import Settings

app = typer.Typer(
    help="supabase-mcp - MCP server for Supabase Postgres and Storage",
    invoke_without_command=True,
)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"supabase-mcp {__version__}")
        raise typer.Exit()


def _load(ctx: typer.Context) -> Settings:
    """Load settings once per invocation and finish ambient setup."""
    try:
        settings = load_settings()
    except ConfigError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e

    setup_logging(ctx.obj.get("verbose", False) or settings.verbose)
    setup_sentry(settings)
    return settings


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable verbose logging"),
    ] = False,
) -> None:
    """Run the MCP server (default) or inspect the configured tools."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        serve(ctx)


@app.command("serve")
def serve(ctx: typer.Context) -> None:
    """Serve the enabled tools over stdio."""
    from supabase_mcp.server.app import run_server

    settings = _load(ctx)
    log = get_logger("cli")
    try:
        asyncio.run(run_server(settings))
    except ConfigError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e
    except KeyboardInterrupt:
        log.info("interrupted")
        raise typer.Exit(130) from None


@app.command("tools")
def tools_command(
    ctx: typer.Context,
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format: markdown|json|table"),
    ] = OutputFormat.TABLE,
) -> None:
    """List the tools enabled by the current configuration."""
    from supabase_mcp.server.registry import build_registry

    settings = _load(ctx)
    registry = build_registry(settings)
    rows = [
        {
            "name": tool.name,
            "group": "database" if tool.name in DATABASE_TOOLS else "storage",
            "description": tool.description,
        }
        for tool in registry.tool_definitions()
    ]
    write_output(get_formatter(output_format, width=80), QueryResult(rows=rows))


@app.command("query")
def query_command(
    ctx: typer.Context,
    file: Annotated[
        str | None,
        typer.Argument(help="SQL file to execute"),
    ] = None,
    execute: Annotated[
        str | None,
        typer.Option("--execute", "-e", help="Execute inline SQL query"),
    ] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format: markdown|json|table"),
    ] = OutputFormat.MARKDOWN,
) -> None:
    """Execute a SQL query from file, inline (-e), or stdin."""
    try:
        is_tty = sys.stdin.isatty()
    except (ValueError, AttributeError):
        is_tty = False
    if execute is None and file is None and is_tty:
        typer.echo(ctx.get_help())
        raise typer.Exit()

    try:
        sql = resolve_query_source(inline=execute, file_path=file)
    except InputError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(ExitCode.INPUT_ERROR) from exc

    settings = _load(ctx)
    try:
        client = create_database_client(settings)
        result = asyncio.run(client.query(sql))
    except SupabaseMcpError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(e.exit_code) from e

    write_output(get_formatter(output_format), result)


def run() -> None:
    """Entry point with global error handling."""
    try:
        app()
    except SupabaseMcpError as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e.message}", err=True)
        raise SystemExit(e.exit_code) from None
    except SystemExit:
        raise
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except Exception as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e}", err=True)
        raise SystemExit(ExitCode.GENERAL_ERROR) from None
