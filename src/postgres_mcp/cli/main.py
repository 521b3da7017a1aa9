"""postgres-mcp entry point and command registration."""

from __future__ import annotations

import asyncio
import atexit
import json
from typing import TYPE_CHECKING, Annotated

import sentry_sdk
import structlog
import typer

from postgres_mcp.__about__ import __version__
from postgres_mcp.core.config import resolve_config
from postgres_mcp.core.database import Database
from postgres_mcp.core.exceptions import PgMcpError
from postgres_mcp.core.exit_codes import ExitCode
from postgres_mcp.core.logging import setup_logging
from postgres_mcp.core.monitoring import setup_sentry
from postgres_mcp.server import serve_stdio

if TYPE_CHECKING:
    from typing import Any

    from postgres_mcp.core.config import ServerConfig

app = typer.Typer(
    help="postgres-mcp - PostgreSQL tools for agents over the Model Context Protocol",
    no_args_is_help=True,
)

DsnOption = Annotated[
    str | None,
    typer.Option(
        "--dsn",
        help="Connection string (default: $DATABASE_URL, then $POSTGRES_URL)",
        show_default=False,
    ),
]


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"postgres-mcp {__version__}")
        raise typer.Exit()


@app.callback()
def main(
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
    """postgres-mcp - PostgreSQL tools for agents over the Model Context Protocol."""
    setup_logging(verbose)
    setup_sentry()
    atexit.register(sentry_sdk.flush, timeout=2)


async def _serve(config: ServerConfig) -> None:
    async with Database(config) as db:
        # Refuse to register any tool against a database we cannot reach.
        await db.ping()
        await serve_stdio(db)


async def _check(config: ServerConfig) -> dict[str, Any]:
    async with Database(config) as db:
        await db.ping()
        return await db.server_info()


@app.command("serve")
def serve_command(
    dsn: DsnOption = None,
    pool_min_size: Annotated[
        int | None,
        typer.Option("--pool-min-size", help="Connections kept open", min=1),
    ] = None,
    pool_max_size: Annotated[
        int | None,
        typer.Option("--pool-max-size", help="Upper bound on connections", min=1),
    ] = None,
) -> None:
    """Serve the PostgreSQL tools over stdio."""
    config = resolve_config(
        dsn=dsn, pool_min_size=pool_min_size, pool_max_size=pool_max_size
    )
    log = structlog.get_logger()
    log.info("starting", version=__version__, dsn=config.redacted_dsn)
    asyncio.run(_serve(config))


@app.command("check")
def check_command(dsn: DsnOption = None) -> None:
    """Verify connectivity and print server information as JSON."""
    config = resolve_config(dsn=dsn, pool_min_size=1, pool_max_size=1)
    info = asyncio.run(_check(config))
    typer.echo(json.dumps(info, indent=2))


def run() -> None:
    """Entry point with global error handling."""
    try:
        app()
    except PgMcpError as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e.message}", err=True)
        raise SystemExit(e.exit_code) from None
    except SystemExit:
        raise
    except KeyboardInterrupt:
        raise SystemExit(ExitCode.INTERRUPTED) from None
    except Exception as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e}", err=True)
        raise SystemExit(ExitCode.GENERAL_ERROR) from None
