"""
Root Typer application for the breakwater CLI.

Heavy imports (psycopg2, the execution layer) happen inside commands so
``breakwater --help`` stays fast.
"""

from __future__ import annotations

import typer
from typer import Typer

from breakwater.cli.utils import err_console, resolve_settings
from breakwater.core.logging import configure_logging, get_logger, resolve_json_format

logger = get_logger(__name__)

app = Typer(
    name="breakwater",
    help="breakwater: gated, deadline-bounded database bootstrap.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from breakwater import __version__

        typer.echo(f"breakwater {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """breakwater CLI: connect to a database that may still be starting up."""


# ── connect ──────────────────────────────────────────────────────────────


@app.command()
def connect(
    database_url: str | None = typer.Option(None, "--database-url", "-d", help="libpq URL or DSN"),
    threshold: int | None = typer.Option(None, "--threshold", help="Failures before cooling down"),
    poll_interval: float | None = typer.Option(None, "--poll-interval", help="Seconds between retries"),
    deadline: float | None = typer.Option(None, "--deadline", help="Retry budget in seconds"),
    attempt_timeout: float | None = typer.Option(
        None, "--attempt-timeout", help="Per-attempt timeout in seconds"
    ),
    skip_setup: bool = typer.Option(False, "--skip-setup", help="Connect only; run no setup statements"),
    log_level: str | None = typer.Option(None, "--log-level"),
    log_format: str | None = typer.Option(None, "--log-format", help="auto, json or console"),
) -> None:
    """Bootstrap a database connection, then run the setup transaction."""
    from breakwater.core.connection import connect_datastore, parse_target, redact_target
    from breakwater.core.errors import ConfigError, DeadlineExceededError
    from breakwater.execution.bootstrap import BootstrapOrchestrator
    from breakwater.execution.gate import FailureGate
    from breakwater.ops.transaction import TransactionRunner

    settings = resolve_settings(
        database_url=database_url,
        failure_threshold=threshold,
        poll_interval_seconds=poll_interval,
        deadline_seconds=deadline,
        attempt_timeout_seconds=attempt_timeout,
        log_level=log_level,
        log_format=log_format,
    )
    configure_logging(
        level=settings.log_level,
        json_format=resolve_json_format(settings.log_format),
    )

    target = settings.database_url
    try:
        parse_target(target)
    except ConfigError as e:
        logger.critical("invalid_database_url", target=redact_target(target), error=e.message)
        err_console.print(f"[bold red]Error[/bold red]: {e.message}")
        raise typer.Exit(code=1) from e

    gate = FailureGate(connect_datastore, settings.failure_threshold)
    orchestrator = BootstrapOrchestrator(
        gate,
        poll_interval=settings.poll_interval_seconds,
        deadline=settings.deadline_seconds,
        attempt_timeout=settings.attempt_timeout_seconds,
    )

    try:
        store = orchestrator.bootstrap(target)
    except DeadlineExceededError as e:
        logger.critical("database_connectivity_not_acquired", error=str(e), attempts=e.attempts)
        raise typer.Exit(code=1) from e

    logger.info("database_connected", info=repr(store.info))
    try:
        if skip_setup:
            return
        result = TransactionRunner(settings.setup_statements).run(store)
        elapsed_ms = round(result.elapsed_ms, 2)
        if result.error is None:
            logger.info("setup_completed", statements=result.data, elapsed_ms=elapsed_ms)
            return
        if result.error.code == "COMMIT_FAILED":
            logger.critical("setup_commit_fatal", error=result.error.message, elapsed_ms=elapsed_ms)
            raise typer.Exit(code=1)
        logger.error(
            "setup_failed",
            code=result.error.code,
            error=result.error.message,
            elapsed_ms=elapsed_ms,
            **result.error.details,
        )
    finally:
        store.close()


# ── Sub-command registration ─────────────────────────────────────────────

from breakwater.cli.config import app as config_app  # noqa: E402

app.add_typer(config_app, name="config", help="Configuration inspection.")
