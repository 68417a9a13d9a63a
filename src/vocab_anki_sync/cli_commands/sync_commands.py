"""Sync CLI commands: reconcile, report, check."""

from __future__ import annotations

import json
from typing import Annotated

import typer
from rich.table import Table

from vocab_anki_sync.exceptions import SyncInProgressError, VocabSyncError
from vocab_anki_sync.models.data import SyncResult
from vocab_anki_sync.utils.cancellation import CancellationToken

from .shared import (
    ConfigOption,
    LogLevelOption,
    VerboseOption,
    console,
    fail,
    get_config_and_logger,
    open_pipeline,
)


def print_sync_result(result: SyncResult) -> None:
    table = Table(
        title=f"Reconcile {result.deck_name}",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    for label, value in (
        ("Created", result.created),
        ("Updated", result.updated),
        ("  of which pulled", result.pulled),
        ("Deleted", result.deleted),
        ("Skipped", result.skipped),
        ("Conflicts (local kept)", len(result.conflicts)),
        ("Orphans", len(result.orphans)),
        ("Errors", result.error_count),
    ):
        table.add_row(label, str(value))
    console.print(table)

    for error in result.errors:
        console.print(
            f"  [red]{error.operation}[/red] note {error.note_id}: "
            f"{error.error_type}: {error.message}"
        )
    if result.orphans:
        orphans = ", ".join(str(remote_id) for remote_id in result.orphans)
        console.print(f"  [dim]Notes in Anki with no local note: {orphans}[/dim]")
    if result.cancelled:
        console.print("[yellow]Reconcile was cancelled before finishing[/yellow]")
    console.print(f"[dim]Session: {result.session_id}[/dim]")


def register(app: typer.Typer) -> None:
    """Register sync commands on the given Typer app."""

    @app.command()
    def reconcile(
        deck: Annotated[
            str | None,
            typer.Option("--deck", "-d", help="Deck to reconcile (default from config)"),
        ] = None,
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
        verbose: VerboseOption = False,
    ) -> None:
        """Synchronize permanent notes with Anki."""
        config, logger = get_config_and_logger(config_path, log_level, verbose=verbose)

        token = CancellationToken()
        token.install_signal_handlers()
        try:
            with open_pipeline(config, token) as pipeline:
                result = pipeline.reconcile(deck)
        except SyncInProgressError as e:
            console.print(f"[yellow]{e.message}[/yellow]")
            raise typer.Exit(code=2) from e
        except VocabSyncError as e:
            fail(logger, "reconcile_failed", e)
        finally:
            token.restore_signal_handlers()

        print_sync_result(result)
        if not result.success:
            raise typer.Exit(code=1)

    @app.command()
    def report(
        session_id: Annotated[str, typer.Argument(help="Reconcile session id")],
        as_json: Annotated[bool, typer.Option("--json", help="Print raw JSON")] = False,
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Show a stored reconcile report (each report can be read once)."""
        config, logger = get_config_and_logger(config_path, log_level)
        try:
            with open_pipeline(config) as pipeline:
                result = pipeline.pop_sync_result(session_id)
        except VocabSyncError as e:
            fail(logger, "report_failed", e)

        if result is None:
            console.print(f"[yellow]No report for session {session_id}[/yellow]")
            raise typer.Exit(code=1)
        if as_json:
            console.print_json(json.dumps(result.model_dump(mode="json")))
        else:
            print_sync_result(result)

    @app.command()
    def check(
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Check connectivity to AnkiConnect and the LLM provider."""
        config, logger = get_config_and_logger(config_path, log_level)
        logger.info("check_setup_started")

        with open_pipeline(config) as pipeline:
            results = pipeline.check_connections()

        labels = {
            "anki": f"AnkiConnect ({config.anki_connect_url})",
            "llm": f"LLM provider ({config.llm_provider}, {config.llm_model})",
        }
        for name, passed in results.items():
            icon = "[green]PASS[/green]" if passed else "[red]FAIL[/red]"
            console.print(f"{icon} [bold]{labels[name]}[/bold]")

        if not all(results.values()):
            logger.error("check_setup_failed", results=results)
            raise typer.Exit(code=1)
        logger.info("check_setup_passed")
