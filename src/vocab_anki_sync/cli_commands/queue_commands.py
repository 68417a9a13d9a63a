"""Queue CLI commands: enqueue, process, retry, recover, status, items."""

from __future__ import annotations

import time
from typing import Annotated

import typer
from rich.table import Table

from vocab_anki_sync.domain.entities.queue_item import EnrichmentStatus, ReviewStatus
from vocab_anki_sync.exceptions import VocabSyncError
from vocab_anki_sync.models.data import ProcessOutcome
from vocab_anki_sync.utils.cancellation import CancellationToken

from .shared import (
    ConfigOption,
    LogLevelOption,
    VerboseOption,
    console,
    fail,
    get_config_and_logger,
    open_pipeline,
    parse_assignments,
)


def _print_outcomes(outcomes: list[ProcessOutcome]) -> None:
    table = Table(title="Enrichment", show_header=True, header_style="bold magenta")
    table.add_column("Item", style="cyan")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Notes / Error")

    for outcome in outcomes:
        if outcome.succeeded:
            status = "[green]completed[/green]"
            detail = ", ".join(str(note_id) for note_id in outcome.note_ids)
        else:
            status = "[red]failed[/red]"
            detail = outcome.error or ""
        table.add_row(str(outcome.item_id), status, str(outcome.attempts), detail)

    console.print(table)


def register(app: typer.Typer) -> None:
    """Register queue commands on the given Typer app."""

    @app.command()
    def enqueue(
        content: Annotated[str, typer.Argument(help="Word or phrase to enrich")],
        source: Annotated[
            str, typer.Option("--source", "-s", help="Where the item came from")
        ] = "cli",
        action: Annotated[
            str | None,
            typer.Option(
                "--action", "-a", help="Enrichment action (enrich_word, split_phrase)"
            ),
        ] = None,
        param: Annotated[
            list[str] | None,
            typer.Option("--param", "-p", help="Extra enrichment parameter key=value"),
        ] = None,
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Add a word or phrase to the enrichment queue."""
        config, logger = get_config_and_logger(config_path, log_level)
        params: dict[str, object] = dict(parse_assignments(param or [], "--param"))
        if action:
            params["action"] = action

        try:
            with open_pipeline(config) as pipeline:
                item = pipeline.enqueue(content, source=source, params=params)
        except VocabSyncError as e:
            fail(logger, "enqueue_failed", e)

        console.print(f"[green]Enqueued item {item.id}[/green]: {item.raw_content}")

    @app.command()
    def process(
        item_id: Annotated[
            int | None,
            typer.Option("--item", "-i", help="Process one specific item"),
        ] = None,
        process_all: Annotated[
            bool, typer.Option("--all", help="Process every pending item")
        ] = False,
        workers: Annotated[
            int | None,
            typer.Option("--workers", "-w", help="Worker threads for --all", min=1),
        ] = None,
        limit: Annotated[
            int | None,
            typer.Option("--limit", help="Maximum number of items for --all", min=1),
        ] = None,
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
        verbose: VerboseOption = False,
    ) -> None:
        """Enrich pending queue items into draft notes."""
        start_time = time.time()
        config, logger = get_config_and_logger(config_path, log_level, verbose=verbose)
        logger.info(
            "cli_command_started",
            command="process",
            item_id=item_id,
            process_all=process_all,
        )

        token = CancellationToken()
        token.install_signal_handlers()
        try:
            with open_pipeline(config, token) as pipeline:
                if item_id is not None:
                    outcomes = [pipeline.process_item(item_id)]
                elif process_all:
                    outcomes = pipeline.process_pending(max_workers=workers, limit=limit)
                else:
                    outcome = pipeline.process_next()
                    outcomes = [outcome] if outcome else []
        except VocabSyncError as e:
            fail(logger, "process_failed", e)
        finally:
            token.restore_signal_handlers()

        outcomes = [o for o in outcomes if o.status != "lease_denied"]
        if not outcomes:
            console.print("[yellow]Nothing to process[/yellow]")
            return

        _print_outcomes(outcomes)
        failed = [o for o in outcomes if not o.succeeded]
        logger.info(
            "cli_command_completed",
            command="process",
            duration=round(time.time() - start_time, 2),
            processed=len(outcomes),
            failed=len(failed),
        )
        if failed:
            raise typer.Exit(code=1)

    @app.command()
    def retry(
        item_id: Annotated[int, typer.Argument(help="Failed queue item id")],
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Return a failed item to the queue."""
        config, logger = get_config_and_logger(config_path, log_level)
        try:
            with open_pipeline(config) as pipeline:
                pipeline.retry(item_id)
        except VocabSyncError as e:
            fail(logger, "retry_failed", e)
        console.print(f"[green]Item {item_id} is pending again[/green]")

    @app.command()
    def recover(
        older_than: Annotated[
            int | None,
            typer.Option(
                "--older-than",
                help="Minutes after which a processing item counts as abandoned",
                min=1,
            ),
        ] = None,
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Release items stuck in processing after a crash."""
        config, logger = get_config_and_logger(config_path, log_level)
        try:
            with open_pipeline(config) as pipeline:
                released = pipeline.recover_stale(older_than)
        except VocabSyncError as e:
            fail(logger, "recover_failed", e)

        if released:
            ids = ", ".join(str(item_id) for item_id in released)
            console.print(f"[green]Released {len(released)} item(s):[/green] {ids}")
        else:
            console.print("No stale items")

    @app.command()
    def status(
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Show queue and note counts."""
        config, logger = get_config_and_logger(config_path, log_level)
        try:
            with open_pipeline(config) as pipeline:
                counts = pipeline.status()
        except VocabSyncError as e:
            fail(logger, "status_failed", e)

        table = Table(title="Status", show_header=True, header_style="bold magenta")
        table.add_column("Group", style="cyan")
        table.add_column("State")
        table.add_column("Count", justify="right", style="green")
        groups = [
            ("enrichment", [s.value for s in EnrichmentStatus]),
            ("review", [s.value for s in ReviewStatus]),
            ("notes", ["draft", "permanent", "synced", "pending_delete"]),
        ]
        for group, states in groups:
            for state in states:
                table.add_row(group, state, str(counts.get(f"{group}.{state}", 0)))
        console.print(table)

    @app.command()
    def items(
        enrichment: Annotated[
            EnrichmentStatus | None,
            typer.Option("--enrichment", help="Filter by enrichment status"),
        ] = None,
        review: Annotated[
            ReviewStatus | None,
            typer.Option("--review", help="Filter by review status"),
        ] = None,
        limit: Annotated[int, typer.Option("--limit", min=1)] = 50,
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """List queue items with their drafts."""
        config, logger = get_config_and_logger(config_path, log_level)
        try:
            with open_pipeline(config) as pipeline:
                rows = [
                    (item, pipeline.item_notes(item.id or 0))
                    for item in pipeline.list_items(enrichment, review, limit)
                ]
        except VocabSyncError as e:
            fail(logger, "items_failed", e)

        table = Table(title="Queue", show_header=True, header_style="bold magenta")
        table.add_column("Item", style="cyan")
        table.add_column("Content")
        table.add_column("Enrichment")
        table.add_column("Review")
        table.add_column("Notes")
        for item, notes in rows:
            table.add_row(
                str(item.id),
                item.raw_content,
                item.enrichment_status.value,
                item.review_status.value,
                "; ".join(f"{n.id}: {n.content} = {n.translation}" for n in notes)
                or (item.last_error or ""),
            )
        console.print(table)
