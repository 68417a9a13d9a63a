"""Review CLI commands: accept, reject, edit, delete, sync toggling."""

from __future__ import annotations

from typing import Annotated

import typer

from vocab_anki_sync.exceptions import VocabSyncError

from .shared import (
    ConfigOption,
    LogLevelOption,
    console,
    fail,
    get_config_and_logger,
    open_pipeline,
    parse_assignments,
)


def register(app: typer.Typer) -> None:
    """Register review commands on the given Typer app."""

    @app.command()
    def accept(
        item_id: Annotated[int, typer.Argument(help="Queue item id")],
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Accept an item's drafts as permanent notes."""
        config, logger = get_config_and_logger(config_path, log_level)
        try:
            with open_pipeline(config) as pipeline:
                pipeline.accept(item_id)
                notes = pipeline.item_notes(item_id)
        except VocabSyncError as e:
            fail(logger, "accept_failed", e)

        console.print(f"[green]Accepted item {item_id}[/green] ({len(notes)} note(s))")

    @app.command()
    def reject(
        item_id: Annotated[int, typer.Argument(help="Queue item id")],
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Reject an item and discard its drafts."""
        config, logger = get_config_and_logger(config_path, log_level)
        try:
            with open_pipeline(config) as pipeline:
                pipeline.reject(item_id)
        except VocabSyncError as e:
            fail(logger, "reject_failed", e)

        console.print(f"[yellow]Rejected item {item_id}[/yellow]")

    @app.command()
    def edit(
        note_id: Annotated[int, typer.Argument(help="Permanent note id")],
        assignments: Annotated[
            list[str],
            typer.Option("--set", help="Field change, e.g. --set translation=home"),
        ],
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Edit fields of a permanent note."""
        config, logger = get_config_and_logger(config_path, log_level)
        fields = parse_assignments(assignments, "--set")
        try:
            with open_pipeline(config) as pipeline:
                note = pipeline.edit_note(note_id, dict(fields))
        except VocabSyncError as e:
            fail(logger, "edit_failed", e)

        console.print(
            f"[green]Updated note {note.id}[/green]: {note.content} = {note.translation}"
        )

    @app.command()
    def delete(
        note_id: Annotated[int, typer.Argument(help="Permanent note id")],
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Delete a permanent note (from Anki on the next reconcile)."""
        config, logger = get_config_and_logger(config_path, log_level)
        try:
            with open_pipeline(config) as pipeline:
                outcome = pipeline.delete_note(note_id)
        except VocabSyncError as e:
            fail(logger, "delete_failed", e)

        if outcome == "removed":
            console.print(f"[green]Deleted note {note_id}[/green]")
        else:
            console.print(
                f"[yellow]Note {note_id} will be deleted from Anki on the next reconcile[/yellow]"
            )

    @app.command(name="sync-enable")
    def sync_enable(
        note_id: Annotated[int, typer.Argument(help="Permanent note id")],
        enabled: Annotated[
            bool, typer.Option("--on/--off", help="Include the note in reconciliation")
        ] = True,
        config_path: ConfigOption = None,
        log_level: LogLevelOption = "INFO",
    ) -> None:
        """Include or exclude a note from reconciliation."""
        config, logger = get_config_and_logger(config_path, log_level)
        try:
            with open_pipeline(config) as pipeline:
                pipeline.set_sync_enabled(note_id, enabled)
        except VocabSyncError as e:
            fail(logger, "sync_enable_failed", e)

        state = "enabled" if enabled else "disabled"
        console.print(f"Sync {state} for note {note_id}")
