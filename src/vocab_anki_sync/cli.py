"""Command-line interface for the vocabulary pipeline."""

from __future__ import annotations

import typer

from .cli_commands import queue_commands, review_commands, sync_commands

app = typer.Typer(
    name="vocab-anki-sync",
    help="Enrich vocabulary with an LLM, review it, and sync it to Anki.",
    no_args_is_help=True,
)

queue_commands.register(app)
review_commands.register(app)
sync_commands.register(app)


def cli() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
