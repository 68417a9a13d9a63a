"""Shared utilities for CLI commands."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.console import Console

from vocab_anki_sync.application.container import build_pipeline
from vocab_anki_sync.application.pipeline import VocabularyPipeline
from vocab_anki_sync.config import Config, load_config, set_config
from vocab_anki_sync.exceptions import VocabSyncError
from vocab_anki_sync.utils.cancellation import CancellationToken
from vocab_anki_sync.utils.logging import configure_logging, get_logger

# Shared console for all commands
console = Console()

# Cached for the lifetime of the CLI process
_config: Config | None = None
_logger: Any | None = None

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to config.yaml", exists=True),
]
LogLevelOption = Annotated[
    str,
    typer.Option("--log-level", help="Log level (DEBUG, INFO, WARN, ERROR)"),
]
VerboseOption = Annotated[
    bool,
    typer.Option(
        "--verbose", "-v", help="Show all log messages on terminal (for debugging)"
    ),
]


def get_config_and_logger(
    config_path: Path | None = None,
    log_level: str = "INFO",
    verbose: bool = False,
) -> tuple[Config, Any]:
    """Load configuration and logger once per process.

    Raises:
        typer.Exit: If the configuration is invalid
    """
    global _config, _logger

    if _config is None:
        try:
            _config = load_config(config_path)
        except VocabSyncError as e:
            console.print(f"[bold red]Configuration error:[/bold red] {e}")
            raise typer.Exit(code=1) from e
        set_config(_config)

        configure_logging(
            log_level or _config.log_level,
            log_dir=_config.log_dir,
            verbose=verbose,
        )
        _logger = get_logger("cli")

    return _config, _logger


@contextmanager
def open_pipeline(
    config: Config, token: CancellationToken | None = None
) -> Iterator[VocabularyPipeline]:
    pipeline = build_pipeline(config, token=token)
    try:
        yield pipeline
    finally:
        pipeline.close()


def fail(logger: Any, event: str, error: VocabSyncError) -> NoReturn:
    """Report a pipeline error and exit with status 1."""
    logger.error(event, error=error.message, details=error.to_dict())
    console.print(f"\n[bold red]Error:[/bold red] {error.message}")
    if error.suggestion:
        console.print(f"  [dim]TIP: {error.suggestion}[/dim]")
    raise typer.Exit(code=1)


def parse_assignments(values: list[str], option: str) -> dict[str, str]:
    """Parse repeated ``key=value`` options.

    Raises:
        typer.BadParameter: If a value has no ``=``
    """
    parsed: dict[str, str] = {}
    for value in values:
        key, sep, rest = value.partition("=")
        if not sep or not key.strip():
            msg = f"Expected key=value, got {value!r}"
            raise typer.BadParameter(msg, param_hint=option)
        parsed[key.strip()] = rest
    return parsed
