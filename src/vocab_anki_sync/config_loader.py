"""Config loader utilities (split from config.py)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config_settings import Config
from .error_codes import ErrorCode
from .exceptions import ConfigurationError
from .utils.logging import get_logger

CONFIG_ENV_VAR = "VOCAB_ANKI_CONFIG"

_config: Config | None = None


def _candidate_paths(config_path: Path | None) -> list[Path]:
    if config_path:
        return [config_path.expanduser()]
    candidates: list[Path] = []
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser())
    candidates.append(Path.cwd() / "config.yaml")
    return candidates


def load_config(config_path: Path | None = None, *, validate: bool = True) -> Config:
    """Load configuration from config.yaml, .env and the environment.

    Values from the YAML file are passed as init arguments, so environment
    variables only fill in what the file leaves unset.

    Raises:
        ConfigurationError: If the file cannot be parsed or values are invalid
    """
    logger = get_logger(__name__)

    resolved: Path | None = None
    for candidate in _candidate_paths(config_path):
        if candidate.exists():
            resolved = candidate
            break

    yaml_data: dict[str, Any] = {}
    if resolved is not None:
        try:
            with open(resolved, encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            msg = f"Failed to parse config file: {resolved}"
            raise ConfigurationError(
                msg,
                suggestion=f"Check YAML syntax. Original error: {e}",
                error_code=ErrorCode.CFG_PARSE.value,
            ) from e
        if not isinstance(yaml_data, dict):
            msg = f"Config file must contain a mapping: {resolved}"
            raise ConfigurationError(msg, error_code=ErrorCode.CFG_PARSE.value)
        logger.debug("config_file_found", config_path=str(resolved))
    elif config_path is not None:
        msg = f"Config file not found: {config_path}"
        raise ConfigurationError(msg, error_code=ErrorCode.CFG_PARSE.value)

    try:
        config = Config(**yaml_data)
    except ValidationError as e:
        msg = f"Invalid configuration: {e.error_count()} error(s)"
        raise ConfigurationError(
            msg,
            suggestion=str(e),
            error_code=ErrorCode.CFG_INVALID.value,
        ) from e

    if validate:
        config.validate_config()

    logger.debug(
        "config_loaded",
        config_path=str(resolved) if resolved else None,
        llm_provider=config.llm_provider,
        deck=config.anki_deck_name,
    )
    return config


def get_config() -> Config:
    """Get singleton config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Config) -> None:
    """Set singleton config instance (for testing)."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset global config instance (for testing only)."""
    global _config
    _config = None
