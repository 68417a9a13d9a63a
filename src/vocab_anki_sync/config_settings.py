"""Settings model for the pipeline (split from config.py)."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .config_models import RetryConfig
from .error_codes import ErrorCode
from .exceptions import ConfigurationError

LLMProviderName = Literal["openai", "openrouter", "lm_studio", "ollama"]


class Config(BaseSettings):
    """Pipeline configuration using pydantic-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    # Anki settings
    anki_connect_url: str = Field(
        default="http://127.0.0.1:8765", description="AnkiConnect URL"
    )
    anki_connect_api_key: str | None = Field(
        default=None, description="Optional AnkiConnect API key"
    )
    anki_connect_timeout: float = Field(
        default=30.0, gt=0, description="AnkiConnect request timeout in seconds"
    )
    anki_deck_name: str = Field(default="Vocabulary", description="Anki deck name")
    anki_note_type: str = Field(
        default="Vocabulary (vocab-anki-sync)", description="Anki note type"
    )
    anki_tags: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["vocab-anki-sync"],
        description="Tags added to every note created in Anki",
    )

    # LLM settings
    llm_provider: LLMProviderName = Field(default="openai", description="LLM provider")
    llm_model: str = Field(default="gpt-4o-mini", description="Model identifier")
    llm_base_url: str | None = Field(
        default=None, description="Override the provider base URL"
    )
    llm_api_key: str | None = Field(default=None, description="LLM provider API key")
    llm_timeout: float = Field(
        default=60.0, gt=0, description="LLM request timeout in seconds"
    )
    llm_temperature: float = Field(default=0.2, ge=0.0, le=2.0)

    # Enrichment settings
    target_language: str = Field(
        default="Portuguese", description="Language of the ingested vocabulary"
    )
    native_language: str = Field(
        default="English", description="Language used for translations"
    )
    default_action: str = Field(
        default="enrich_word", description="Enrichment action when none is given"
    )
    enrichment_retry: RetryConfig = Field(default_factory=RetryConfig)

    # Worker settings
    max_workers: int = Field(default=4, ge=1, le=32)
    stale_processing_minutes: int = Field(
        default=30,
        ge=1,
        description="Items processing longer than this are returned to pending",
    )

    # Storage
    db_path: Path = Field(
        default=Path("vocab_state.db"), description="Path to the SQLite state database"
    )
    sync_result_ttl_seconds: int = Field(
        default=3600, ge=1, description="How long sync reports are kept"
    )
    sync_lock_ttl_seconds: int = Field(
        default=600, ge=1, description="Expiry of an abandoned sync lease"
    )
    attachments_dir: Path | None = Field(
        default=None, description="Directory holding note audio files"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_dir: Path = Field(default=Path("logs"), description="Directory for log files")

    @field_validator("db_path", "log_dir", "attachments_dir", mode="before")
    @classmethod
    def parse_path(cls, v: Any) -> Path | None:
        """Convert string to Path."""
        if v is None:
            return None
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v
        msg = f"Path field must be string or Path, got {type(v).__name__}"
        raise ValueError(msg)

    @field_validator("anki_tags", mode="before")
    @classmethod
    def parse_tags(cls, v: Any) -> list[str]:
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            return [tag.strip() for tag in v.split(",") if tag.strip()]
        return v  # type: ignore[no-any-return]

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL"}:
            msg = f"Invalid log level: {v}"
            raise ValueError(msg)
        return level

    def validate_config(self) -> None:
        """Cross-field checks that pydantic field validators cannot express.

        Raises:
            ConfigurationError: If the configuration is inconsistent
        """
        if not self.anki_connect_url.startswith(("http://", "https://")):
            msg = f"Invalid AnkiConnect URL: {self.anki_connect_url}"
            raise ConfigurationError(
                msg,
                suggestion="Use a full URL such as http://127.0.0.1:8765",
                error_code=ErrorCode.CFG_INVALID.value,
            )
        if not self.anki_deck_name.strip():
            msg = "anki_deck_name must not be empty"
            raise ConfigurationError(msg, error_code=ErrorCode.CFG_INVALID.value)
        if self.llm_provider in {"openai", "openrouter"} and not self.llm_api_key:
            msg = f"llm_api_key is required for provider '{self.llm_provider}'"
            raise ConfigurationError(
                msg,
                suggestion="Set LLM_API_KEY in the environment or .env file",
                error_code=ErrorCode.CFG_INVALID.value,
            )
