"""Schema-constrained enrichment over an LLM provider."""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from vocab_anki_sync.domain.interfaces.enrichment_client import (
    IEnrichmentClient,
    RecordT,
)
from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import SchemaViolation
from vocab_anki_sync.providers.base import BaseLLMProvider
from vocab_anki_sync.utils.logging import get_logger

from .prompts import build_system_prompt, build_user_prompt

logger = get_logger(__name__)


class EnrichmentClient(IEnrichmentClient):
    """Sends one enrichment request per call and validates the structure.

    Transient provider errors propagate unchanged so the caller can retry
    them. Output that is not valid JSON or does not fit the schema raises
    ``SchemaViolation``.
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        model: str,
        temperature: float = 0.2,
        target_language: str = "Portuguese",
        native_language: str = "English",
    ):
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.target_language = target_language
        self.native_language = native_language

    def enrich(
        self,
        raw_input: str,
        schema: type[RecordT],
        examples: list[RecordT],
        *,
        instructions: str = "",
        params: Mapping[str, Any] | None = None,
    ) -> RecordT:
        system = build_system_prompt(
            instructions, self.target_language, self.native_language
        )
        prompt = build_user_prompt(raw_input, examples, params)

        data = self.provider.generate_json(
            model=self.model,
            prompt=prompt,
            system=system,
            temperature=self.temperature,
            json_schema=schema.model_json_schema(),
        )

        try:
            record = schema.model_validate(data)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            logger.warning(
                "enrichment_schema_violation",
                schema=schema.__name__,
                errors=errors,
            )
            msg = f"Model output does not match {schema.__name__}"
            raise SchemaViolation(
                msg,
                errors=errors,
                error_code=ErrorCode.ENR_SCHEMA_INVALID.value,
            ) from e

        logger.debug("enrichment_record_parsed", schema=schema.__name__)
        return record

    def check_connection(self) -> bool:
        return self.provider.check_connection()

    def close(self) -> None:
        self.provider.close()
