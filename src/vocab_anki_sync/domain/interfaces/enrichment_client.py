"""Interface for language-model enrichment."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel

RecordT = TypeVar("RecordT", bound=BaseModel)


class IEnrichmentClient(ABC):
    """Turns a raw word or phrase into a structured record.

    One provider round trip per call. Transient failures are raised as
    ``TransientFailure`` subclasses, malformed output as ``SchemaViolation``.
    Semantic validation is left to the caller.
    """

    @abstractmethod
    def enrich(
        self,
        raw_input: str,
        schema: type[RecordT],
        examples: list[RecordT],
        *,
        instructions: str = "",
        params: Mapping[str, Any] | None = None,
    ) -> RecordT:
        """Enrich raw input into an instance of ``schema``.

        Args:
            raw_input: Word or phrase to enrich
            schema: Pydantic model describing the expected record
            examples: Few-shot instances of ``schema``
            instructions: Action-specific system prompt
            params: Caller supplied hints (level, dialect, ...) passed to
                the model as they are

        Returns:
            Validated record
        """

    @abstractmethod
    def check_connection(self) -> bool:
        """Check whether the enrichment service is reachable."""
