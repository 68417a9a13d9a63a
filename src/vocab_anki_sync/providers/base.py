"""Base LLM provider interface."""

import json
from abc import ABC, abstractmethod
from typing import Any, cast

from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import SchemaViolation
from vocab_anki_sync.utils.logging import get_logger

logger = get_logger(__name__)


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers.

    This interface defines the contract that all LLM providers must implement,
    allowing for switching between providers (OpenAI, OpenRouter, LM Studio,
    Ollama) while keeping the same behaviour. A provider call is exactly one
    HTTP round trip; failures surface as typed ``ProviderError`` subclasses.
    """

    def __init__(self, **kwargs: Any):
        """Initialize the provider with configuration parameters.

        Args:
            **kwargs: Provider-specific configuration options
        """
        self.config = kwargs
        logger.debug(
            "provider_initialized",
            provider=self.__class__.__name__,
            config=self._safe_config_for_logging(),
        )

    def _safe_config_for_logging(self) -> dict[str, Any]:
        """Return config with sensitive data redacted for logging.

        Returns:
            Config dictionary with API keys and tokens redacted
        """
        safe_config = self.config.copy()
        for key in ["api_key", "token", "password"]:
            if safe_config.get(key):
                safe_config[key] = "***REDACTED***"
        return safe_config

    @abstractmethod
    def generate(
        self,
        model: str,
        prompt: str,
        system: str = "",
        temperature: float = 0.7,
        format: str = "",
        json_schema: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Generate a completion from the LLM.

        Args:
            model: Model identifier (e.g., "qwen3:8b", "gpt-4o-mini")
            prompt: User prompt/question
            system: System prompt (optional)
            temperature: Sampling temperature
            format: Response format ("json" for structured output)
            json_schema: JSON schema for structured output

        Returns:
            Response dictionary with at least a 'response' key containing the text.

        Raises:
            ProviderError: Typed subclass describing the failure
        """

    def generate_json(
        self,
        model: str,
        prompt: str,
        system: str = "",
        temperature: float = 0.7,
        json_schema: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Generate a JSON object from the LLM.

        Calls generate() with format="json" and parses the response text.

        Args:
            model: Model identifier
            prompt: User prompt
            system: System prompt (optional)
            temperature: Sampling temperature
            json_schema: JSON schema the output must follow

        Returns:
            Parsed JSON response as a dictionary

        Raises:
            SchemaViolation: If the response is not a non-empty JSON object
        """
        result = self.generate(
            model=model,
            prompt=prompt,
            system=system,
            temperature=temperature,
            format="json",
            json_schema=json_schema,
        )

        response_text = result.get("response") or ""
        try:
            parsed = json.loads(response_text)
        except json.JSONDecodeError as e:
            logger.error(
                "json_parse_error",
                provider=self.__class__.__name__,
                error=str(e),
                response_text=response_text[:500],
            )
            msg = f"{self.get_provider_name()} returned invalid JSON: {e}"
            raise SchemaViolation(
                msg, errors=[str(e)], error_code=ErrorCode.ENR_SCHEMA_INVALID.value
            ) from e

        if not isinstance(parsed, dict) or not parsed:
            logger.error(
                "empty_json_response",
                provider=self.__class__.__name__,
                response_text=response_text[:500],
            )
            msg = f"{self.get_provider_name()} returned no JSON object: {response_text[:200]}"
            raise SchemaViolation(msg, error_code=ErrorCode.ENR_SCHEMA_INVALID.value)

        return cast("dict[str, Any]", parsed)

    @abstractmethod
    def check_connection(self) -> bool:
        """Check if the provider is accessible and healthy.

        Returns:
            True if the provider is accessible, False otherwise
        """

    @abstractmethod
    def list_models(self) -> list[str]:
        """List available models from the provider.

        Returns:
            List of model identifiers/names
        """

    def close(self) -> None:
        """Release HTTP resources. Providers without any override nothing."""

    def get_provider_name(self) -> str:
        """Get the human-readable name of this provider.

        Returns:
            Provider name (e.g., "Ollama", "OpenAI")
        """
        return self.__class__.__name__.replace("Provider", "")

    def __repr__(self) -> str:
        """String representation of the provider."""
        return f"{self.__class__.__name__}(config={self._safe_config_for_logging()})"
