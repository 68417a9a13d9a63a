"""Provider factory for creating LLM provider instances."""

from typing import Any

from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import ConfigurationError, ProviderError
from vocab_anki_sync.utils.logging import get_logger

from .base import BaseLLMProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider

logger = get_logger(__name__)

DEFAULT_BASE_URLS = {
    "openai": OpenAIProvider.DEFAULT_BASE_URL,
    "openrouter": "https://openrouter.ai/api/v1",
    "lm_studio": "http://localhost:1234/v1",
    "ollama": OllamaProvider.DEFAULT_BASE_URL,
}


class ProviderFactory:
    """Factory for creating LLM provider instances.

    OpenAI, OpenRouter and LM Studio share the OpenAI-compatible provider;
    Ollama has its own.
    """

    PROVIDER_MAP: dict[str, type[BaseLLMProvider]] = {
        "openai": OpenAIProvider,
        "openrouter": OpenAIProvider,
        "lm_studio": OpenAIProvider,
        "lmstudio": OpenAIProvider,  # Alias
        "ollama": OllamaProvider,
    }

    @classmethod
    def create_provider(cls, provider_type: str, **kwargs: Any) -> BaseLLMProvider:
        """Create a provider instance based on type.

        Args:
            provider_type: Provider type ("openai", "openrouter", "lm_studio", "ollama")
            **kwargs: Provider-specific configuration parameters

        Returns:
            Initialized provider instance

        Raises:
            ConfigurationError: If provider_type is not supported

        Examples:
            >>> provider = ProviderFactory.create_provider(
            ...     "ollama",
            ...     base_url="http://localhost:11434"
            ... )
        """
        provider_type_lower = provider_type.lower()

        if provider_type_lower not in cls.PROVIDER_MAP:
            available = ", ".join(sorted(cls.PROVIDER_MAP.keys()))
            msg = (
                f"Unsupported provider type: {provider_type}. "
                f"Available providers: {available}"
            )
            raise ConfigurationError(msg, error_code=ErrorCode.CFG_INVALID.value)

        provider_class = cls.PROVIDER_MAP[provider_type_lower]
        if provider_class is OpenAIProvider:
            kwargs.setdefault("provider_name", provider_type_lower)

        logger.debug(
            "creating_provider",
            provider_type=provider_type,
            provider_class=provider_class.__name__,
        )
        return provider_class(**kwargs)

    @classmethod
    def create_from_config(
        cls, config: Any, verify_connectivity: bool = False
    ) -> BaseLLMProvider:
        """Create a provider instance from a Config object.

        Args:
            config: Configuration object with provider settings
            verify_connectivity: If True, verify provider connectivity after creation

        Returns:
            Initialized provider instance

        Raises:
            ConfigurationError: If provider configuration is invalid
            ProviderError: If verify_connectivity=True and provider is unreachable
        """
        provider_type = config.llm_provider.lower()
        kwargs: dict[str, Any] = {
            "base_url": config.llm_base_url or DEFAULT_BASE_URLS.get(provider_type, ""),
            "api_key": config.llm_api_key,
            "timeout": config.llm_timeout,
        }
        if provider_type == "openrouter":
            kwargs["extra_headers"] = {"X-Title": "vocab-anki-sync"}

        provider = cls.create_provider(provider_type, **kwargs)

        if verify_connectivity and not provider.check_connection():
            msg = f"Provider {provider_type} connectivity check failed"
            raise ProviderError(
                msg,
                suggestion=(
                    f"Verify {provider_type} is reachable at {kwargs['base_url']} "
                    "and the API key is valid"
                ),
                error_code=ErrorCode.ENR_CONNECTION.value,
            )

        return provider

    @classmethod
    def list_supported_providers(cls) -> list[str]:
        """List all supported provider types."""
        return sorted(cls.PROVIDER_MAP.keys())
