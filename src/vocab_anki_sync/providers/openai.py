"""OpenAI-compatible provider (OpenAI, OpenRouter, LM Studio)."""

import contextlib
import time
from types import TracebackType
from typing import Any, Literal

import httpx

from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import SchemaViolation
from vocab_anki_sync.utils.logging import get_logger

from .base import BaseLLMProvider
from .retry_utils import classify_http_error

logger = get_logger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """Provider for the OpenAI chat completions API and compatible servers.

    OpenRouter and LM Studio expose the same ``/chat/completions`` endpoint,
    so they are served by this class with a different base URL.

    Configuration:
        api_key: API key (optional for LM Studio)
        base_url: API endpoint URL (default: https://api.openai.com/v1)
        timeout: Request timeout in seconds (default: 60.0)
    """

    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        provider_name: str = "openai",
        extra_headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        **kwargs: Any,
    ):
        """Initialize provider.

        Args:
            api_key: Bearer token sent with every request
            base_url: Base URL of the OpenAI-compatible API
            timeout: Request timeout in seconds
            provider_name: Name used in logs and error messages
            extra_headers: Additional headers (e.g. OpenRouter attribution)
            transport: Optional httpx transport (used by tests)
            **kwargs: Additional configuration options
        """
        super().__init__(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            provider_name=provider_name,
            **kwargs,
        )

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.provider_name = provider_name

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if extra_headers:
            headers.update(extra_headers)

        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            headers=headers,
            transport=transport,
        )

        logger.debug(
            "openai_provider_initialized",
            provider=provider_name,
            base_url=self.base_url,
            timeout=timeout,
        )

    def get_provider_name(self) -> str:
        return self.provider_name

    def close(self) -> None:
        """Close HTTP client."""
        if hasattr(self, "client"):
            self.client.close()

    def __enter__(self) -> "OpenAIProvider":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        self.close()
        return False

    def __del__(self) -> None:
        """Clean up client resources."""
        with contextlib.suppress(Exception):
            self.close()

    def check_connection(self) -> bool:
        """Check if the API is accessible.

        Returns:
            True if the models endpoint answers 200, False otherwise
        """
        try:
            response = self.client.get(f"{self.base_url}/models")
        except httpx.HTTPError as e:
            logger.warning(
                "openai_connection_check_failed",
                provider=self.provider_name,
                base_url=self.base_url,
                error=str(e),
            )
            return False
        return response.status_code == 200

    def list_models(self) -> list[str]:
        """List available models.

        Returns:
            List of model IDs
        """
        try:
            response = self.client.get(f"{self.base_url}/models")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise classify_http_error(e, self.provider_name) from e
        return [model["id"] for model in response.json().get("data", [])]

    def generate(
        self,
        model: str,
        prompt: str,
        system: str = "",
        temperature: float = 0.7,
        format: str = "",
        json_schema: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Generate a chat completion.

        Args:
            model: Model name
            prompt: User prompt
            system: System prompt (optional)
            temperature: Sampling temperature (0.0-2.0)
            format: Response format ("json" for JSON mode)
            json_schema: JSON schema for structured output

        Returns:
            Response dictionary with 'response' and token usage info

        Raises:
            ProviderError: Typed subclass describing the failure
        """
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }

        if json_schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": json_schema.get("title", "response"),
                    "schema": json_schema,
                },
            }
        elif format == "json":
            payload["response_format"] = {"type": "json_object"}

        request_start_time = time.time()
        logger.debug(
            "openai_generate_request",
            provider=self.provider_name,
            model=model,
            prompt_length=len(prompt),
            system_length=len(system),
            structured=json_schema is not None,
        )

        try:
            response = self.client.post(f"{self.base_url}/chat/completions", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "openai_generate_failed",
                provider=self.provider_name,
                model=model,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise classify_http_error(e, self.provider_name) from e

        try:
            data = response.json()
            first_choice = data["choices"][0]
            response_text = first_choice.get("message", {}).get("content") or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(
                "openai_parse_error",
                provider=self.provider_name,
                error=str(e),
                response_data=response.text[:500],
            )
            msg = f"Failed to parse {self.provider_name} response: {e}"
            raise SchemaViolation(
                msg, errors=[str(e)], error_code=ErrorCode.ENR_SCHEMA_INVALID.value
            ) from e

        usage = data.get("usage") or {}
        logger.debug(
            "openai_generate_success",
            provider=self.provider_name,
            model=model,
            response_length=len(response_text),
            request_duration=round(time.time() - request_start_time, 2),
            total_tokens=usage.get("total_tokens", 0),
        )

        return {
            "response": response_text,
            "model": data.get("model", model),
            "finish_reason": first_choice.get("finish_reason", "stop"),
            "_token_usage": {
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
                "total_tokens": usage.get("total_tokens", 0),
            },
        }
