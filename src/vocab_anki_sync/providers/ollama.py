"""Ollama provider implementation (local and cloud)."""

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


class OllamaProvider(BaseLLMProvider):
    """Ollama LLM provider supporting both local and cloud deployments.

    Supports:
    - Local Ollama: http://localhost:11434
    - Ollama Cloud: https://ollama.com (requires API key)

    Structured output uses the ``format`` field of ``/api/generate``, which
    accepts either ``"json"`` or a full JSON schema.
    """

    DEFAULT_BASE_URL = "http://localhost:11434"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
        **kwargs: Any,
    ):
        """Initialize Ollama provider.

        Args:
            base_url: Base URL for Ollama API (local or cloud)
            api_key: API key for Ollama Cloud (not needed for local)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
            **kwargs: Additional configuration options
        """
        super().__init__(base_url=base_url, api_key=api_key, timeout=timeout, **kwargs)

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            headers=headers,
            transport=transport,
        )

        logger.debug(
            "ollama_provider_initialized",
            base_url=self.base_url,
            deployment_type="cloud" if self.api_key else "local",
            timeout=timeout,
        )

    def close(self) -> None:
        """Close HTTP client."""
        if hasattr(self, "client") and self.client:
            self.client.close()
            logger.debug("ollama_client_closed", base_url=self.base_url)

    def __enter__(self) -> "OllamaProvider":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        """Context manager exit with cleanup."""
        self.close()
        return False

    def __del__(self) -> None:
        """Clean up client resources on deletion."""
        with contextlib.suppress(Exception):
            self.close()

    def check_connection(self) -> bool:
        """Check if Ollama is running and accessible.

        Returns:
            True if Ollama is accessible, False otherwise
        """
        try:
            response = self.client.get(f"{self.base_url}/api/tags")
        except httpx.HTTPError as e:
            logger.warning(
                "ollama_connection_check_failed", base_url=self.base_url, error=str(e)
            )
            return False
        return response.status_code == 200

    def list_models(self) -> list[str]:
        """List locally available models.

        Returns:
            List of model names
        """
        try:
            response = self.client.get(f"{self.base_url}/api/tags")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise classify_http_error(e, "ollama") from e
        return [model["name"] for model in response.json().get("models", [])]

    def generate(
        self,
        model: str,
        prompt: str,
        system: str = "",
        temperature: float = 0.7,
        format: str = "",
        json_schema: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Generate completion from Ollama.

        Args:
            model: Model name (e.g., "qwen3:8b")
            prompt: User prompt
            system: System prompt (optional)
            temperature: Sampling temperature
            format: Response format ("json" for structured output)
            json_schema: JSON schema, sent as the ``format`` value

        Returns:
            Response dictionary with 'response' and token usage

        Raises:
            ProviderError: Typed subclass describing the failure
        """
        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature},
        }
        if system:
            payload["system"] = system
        if json_schema is not None:
            payload["format"] = json_schema
        elif format == "json":
            payload["format"] = "json"

        request_start_time = time.time()
        logger.debug(
            "ollama_generate_request",
            model=model,
            prompt_length=len(prompt),
            system_length=len(system),
            structured=json_schema is not None,
        )

        try:
            response = self.client.post(f"{self.base_url}/api/generate", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "ollama_generate_failed",
                model=model,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise classify_http_error(e, "ollama") from e

        try:
            result = response.json()
        except ValueError as e:
            msg = f"Failed to parse Ollama response: {e}"
            raise SchemaViolation(
                msg, errors=[str(e)], error_code=ErrorCode.ENR_SCHEMA_INVALID.value
            ) from e

        prompt_eval_count = result.get("prompt_eval_count", 0)
        eval_count = result.get("eval_count", 0)
        result["_token_usage"] = {
            "prompt_tokens": prompt_eval_count,
            "completion_tokens": eval_count,
            "total_tokens": prompt_eval_count + eval_count,
        }

        logger.debug(
            "ollama_generate_success",
            model=model,
            response_length=len(result.get("response", "")),
            request_duration=round(time.time() - request_start_time, 2),
            total_tokens=prompt_eval_count + eval_count,
        )
        return dict(result)
