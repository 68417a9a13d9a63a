"""LLM provider abstraction layer.

Supports OpenAI-compatible APIs (OpenAI, OpenRouter, LM Studio) and Ollama.
"""

from .base import BaseLLMProvider
from .factory import ProviderFactory
from .ollama import OllamaProvider
from .openai import OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "ProviderFactory",
]
