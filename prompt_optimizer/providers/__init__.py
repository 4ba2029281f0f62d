"""LLM provider integrations."""

from .base import (
    LLMProvider,
    LLMRequest,
    LLMResponse,
    Message,
    MessageRole,
    ProviderError,
    AuthenticationError,
    ConnectionError,
    ModelNotFoundError,
    RateLimitError,
)
from .openai import OpenAIProvider
from .registry import ModelId, ModelRegistry, ModelSpec, ProviderSpec
