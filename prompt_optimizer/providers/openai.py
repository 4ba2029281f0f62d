"""
OpenAI-compatible provider implementation.

DeepSeek and Gemini both expose OpenAI-compatible chat completion endpoints,
so a single client implementation serves every configured model.
"""

import logging
from typing import Optional

import openai
from openai import OpenAI

from .base import (
    LLMProvider,
    LLMRequest,
    LLMResponse,
    ProviderError,
    AuthenticationError,
    ConnectionError,
    ModelNotFoundError,
    RateLimitError
)


logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """
    Provider implementation for OpenAI-compatible chat completion APIs.

    Supports:
    - DeepSeek (api.deepseek.com)
    - Gemini (generativelanguage.googleapis.com/v1beta/openai/)
    - Any other OpenAI-compatible API
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        **kwargs
    ):
        """
        Initialize OpenAI-compatible provider.

        Args:
            api_key: API key for the endpoint
            base_url: Custom base URL (None for OpenAI default)
            timeout: Request timeout in seconds (None for client default)
            **kwargs: Additional configuration options
        """
        super().__init__(api_key, base_url, **kwargs)

        client_kwargs = {"api_key": self.api_key}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        if timeout is not None:
            client_kwargs["timeout"] = timeout

        self.client = OpenAI(**client_kwargs)

    def complete(self, request: LLMRequest) -> LLMResponse:
        """
        Send a completion request to the API.

        Args:
            request: LLMRequest object with prompt and parameters

        Returns:
            LLMResponse object with the model's response

        Raises:
            AuthenticationError: If the API key is rejected
            ConnectionError: If the endpoint cannot be reached
            ModelNotFoundError: If model is not available
            RateLimitError: If the provider throttles the request
            ProviderError: For other API errors
        """
        try:
            response = self.client.chat.completions.create(**request.to_dict())
        except Exception as e:
            raise self._classify_error(e, request.model) from e

        if not response.choices:
            raise ProviderError(f"{self.provider_name} returned no choices")

        content = response.choices[0].message.content
        if not content:
            raise ProviderError(f"{self.provider_name} returned an empty response")

        usage = getattr(response, 'usage', None)

        return LLMResponse(
            content=content,
            model=response.model,
            finish_reason=response.choices[0].finish_reason,
            prompt_tokens=getattr(usage, 'prompt_tokens', None) if usage else None,
            completion_tokens=getattr(usage, 'completion_tokens', None) if usage else None,
            total_tokens=getattr(usage, 'total_tokens', None) if usage else None,
        )

    def _classify_error(self, error: Exception, model: str) -> ProviderError:
        """Map client exceptions onto the provider error hierarchy."""
        if isinstance(error, openai.APIConnectionError):
            return ConnectionError(f"Unable to connect to {self.provider_name}: {error}")
        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return AuthenticationError(f"{self.provider_name} rejected the API key: {error}")
        if isinstance(error, openai.NotFoundError):
            return ModelNotFoundError(f"Model '{model}' not found: {error}")
        if isinstance(error, openai.RateLimitError):
            return RateLimitError(f"Rate limit exceeded: {error}")

        error_msg = str(error).lower()

        if "connection" in error_msg or "connect" in error_msg:
            return ConnectionError(f"Unable to connect to {self.provider_name}: {error}")
        elif "401" in error_msg or "unauthorized" in error_msg:
            return AuthenticationError(f"Invalid API key: {error}")
        elif "403" in error_msg or "forbidden" in error_msg:
            return AuthenticationError(f"Access forbidden - check API key permissions: {error}")
        elif "model" in error_msg and ("not found" in error_msg or "does not exist" in error_msg):
            return ModelNotFoundError(f"Model '{model}' not found: {error}")
        elif "429" in error_msg or "rate limit" in error_msg:
            return RateLimitError(f"Rate limit exceeded: {error}")
        else:
            return ProviderError(f"Error calling {self.provider_name}: {error}")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        if self.base_url:
            if "deepseek" in self.base_url.lower():
                return "DeepSeek"
            elif "generativelanguage.googleapis.com" in self.base_url.lower():
                return "Gemini"
            else:
                return "Custom OpenAI-compatible"
        else:
            return "OpenAI"
