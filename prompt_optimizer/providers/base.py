"""
Base provider interface for LLM integrations.

Defines the abstract interface that all LLM providers must implement.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any
from dataclasses import dataclass
from enum import Enum

from ..errors import OptimizerError


class MessageRole(str, Enum):
    """Message roles in a conversation."""
    SYSTEM = "system"
    USER = "user"


@dataclass
class Message:
    """A message in a conversation."""
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        """Convert message to dictionary format."""
        return {
            "role": self.role.value,
            "content": self.content
        }


@dataclass
class LLMRequest:
    """Request parameters for LLM completion."""
    messages: List[Message]
    model: str
    temperature: float = 0.7
    max_tokens: int = 4000

    def to_dict(self) -> Dict[str, Any]:
        """Convert request to dictionary format."""
        return {
            "model": self.model,
            "messages": [msg.to_dict() for msg in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    @classmethod
    def from_prompt(
        cls,
        system_prompt: str,
        user_input: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> "LLMRequest":
        """
        Build a request from an instruction and an optional input.

        The instruction is sent as the system message; the input is only
        added as a user message when it is non-empty.
        """
        messages = [Message(role=MessageRole.SYSTEM, content=system_prompt)]
        if user_input:
            messages.append(Message(role=MessageRole.USER, content=user_input))
        return cls(messages=messages, model=model, temperature=temperature, max_tokens=max_tokens)


@dataclass
class LLMResponse:
    """Response from LLM completion."""
    content: str
    model: str
    finish_reason: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None

    @property
    def usage(self) -> Dict[str, int]:
        """Get token usage information."""
        return {
            "prompt_tokens": self.prompt_tokens or 0,
            "completion_tokens": self.completion_tokens or 0,
            "total_tokens": self.total_tokens or 0
        }


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    All provider implementations must inherit from this class and implement
    the required methods.
    """

    def __init__(self, api_key: str, base_url: Optional[str] = None, **kwargs):
        """
        Initialize the provider.

        Args:
            api_key: API key for authentication
            base_url: Custom base URL for the API
            **kwargs: Additional provider-specific configuration
        """
        self.api_key = api_key
        self.base_url = base_url
        self.config = kwargs

    @abstractmethod
    def complete(self, request: LLMRequest) -> LLMResponse:
        """
        Send a completion request to the LLM.

        Args:
            request: LLMRequest object containing the prompt and parameters

        Returns:
            LLMResponse object containing the model's response

        Raises:
            ProviderError: If the API request fails
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the provider (e.g., 'DeepSeek', 'Gemini')."""
        pass

    def __repr__(self) -> str:
        """String representation of the provider."""
        return f"{self.__class__.__name__}(base_url={self.base_url})"


class ProviderError(OptimizerError):
    """Base exception for provider-related errors."""
    pass


class AuthenticationError(ProviderError):
    """Raised when authentication fails."""
    pass


class ConnectionError(ProviderError):
    """Raised when connection to provider fails."""
    pass


class ModelNotFoundError(ProviderError):
    """Raised when requested model is not available."""
    pass


class RateLimitError(ProviderError):
    """Raised when rate limit is exceeded."""
    pass
