"""
Model registry and dispatch.

Maps each supported model identifier to the provider endpoint that serves it
and turns a model identifier into a callable (system_prompt, user_input) -> text.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from ..config import get_default_user_config
from ..errors import MissingCredentialError, UnknownModelError
from ..storage import LocalStorage
from .base import LLMProvider, LLMRequest
from .openai import OpenAIProvider


logger = logging.getLogger(__name__)


class ModelId(str, Enum):
    """Models offered for optimization and testing."""
    DEEPSEEK_V3 = "deepseek-v3"
    GEMINI_1206 = "gemini-1206"
    GEMINI_FLASH = "gemini-2.0-flash-exp"

    @classmethod
    def parse(cls, value: Union[str, "ModelId", None]) -> "ModelId":
        """
        Convert a model identifier string to a ModelId.

        Raises:
            UnknownModelError: If value is not a supported identifier
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownModelError(
                f"Unknown model '{value}'. "
                f"Available models: {', '.join(m.value for m in cls)}"
            ) from None

    @property
    def label(self) -> str:
        """Display name for model selectors."""
        return _LABELS[self]


_LABELS = {
    ModelId.DEEPSEEK_V3: "DeepSeek V3",
    ModelId.GEMINI_1206: "Gemini 1206",
    ModelId.GEMINI_FLASH: "Gemini 2.0 Flash",
}


@dataclass(frozen=True)
class ProviderSpec:
    """Endpoint and credential sources for one provider."""
    name: str
    base_url: str
    api_key_env: str = ""
    credential_key: str = ""


@dataclass(frozen=True)
class ModelSpec:
    """How one model identifier is served."""
    model_id: ModelId
    provider: ProviderSpec
    api_model: str


class ModelRegistry:
    """
    Dispatch table from ModelId to provider calls.

    Credentials are looked up in storage first (set from the UI), then in
    the environment variable named by the provider spec.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        storage: Optional[LocalStorage] = None,
        provider_class: Type[LLMProvider] = OpenAIProvider,
    ):
        """
        Initialize the registry.

        Args:
            config: User configuration (defaults when omitted)
            storage: Storage holding UI-provided credentials
            provider_class: Provider implementation used for every endpoint
        """
        self.config = config or get_default_user_config()
        self.storage = storage
        self.provider_class = provider_class
        self.providers: Dict[str, ProviderSpec] = {}
        self._specs: Dict[ModelId, ModelSpec] = {}
        self._load_specs()

    def _load_specs(self):
        for name, provider_config in self.config.get("providers", {}).items():
            self.providers[name] = ProviderSpec(
                name=name,
                base_url=provider_config.get("base_url", ""),
                api_key_env=provider_config.get("api_key_env", ""),
                credential_key=provider_config.get("credential_key", ""),
            )

        for raw_id, model_config in self.config.get("models", {}).items():
            try:
                model_id = ModelId.parse(raw_id)
            except UnknownModelError:
                logger.warning("Ignoring unsupported model in config: %s", raw_id)
                continue

            provider = self.providers.get(model_config.get("provider", ""))
            if provider is None:
                logger.warning("Model %s references unknown provider %r", raw_id, model_config.get("provider"))
                continue

            self._specs[model_id] = ModelSpec(
                model_id=model_id,
                provider=provider,
                api_model=model_config.get("api_model") or model_id.value,
            )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def spec(self, model_id: Union[str, ModelId]) -> ModelSpec:
        """
        Get the spec serving a model.

        Raises:
            UnknownModelError: If the model is unknown or not configured
        """
        parsed = ModelId.parse(model_id)
        spec = self._specs.get(parsed)
        if spec is None:
            raise UnknownModelError(f"Model '{parsed.value}' is not configured")
        return spec

    def available_models(self) -> List[ModelId]:
        """Configured models in enum order."""
        return [m for m in ModelId if m in self._specs]

    def choices(self) -> List[Tuple[str, str]]:
        """(label, value) pairs for dropdowns."""
        return [(m.label, m.value) for m in self.available_models()]

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------
    def get_credential(self, provider_name: str) -> str:
        """Credential stored from the UI for a provider, or an empty string."""
        provider = self._provider(provider_name)
        if not self.storage or not provider.credential_key:
            return ""
        return (self.storage.get_item(provider.credential_key) or "").strip()

    def set_credential(self, provider_name: str, api_key: str) -> None:
        """Store (or with an empty key, remove) a provider credential."""
        provider = self._provider(provider_name)
        if not self.storage or not provider.credential_key:
            raise MissingCredentialError(f"Provider '{provider_name}' has no credential storage")

        api_key = (api_key or "").strip()
        if api_key:
            self.storage.set_item(provider.credential_key, api_key)
            logger.info("Stored API key for %s", provider_name)
        else:
            self.storage.remove_item(provider.credential_key)
            logger.info("Removed stored API key for %s", provider_name)

    def resolve_api_key(self, provider: ProviderSpec) -> str:
        """
        Find the API key for a provider.

        Raises:
            MissingCredentialError: If neither storage nor environment has one
        """
        stored = self.get_credential(provider.name)
        if stored:
            return stored

        if provider.api_key_env:
            from_env = os.environ.get(provider.api_key_env, "").strip()
            if from_env:
                return from_env

        hint = f" or set {provider.api_key_env}" if provider.api_key_env else ""
        raise MissingCredentialError(f"No API key configured for {provider.name}. Enter one in the settings{hint}.")

    def _provider(self, provider_name: str) -> ProviderSpec:
        provider = self.providers.get(provider_name)
        if provider is None:
            raise UnknownModelError(f"Unknown provider '{provider_name}'")
        return provider

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------
    def create_provider(self, model_id: Union[str, ModelId]) -> LLMProvider:
        """Create a provider instance configured for a model."""
        spec = self.spec(model_id)
        api_key = self.resolve_api_key(spec.provider)
        return self.provider_class(
            api_key=api_key,
            base_url=spec.provider.base_url or None,
            timeout=self.config.get("timeout"),
        )

    def call(self, model_id: Union[str, ModelId], system_prompt: str, user_input: str = "") -> str:
        """
        Run an instruction and optional input through a model.

        Returns:
            The model's text response

        Raises:
            UnknownModelError: If the model is not supported
            MissingCredentialError: If no API key is available
            ProviderError: If the API call fails
        """
        spec = self.spec(model_id)
        provider = self.create_provider(spec.model_id)

        request = LLMRequest.from_prompt(
            system_prompt,
            user_input,
            model=spec.api_model,
            temperature=self.config.get("temperature", 0.7),
            max_tokens=self.config.get("max_tokens", 4000),
        )

        logger.info("Calling %s (%s) via %s", spec.model_id.value, spec.api_model, provider.provider_name)
        response = provider.complete(request)
        logger.debug("%s usage: %s", spec.model_id.value, response.usage)
        return response.content
