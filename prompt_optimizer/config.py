"""Configuration management for user settings and provider credentials."""

import copy
import logging
import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

# Default user config location
USER_CONFIG_DIR = Path.home() / ".prompt-optimizer"
USER_CONFIG_FILE = USER_CONFIG_DIR / "config.yaml"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def load_env(env_file: Optional[str] = None) -> bool:
    """Load provider API keys from a .env file into the environment."""
    if env_file:
        return load_dotenv(env_file)
    return load_dotenv()


def load_user_config() -> Dict[str, Any]:
    """Load user-level configuration, merged over the defaults."""
    if not USER_CONFIG_FILE.exists():
        return get_default_user_config()

    try:
        with open(USER_CONFIG_FILE, 'r') as f:
            loaded = yaml.safe_load(f)
    except Exception as e:
        logger.warning("Error loading user config %s: %s", USER_CONFIG_FILE, e)
        return get_default_user_config()

    if not isinstance(loaded, dict):
        return get_default_user_config()

    return merge_config(get_default_user_config(), loaded)


def save_user_config(config: Dict[str, Any]) -> str:
    """Save user-level configuration."""
    try:
        USER_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        with open(USER_CONFIG_FILE, 'w') as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)
        return f"✅ User config saved to {USER_CONFIG_FILE}"
    except Exception as e:
        return f"❌ Error saving user config: {e}"


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_default_user_config() -> Dict[str, Any]:
    """Get default user configuration."""
    return {
        "default_model": "deepseek-v3",
        "temperature": 0.7,
        "max_tokens": 4000,
        "timeout": 120.0,
        "storage_dir": str(USER_CONFIG_DIR / "storage"),
        "log_level": "INFO",
        "providers": {
            "deepseek": {
                "base_url": "https://api.deepseek.com",
                "api_key_env": "DEEPSEEK_API_KEY",
                "credential_key": "deepseekApiKey",
            },
            "gemini": {
                "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
                "api_key_env": "GEMINI_API_KEY",
                "credential_key": "geminiApiKey",
            },
        },
        "models": {
            "deepseek-v3": {
                "provider": "deepseek",
                "api_model": "deepseek-chat",
            },
            "gemini-1206": {
                "provider": "gemini",
                "api_model": "gemini-exp-1206",
            },
            "gemini-2.0-flash-exp": {
                "provider": "gemini",
                "api_model": "gemini-2.0-flash-exp",
            },
        },
    }


def get_storage_dir(config: Dict[str, Any]) -> Path:
    """Resolve the storage directory, expanding ~ and environment variables."""
    raw = config.get("storage_dir") or get_default_user_config()["storage_dir"]
    return Path(os.path.expandvars(str(raw))).expanduser()


def validate_user_config(config: Dict[str, Any]) -> List[str]:
    """Validate user config and return list of errors."""
    errors = []

    providers = config.get("providers", {})
    models = config.get("models", {})

    if not models:
        errors.append("No models configured")

    for model_id, model_config in models.items():
        provider = model_config.get("provider")
        if not provider:
            errors.append(f"Model '{model_id}': missing provider")
        elif provider not in providers:
            errors.append(f"Model '{model_id}': unknown provider '{provider}'")
        if not model_config.get("api_model"):
            errors.append(f"Model '{model_id}': missing api_model")

    for name, provider_config in providers.items():
        if not provider_config.get("base_url"):
            errors.append(f"Provider '{name}': missing base_url")
        if not provider_config.get("api_key_env") and not provider_config.get("credential_key"):
            errors.append(f"Provider '{name}': no credential source configured")

    default_model = config.get("default_model")
    if default_model and models and default_model not in models:
        errors.append(f"Default model '{default_model}' is not configured")

    temperature = config.get("temperature", 0.7)
    if not isinstance(temperature, (int, float)) or not 0 <= temperature <= 2:
        errors.append("Temperature must be between 0 and 2")

    max_tokens = config.get("max_tokens", 1)
    if not isinstance(max_tokens, int) or max_tokens < 1:
        errors.append("max_tokens must be a positive integer")

    if str(config.get("log_level", "INFO")).upper() not in LOG_LEVELS:
        errors.append(f"log_level must be one of {', '.join(LOG_LEVELS)}")

    return errors
