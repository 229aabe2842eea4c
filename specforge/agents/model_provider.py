"""Multi-provider LLM model factory.

Dispatches to the correct Strands SDK model class based on the
``LLM_PROVIDER`` environment variable (default: ``anthropic``). Bedrock,
OpenAI and Ollama are supported too; their client packages import lazily.

Resolution order for model IDs:
  1. Explicit ``model_id`` argument
  2. ``{PROVIDER}_{TIER}_MODEL_ID`` env var  (e.g. ``ANTHROPIC_HEAVY_MODEL_ID``)
  3. Reasoning → heavy fallback
  4. ``PROVIDER_DEFAULTS`` smart defaults
"""

import logging
import os
from collections.abc import Callable
from enum import Enum
from typing import Any

from botocore.config import Config
from strands.models.bedrock import BedrockModel

from specforge.config import ModelTier
from specforge.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class LLMProvider(Enum):
    """Supported LLM providers."""

    ANTHROPIC = "anthropic"
    BEDROCK = "bedrock"
    OPENAI = "openai"
    OLLAMA = "ollama"


# ---------------------------------------------------------------------------
# Smart defaults per provider × tier
# ---------------------------------------------------------------------------

PROVIDER_DEFAULTS: dict[LLMProvider, dict[str, str]] = {
    LLMProvider.ANTHROPIC: {
        "reasoning": "claude-opus-4-5-20251101",
        "heavy": "claude-sonnet-4-20250514",
        "light": "claude-3-5-haiku-20241022",
    },
    LLMProvider.BEDROCK: {
        "reasoning": "anthropic.claude-3-5-sonnet-20241022-v2:0",
        "heavy": "anthropic.claude-3-5-sonnet-20241022-v2:0",
        "light": "anthropic.claude-3-5-haiku-20241022-v1:0",
    },
    LLMProvider.OPENAI: {
        "reasoning": "o3-mini",
        "heavy": "gpt-4o",
        "light": "gpt-4o-mini",
    },
    LLMProvider.OLLAMA: {
        "reasoning": "llama3.1:70b",
        "heavy": "llama3.1:70b",
        "light": "llama3.1:8b",
    },
}


def get_active_provider() -> LLMProvider:
    """Return the active LLM provider from the ``LLM_PROVIDER`` env var.

    Raises:
        ConfigurationError: If the env var value is not a recognised provider.
    """
    raw = os.getenv("LLM_PROVIDER", "anthropic").strip().lower()
    try:
        return LLMProvider(raw)
    except ValueError:
        valid = ", ".join(p.value for p in LLMProvider)
        raise ConfigurationError(f"Unknown LLM_PROVIDER '{raw}'. Valid options: {valid}") from None


def get_model_id_for_tier(tier: ModelTier | str) -> str:
    """Return the model ID for a tier, respecting the active provider."""
    tier = ModelTier(tier).value
    provider = get_active_provider()

    env_key = f"{provider.value.upper()}_{tier.upper()}_MODEL_ID"
    from_env = os.getenv(env_key)
    if from_env:
        return from_env

    if tier == "reasoning":
        heavy_env_key = f"{provider.value.upper()}_HEAVY_MODEL_ID"
        heavy_from_env = os.getenv(heavy_env_key)
        if heavy_from_env:
            logger.warning("%s not set, falling back to %s", env_key, heavy_env_key)
            return heavy_from_env

    default_id = PROVIDER_DEFAULTS[provider][tier]
    logger.info("Using default model for %s/%s: %s", provider.value, tier, default_id)
    return default_id


# ---------------------------------------------------------------------------
# Provider factory registry
# ---------------------------------------------------------------------------

_PROVIDER_FACTORIES: dict[LLMProvider, Callable[..., Any]] = {}


def _register_provider(provider: LLMProvider):
    """Decorator to register a provider factory function."""

    def decorator(fn):
        _PROVIDER_FACTORIES[provider] = fn
        return fn

    return decorator


@_register_provider(LLMProvider.ANTHROPIC)
def _create_anthropic(model_id, max_tokens, temperature, timeout):
    try:
        from strands.models.anthropic import AnthropicModel
    except ImportError as e:
        raise ImportError(
            "Anthropic provider requires the 'anthropic' package. "
            "Install it with: pip install 'strands-agents[anthropic]'"
        ) from e

    client_args: dict[str, Any] = {}
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if api_key:
        client_args["api_key"] = api_key
    if timeout is not None:
        client_args["timeout"] = timeout

    return AnthropicModel(
        client_args=client_args or None,
        model_id=model_id,
        max_tokens=max_tokens,
        params={"temperature": temperature},
    )


@_register_provider(LLMProvider.BEDROCK)
def _create_bedrock(model_id, max_tokens, temperature, timeout):
    region_name = os.getenv("AWS_REGION")
    if not region_name:
        raise ConfigurationError("AWS_REGION must be set when LLM_PROVIDER=bedrock")

    # Transport-level retries only; phase-level retries belong to the invoker
    boto_config = Config(
        read_timeout=timeout or 300.0,
        connect_timeout=60.0,
        retries={"max_attempts": 3, "mode": "standard"},
    )
    return BedrockModel(
        model_id=model_id,
        region_name=region_name,
        boto_client_config=boto_config,
        streaming=False,
        temperature=temperature,
        max_tokens=max_tokens,
    )


@_register_provider(LLMProvider.OPENAI)
def _create_openai(model_id, max_tokens, temperature, timeout):
    try:
        from strands.models.openai import OpenAIModel
    except ImportError as e:
        raise ImportError(
            "OpenAI provider requires the 'openai' package. "
            "Install it with: pip install 'strands-agents[openai]'"
        ) from e

    client_args: dict[str, Any] = {}
    api_key = os.getenv("OPENAI_API_KEY")
    if api_key:
        client_args["api_key"] = api_key
    if timeout is not None:
        client_args["timeout"] = timeout

    return OpenAIModel(
        client_args=client_args or None,
        model_id=model_id,
        params={"max_tokens": max_tokens, "temperature": temperature},
    )


@_register_provider(LLMProvider.OLLAMA)
def _create_ollama(model_id, max_tokens, temperature, timeout):
    try:
        from strands.models.ollama import OllamaModel
    except ImportError as e:
        raise ImportError(
            "Ollama provider requires the 'ollama' package. "
            "Install it with: pip install 'strands-agents[ollama]'"
        ) from e

    return OllamaModel(
        host=os.getenv("OLLAMA_HOST", "http://localhost:11434"),
        model_id=model_id,
        max_tokens=max_tokens,
        temperature=temperature,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def create_model(
    model_id: str | None = None,
    tier: ModelTier | str = ModelTier.HEAVY,
    max_tokens: int = 8192,
    temperature: float = 0.1,
    timeout: float | None = 120.0,
):
    """Create a Strands model instance for the active provider.

    Args:
        model_id: Model identifier. Resolved from tier + provider defaults
            when ``None``.
        tier: Model tier for ID resolution.
        max_tokens: Maximum response tokens.
        temperature: Sampling temperature.
        timeout: Client-level request timeout in seconds.

    Returns:
        A Strands ``Model`` instance.
    """
    provider = get_active_provider()
    if model_id is None:
        model_id = get_model_id_for_tier(tier)

    logger.info(
        "Creating %s model: model_id=%s, tier=%s, max_tokens=%s",
        provider.value,
        model_id,
        ModelTier(tier).value,
        max_tokens,
    )
    return _PROVIDER_FACTORIES[provider](
        model_id=model_id,
        max_tokens=max_tokens,
        temperature=temperature,
        timeout=timeout,
    )
