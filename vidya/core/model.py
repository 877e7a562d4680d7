"""Model builders for the supported providers.

Supports three providers:
- google (default): Gemini API
- openrouter: Cloud API with many models
- vllm: Local OpenAI-compatible API
"""

from __future__ import annotations

import logging

from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.providers.openrouter import OpenRouterProvider

from vidya.config import (
    CHAT_MODEL,
    GEMINI_API_KEY,
    OPENROUTER_API_KEY,
    PROVIDER_DEFAULT,
    VLLM_API_KEY,
    VLLM_BASE_URL,
)

logger = logging.getLogger(__name__)

PROVIDERS = ("google", "openrouter", "vllm")


def build_google_model(model_name: str | None = None, api_key: str | None = None) -> GoogleModel:
    """Build Gemini model instance.

    Args:
        model_name: Model identifier (e.g., 'gemini-2.5-pro')
        api_key: Gemini API key

    Returns:
        Configured GoogleModel instance

    """
    provider = GoogleProvider(api_key=api_key or GEMINI_API_KEY)
    return GoogleModel(model_name or CHAT_MODEL, provider=provider)


def build_vllm_model(
    model_name: str | None = None,
    base_url: str | None = None,
    api_key: str | None = None,
) -> OpenAIChatModel:
    """Build vLLM model instance (OpenAI-compatible local API)."""
    provider = OpenAIProvider(
        base_url=base_url or VLLM_BASE_URL,
        api_key=api_key or VLLM_API_KEY,
    )
    return OpenAIChatModel(model_name or CHAT_MODEL, provider=provider)


def build_openrouter_model(
    model_name: str | None = None,
    api_key: str | None = None,
) -> OpenAIChatModel:
    """Build OpenRouter model instance (e.g. 'google/gemini-2.5-pro')."""
    provider = OpenRouterProvider(api_key=api_key or OPENROUTER_API_KEY)
    return OpenAIChatModel(model_name or CHAT_MODEL, provider=provider)


def build_model(
    model_name: str | None = None,
    provider: str | None = None,
) -> GoogleModel | OpenAIChatModel:
    """Build model instance based on provider.

    Args:
        model_name: Model identifier
        provider: 'google', 'openrouter' or 'vllm' (default: from config)

    Returns:
        Configured model instance

    Raises:
        ValueError: If the provider is not supported

    """
    provider = provider or PROVIDER_DEFAULT
    if provider not in PROVIDERS:
        raise ValueError(f"Unknown provider {provider!r}; expected one of {', '.join(PROVIDERS)}")

    if provider == "openrouter":
        logger.debug("Building OpenRouter model: %s", model_name or CHAT_MODEL)
        return build_openrouter_model(model_name)
    if provider == "vllm":
        logger.debug("Building vLLM model: %s", model_name or CHAT_MODEL)
        return build_vllm_model(model_name)
    logger.debug("Building Gemini model: %s", model_name or CHAT_MODEL)
    return build_google_model(model_name)
