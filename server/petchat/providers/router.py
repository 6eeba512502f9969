from __future__ import annotations
from typing import Dict, Optional, Type

import httpx

from petchat.config import Settings
from petchat.providers.anthropic import AnthropicProvider
from petchat.providers.base import StreamingProvider
from petchat.providers.gemini import GeminiProvider
from petchat.providers.ollama import OllamaProvider
from petchat.providers.openai import OpenAICompatibleProvider
from petchat.schemas.provider import ProviderConfig, ProviderType


# Closed set: one adapter class per vendor family
PROVIDER_CLASSES: Dict[ProviderType, Type[StreamingProvider]] = {
    ProviderType.OLLAMA: OllamaProvider,
    ProviderType.OPENAI: OpenAICompatibleProvider,
    ProviderType.QWEN: OpenAICompatibleProvider,
    ProviderType.CUSTOM: OpenAICompatibleProvider,
    ProviderType.ANTHROPIC: AnthropicProvider,
    ProviderType.GEMINI: GeminiProvider,
}

# Lighter models used for one-shot translation
FAST_TRANSLATION_MODELS: Dict[ProviderType, str] = {
    ProviderType.GEMINI: "gemini-2.0-flash",
    ProviderType.ANTHROPIC: "claude-haiku-4-5",
}


def build_provider(
    config: ProviderConfig,
    api_key: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> StreamingProvider:
    cls = PROVIDER_CLASSES[config.type]
    return cls(config, api_key, settings=settings, transport=transport)


def translation_config(config: ProviderConfig) -> ProviderConfig:
    """Throwaway config for translation: no search, short output, near-deterministic."""
    return config.model_copy(
        update={
            "model": FAST_TRANSLATION_MODELS.get(config.type, config.model),
            "enable_web_search": False,
            "max_tokens": 2048,
            "temperature": 0.3,
            "top_p": 0.9,
        }
    )
