from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class ProviderInfo:
    display_name: str
    default_endpoint: str
    recommended_models: List[str]
    default_max_tokens: int
    requires_api_key: bool
    supports_vision: bool


class ProviderType(str, Enum):
    OLLAMA = "ollama"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    QWEN = "qwen"
    CUSTOM = "custom"

    @property
    def info(self) -> ProviderInfo:
        return PROVIDER_INFO[self]

    @property
    def display_name(self) -> str:
        return self.info.display_name

    @property
    def default_endpoint(self) -> str:
        return self.info.default_endpoint

    @property
    def recommended_models(self) -> List[str]:
        return list(self.info.recommended_models)

    @property
    def default_model(self) -> str:
        models = self.info.recommended_models
        return models[0] if models else ""

    @property
    def default_max_tokens(self) -> int:
        return self.info.default_max_tokens

    @property
    def requires_api_key(self) -> bool:
        return self.info.requires_api_key

    @property
    def supports_vision(self) -> bool:
        return self.info.supports_vision


PROVIDER_INFO: Dict[ProviderType, ProviderInfo] = {
    ProviderType.OLLAMA: ProviderInfo(
        display_name="Ollama (local)",
        default_endpoint="http://localhost:11434",
        recommended_models=["gemma3:4b-it-qat", "gemma3:12b-it-qat", "qwen3:4b", "llava:7b"],
        default_max_tokens=4096,
        requires_api_key=False,
        # depends on the pulled model
        supports_vision=True,
    ),
    ProviderType.OPENAI: ProviderInfo(
        display_name="OpenAI",
        default_endpoint="https://api.openai.com",
        recommended_models=["gpt-4o", "gpt-4o-mini", "gpt-4.1", "gpt-4.1-mini"],
        default_max_tokens=8192,
        requires_api_key=True,
        supports_vision=True,
    ),
    ProviderType.ANTHROPIC: ProviderInfo(
        display_name="Claude (Anthropic)",
        default_endpoint="https://api.anthropic.com",
        recommended_models=["claude-sonnet-4-5", "claude-opus-4-1", "claude-haiku-4-5"],
        default_max_tokens=16384,
        requires_api_key=True,
        supports_vision=True,
    ),
    ProviderType.GEMINI: ProviderInfo(
        display_name="Google Gemini",
        default_endpoint="https://generativelanguage.googleapis.com",
        recommended_models=["gemini-2.5-flash", "gemini-2.5-pro", "gemini-2.0-flash"],
        default_max_tokens=65536,
        requires_api_key=True,
        supports_vision=True,
    ),
    ProviderType.QWEN: ProviderInfo(
        display_name="Qwen (DashScope)",
        default_endpoint="https://dashscope.aliyuncs.com/compatible-mode",
        recommended_models=["qwen-plus", "qwen3-max", "qwen3-vl-plus", "qwen-vl-max"],
        default_max_tokens=8192,
        requires_api_key=True,
        # qwen-vl family
        supports_vision=True,
    ),
    ProviderType.CUSTOM: ProviderInfo(
        display_name="Custom (OpenAI compatible)",
        default_endpoint="",
        recommended_models=["gpt-4o", "gpt-4o-mini", "claude-3-5-sonnet-latest", "deepseek-chat"],
        default_max_tokens=8192,
        requires_api_key=True,
        supports_vision=True,
    ),
}


class ProviderConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    type: ProviderType
    endpoint: str = ""
    model: str = ""
    enabled: bool = True
    enable_web_search: bool = True
    max_tokens: int = Field(default=0, ge=0)
    temperature: float = Field(default=1.0, ge=0.0, le=2.0)
    top_p: float = Field(default=0.95, ge=0.0, le=1.0)

    @classmethod
    def defaults(cls, provider_type: ProviderType, **overrides) -> "ProviderConfig":
        values = {
            "type": provider_type,
            "endpoint": provider_type.default_endpoint,
            "model": provider_type.default_model,
            "max_tokens": provider_type.default_max_tokens,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def base_url(self) -> str:
        return self.endpoint.strip().rstrip("/")


class TranslationLanguage(str, Enum):
    CHINESE = "zh"
    ENGLISH = "en"
    JAPANESE = "ja"
    KOREAN = "ko"

    @property
    def prompt_name(self) -> str:
        return {
            TranslationLanguage.CHINESE: "Chinese",
            TranslationLanguage.ENGLISH: "English",
            TranslationLanguage.JAPANESE: "Japanese",
            TranslationLanguage.KOREAN: "Korean",
        }[self]


DEFAULT_PET_NAME = "Mimi"
DEFAULT_PET_NICKNAME = "Mi"
DEFAULT_OWNER_NAME = "Master"

DEFAULT_CHAT_PROMPT = """You are a cute desktop pet cat named {petName} ({petNickname} for short). Your owner is {ownerName}.

Personality:
- Lively and playful, likes to show feelings with kaomoji (≧▽≦)
- Short replies (1-3 sentences), never long-winded
- Clever and knowledgeable, a reliable helper for {ownerName}
- Cares about {ownerName}'s health and reminds them to rest, drink water and move

Reply rules:
- Answer in the language the user writes in
- Keep it short and answer directly
- Kaomoji are welcome in moderation"""

DEFAULT_IMAGE_PROMPT = """You are {petName}, a clever desktop pet cat helping {ownerName} look at a screenshot.
Answer in a concise and practical way, kaomoji are welcome."""


class Preferences(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    current_provider: ProviderType = ProviderType.OLLAMA
    translation_language: TranslationLanguage = TranslationLanguage.CHINESE
    chat_prompt: str = DEFAULT_CHAT_PROMPT
    image_prompt: str = DEFAULT_IMAGE_PROMPT
    pet_name: str = DEFAULT_PET_NAME
    pet_nickname: str = DEFAULT_PET_NICKNAME
    owner_name: str = DEFAULT_OWNER_NAME


class ProviderSummary(BaseModel):
    type: ProviderType
    name: str
    models: List[str]
    requires_api_key: bool
    supports_vision: bool
    configured: bool
    config: ProviderConfig
    active: bool = False
