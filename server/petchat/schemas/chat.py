from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from petchat.schemas.provider import ProviderConfig, ProviderType


class ConversationTurn(BaseModel):
    # History may also carry gateway artifacts (function/tool); adapters filter or coerce them
    role: str
    content: str

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class GenerationConfig(BaseModel):
    max_tokens: int = 0
    temperature: float = 1.0
    top_p: float = 0.95
    enable_web_search: bool = False

    @classmethod
    def from_provider_config(cls, config: ProviderConfig) -> "GenerationConfig":
        return cls(
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            top_p=config.top_p,
            enable_web_search=config.enable_web_search,
        )


class CanonicalRequest(BaseModel):
    message: str
    history: List[ConversationTurn] = Field(default_factory=list)
    system_prompt: str = ""
    generation_config: GenerationConfig = Field(default_factory=GenerationConfig)
    # Set for image questions only: raw base64, no data-URI prefix
    image_base64: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return bool(self.image_base64)


class HTTPRequestSpec(BaseModel):
    method: str = "POST"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None


# Local HTTP bridge payloads


class ChatStreamRequest(BaseModel):
    message: str = Field(..., min_length=1)


class ImageStreamRequest(BaseModel):
    image_base64: str = Field(..., min_length=1)
    question: str = Field(default="Please describe this image.")


class TranslateStreamRequest(BaseModel):
    text: str = Field(..., min_length=1)


class SwitchProviderRequest(BaseModel):
    type: ProviderType


class APIKeyUpdate(BaseModel):
    api_key: Optional[str] = None
