from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProviderConfigRecord(SQLModel, table=True):
    type: str = Field(primary_key=True)
    endpoint: str = ""
    model: str = ""
    enabled: bool = True
    enable_web_search: bool = True
    max_tokens: int = 0
    temperature: float = 1.0
    top_p: float = 0.95
    updated_at: datetime = Field(default_factory=_utcnow)


class APIKeyRecord(SQLModel, table=True):
    type: str = Field(primary_key=True)
    api_key: str
    updated_at: datetime = Field(default_factory=_utcnow)


class PreferencesRecord(SQLModel, table=True):
    # Single-row table
    id: Optional[int] = Field(default=1, primary_key=True)
    current_provider: str = "ollama"
    translation_language: str = "zh"
    chat_prompt: str
    image_prompt: str
    pet_name: str
    pet_nickname: str
    owner_name: str
    updated_at: datetime = Field(default_factory=_utcnow)
