from functools import lru_cache
from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    log_level: str = "INFO"
    # Origins allowed to talk to the optional local HTTP bridge
    allowed_origins: List[AnyHttpUrl] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]  # type: ignore

    # Vendor keys seed the credential store on first start
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    qwen_api_key: Optional[str] = None
    dashscope_api_key: Optional[str] = None
    custom_api_key: Optional[str] = None

    # Local inference server, overrides the provider default endpoint
    ollama_base_url: Optional[str] = None

    # Storage: in-memory unless turned off, then SQL via database_url
    memory_mode: bool = True
    database_url: str = "sqlite:///./petchat.db"

    # Transport
    request_timeout: float = 120.0
    connect_timeout: float = 10.0
    health_timeout: float = 10.0
    max_connect_attempts: int = 2
    retry_backoff: float = 0.8

    # Gateway web search is switched on by a literal prefix the operator configures server-side
    web_search_trigger: str = "@web"

    # Upper bound for the incrementally parsed JSON array (Google-style streams)
    max_array_buffer_bytes: int = 8 * 1024 * 1024

    # pydantic-settings v2 style config: load env from both ../.env (repo root) and .env
    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=("../.env", ".env"),
        extra="ignore",  # ignore env vars not defined as fields
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
