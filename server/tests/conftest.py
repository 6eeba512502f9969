"""Shared fixtures.

Settings are built without env files or vendor keys so a developer's shell
environment never leaks into a test.
"""

from __future__ import annotations

import pytest

from petchat.config import Settings
from petchat.core.store import MemoryConfigStore


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key=None,
        anthropic_api_key=None,
        google_api_key=None,
        gemini_api_key=None,
        qwen_api_key=None,
        dashscope_api_key=None,
        custom_api_key=None,
        ollama_base_url=None,
        memory_mode=True,
        max_connect_attempts=1,
        retry_backoff=0.0,
    )


@pytest.fixture
def store(settings: Settings) -> MemoryConfigStore:
    return MemoryConfigStore(settings, seed_from_settings=False)

