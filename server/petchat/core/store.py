from __future__ import annotations
import logging
import threading
from typing import Dict, Optional, Protocol

from petchat.config import Settings, get_settings
from petchat.schemas.provider import Preferences, ProviderConfig, ProviderType

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    def get_config(self, provider_type: ProviderType) -> ProviderConfig:
        ...

    def update_config(self, config: ProviderConfig) -> None:
        ...

    def get_api_key(self, provider_type: ProviderType) -> Optional[str]:
        ...

    def save_api_key(self, provider_type: ProviderType, api_key: str) -> None:
        ...

    def delete_api_key(self, provider_type: ProviderType) -> None:
        ...

    def get_preferences(self) -> Preferences:
        ...

    def update_preferences(self, prefs: Preferences) -> None:
        ...


def api_keys_from_settings(settings: Settings) -> Dict[ProviderType, str]:
    candidates = {
        ProviderType.OPENAI: settings.openai_api_key,
        ProviderType.ANTHROPIC: settings.anthropic_api_key,
        ProviderType.GEMINI: settings.gemini_api_key or settings.google_api_key,
        ProviderType.QWEN: settings.qwen_api_key or settings.dashscope_api_key,
        ProviderType.CUSTOM: settings.custom_api_key,
    }
    return {t: key for t, key in candidates.items() if key}


def default_config(provider_type: ProviderType, settings: Settings) -> ProviderConfig:
    endpoint = settings.ollama_base_url if provider_type is ProviderType.OLLAMA else None
    return ProviderConfig.defaults(provider_type, endpoint=endpoint)


class MemoryConfigStore:
    def __init__(self, settings: Optional[Settings] = None, *, seed_from_settings: bool = True) -> None:
        self._lock = threading.Lock()
        self._settings = settings or get_settings()
        self._configs: Dict[ProviderType, ProviderConfig] = {}
        self._api_keys: Dict[ProviderType, str] = {}
        self._preferences = Preferences()
        if seed_from_settings:
            self._api_keys.update(api_keys_from_settings(self._settings))

    # Provider configs
    def get_config(self, provider_type: ProviderType) -> ProviderConfig:
        with self._lock:
            config = self._configs.get(provider_type)
            if config is None:
                config = default_config(provider_type, self._settings)
                self._configs[provider_type] = config
            # Callers get a copy; mutations go through update_config
            return config.model_copy()

    def update_config(self, config: ProviderConfig) -> None:
        with self._lock:
            self._configs[config.type] = config.model_copy()

    # Credentials
    def get_api_key(self, provider_type: ProviderType) -> Optional[str]:
        with self._lock:
            return self._api_keys.get(provider_type)

    def save_api_key(self, provider_type: ProviderType, api_key: str) -> None:
        with self._lock:
            self._api_keys[provider_type] = api_key

    def delete_api_key(self, provider_type: ProviderType) -> None:
        with self._lock:
            self._api_keys.pop(provider_type, None)

    # Preferences
    def get_preferences(self) -> Preferences:
        with self._lock:
            return self._preferences.model_copy()

    def update_preferences(self, prefs: Preferences) -> None:
        with self._lock:
            self._preferences = prefs.model_copy()


def get_store(settings: Optional[Settings] = None) -> ConfigStore:
    settings = settings or get_settings()
    if settings.memory_mode:
        return MemoryConfigStore(settings)
    from petchat.db.store import SQLConfigStore

    logger.info("Using SQL config store")
    return SQLConfigStore.from_url(settings.database_url, settings=settings)
