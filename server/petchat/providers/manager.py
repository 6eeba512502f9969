from __future__ import annotations
import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional, Set

import httpx

from petchat.config import Settings, get_settings
from petchat.core.history import ConversationHistory
from petchat.core.prompts import (
    TRANSLATOR_SYSTEM_PROMPT,
    build_chat_system_prompt,
    build_image_system_prompt,
    build_translation_prompt,
    image_history_entry,
)
from petchat.core.result import CompleteCallback, HealthCallback, StreamResult, UpdateCallback
from petchat.core.store import ConfigStore
from petchat.providers.base import StreamingProvider
from petchat.providers.health import HealthChecker
from petchat.providers.ollama import OllamaProvider
from petchat.providers.router import build_provider, translation_config
from petchat.schemas.provider import ProviderType

logger = logging.getLogger(__name__)


class ProviderManager:
    """Owns the active adapter and the shared conversation history.

    History is only ever mutated here; adapters receive a snapshot. Call
    ``refresh_current_provider`` after changing a stored provider config.
    """

    def __init__(
        self,
        store: ConfigStore,
        *,
        settings: Optional[Settings] = None,
        history: Optional[ConversationHistory] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.history = history or ConversationHistory()
        self.clock = clock
        self._transport = transport
        self._provider_type = store.get_preferences().current_provider
        self._current: Optional[StreamingProvider] = None
        # Throwaway translation adapters stay referenced until they complete
        self._translators: Set[StreamingProvider] = set()
        self.health = HealthChecker(self.create_provider)
        self.refresh_current_provider()

    # Provider selection

    @property
    def provider_type(self) -> ProviderType:
        return self._provider_type

    @provider_type.setter
    def provider_type(self, value: ProviderType) -> None:
        value = ProviderType(value)
        prefs = self.store.get_preferences()
        if prefs.current_provider is not value:
            prefs.current_provider = value
            self.store.update_preferences(prefs)
        self._provider_type = value
        self.refresh_current_provider()

    @property
    def current_provider(self) -> Optional[StreamingProvider]:
        return self._current

    @property
    def is_current_provider_configured(self) -> bool:
        return self._current is not None and self._current.is_configured()

    def create_provider(self, provider_type: ProviderType) -> StreamingProvider:
        config = self.store.get_config(provider_type)
        api_key = self.store.get_api_key(provider_type)
        return build_provider(config, api_key, settings=self.settings, transport=self._transport)

    def refresh_current_provider(self) -> None:
        if self._current is not None:
            # The replaced adapter must not keep streaming into the caller
            self._current.cancel_current_request()
        self._current = self.create_provider(self._provider_type)
        logger.info("Switched to %s (model=%s)", self._provider_type.display_name, self._current.model)

    def test_connection(self, provider_type: ProviderType, on_result: HealthCallback) -> asyncio.Task:
        return self.health.check(provider_type, on_result)

    # Streaming operations

    def chat_stream(
        self,
        message: str,
        on_update: UpdateCallback,
        on_complete: CompleteCallback,
    ) -> Optional[asyncio.Task]:
        provider = self._current
        self.history.append("user", message)
        # The just-appended turn travels as `message`, not inside history
        history = self.history.turns()[:-1]
        system_prompt = build_chat_system_prompt(self.store.get_preferences(), self.clock())
        return provider.chat_stream(
            message,
            history,
            system_prompt,
            on_update,
            self._recording(on_complete),
        )

    def analyze_image_stream(
        self,
        image_base64: str,
        question: str,
        on_update: UpdateCallback,
        on_complete: CompleteCallback,
    ) -> Optional[asyncio.Task]:
        provider = self._current
        # Image bytes are never kept in history, only a marker
        self.history.append("user", image_history_entry(question))
        system_prompt = build_image_system_prompt(self.store.get_preferences())
        return provider.analyze_image_stream(
            image_base64,
            question,
            system_prompt,
            on_update,
            self._recording(on_complete),
        )

    def translate_stream(
        self,
        text: str,
        on_update: UpdateCallback,
        on_complete: CompleteCallback,
    ) -> Optional[asyncio.Task]:
        """One-shot translation on a throwaway adapter; shared history is untouched."""
        prefs = self.store.get_preferences()
        prompt = build_translation_prompt(text, prefs.translation_language)
        config = translation_config(self.store.get_config(self._provider_type))
        translator = build_provider(
            config,
            self.store.get_api_key(self._provider_type),
            settings=self.settings,
            transport=self._transport,
        )
        self._translators.add(translator)

        def _done(result: StreamResult) -> None:
            self._translators.discard(translator)
            on_complete(result)

        logger.debug("Translating with %s model=%s", translator.name, translator.model)
        return translator.chat_stream(prompt, [], TRANSLATOR_SYSTEM_PROMPT, on_update, _done)

    def cancel_current_request(self) -> None:
        if self._current is not None:
            self._current.cancel_current_request()

    def cancel_request(self, task: Optional[asyncio.Task]) -> None:
        """Cancel ``task`` only while it is still the active adapter's request."""
        if task is not None and self._current is not None and self._current.current_task is task:
            self._current.cancel_current_request()

    def clear_chat_history(self) -> None:
        self.history.clear()
        logger.info("Chat history cleared")

    async def list_local_models(self) -> List[str]:
        provider = OllamaProvider(
            self.store.get_config(ProviderType.OLLAMA),
            settings=self.settings,
            transport=self._transport,
        )
        return await provider.list_models()

    def _recording(self, on_complete: CompleteCallback) -> CompleteCallback:
        def _complete(result: StreamResult) -> None:
            if result.ok:
                self.history.append("assistant", result.text or "")
            on_complete(result)

        return _complete
