from __future__ import annotations
import logging
from typing import Optional

from sqlalchemy.engine import Engine

from petchat.config import Settings, get_settings
from petchat.core.store import api_keys_from_settings, default_config
from petchat.db.models import APIKeyRecord, PreferencesRecord, ProviderConfigRecord
from petchat.db.session import get_session, init_db, make_engine
from petchat.schemas.provider import Preferences, ProviderConfig, ProviderType

logger = logging.getLogger(__name__)


class SQLConfigStore:
    """ConfigStore persisted through SQLModel tables."""

    def __init__(self, engine: Engine, settings: Optional[Settings] = None, *, seed_from_settings: bool = True) -> None:
        self.engine = engine
        self._settings = settings or get_settings()
        init_db(engine)
        if seed_from_settings:
            # Environment keys only fill gaps; a key saved by the user wins
            for provider_type, key in api_keys_from_settings(self._settings).items():
                if self.get_api_key(provider_type) is None:
                    self.save_api_key(provider_type, key)

    @classmethod
    def from_url(cls, database_url: str, settings: Optional[Settings] = None) -> "SQLConfigStore":
        return cls(make_engine(database_url), settings=settings)

    # Provider configs
    def get_config(self, provider_type: ProviderType) -> ProviderConfig:
        with get_session(self.engine) as session:
            row = session.get(ProviderConfigRecord, provider_type.value)
            if row is None:
                config = default_config(provider_type, self._settings)
                session.add(ProviderConfigRecord(**config.model_dump(mode="json")))
                return config
            return ProviderConfig(
                type=provider_type,
                endpoint=row.endpoint,
                model=row.model,
                enabled=row.enabled,
                enable_web_search=row.enable_web_search,
                max_tokens=row.max_tokens,
                temperature=row.temperature,
                top_p=row.top_p,
            )

    def update_config(self, config: ProviderConfig) -> None:
        values = config.model_dump(mode="json")
        with get_session(self.engine) as session:
            row = session.get(ProviderConfigRecord, config.type.value)
            if row is None:
                session.add(ProviderConfigRecord(**values))
                return
            for field, value in values.items():
                setattr(row, field, value)
            session.add(row)

    # Credentials
    def get_api_key(self, provider_type: ProviderType) -> Optional[str]:
        with get_session(self.engine) as session:
            row = session.get(APIKeyRecord, provider_type.value)
            return row.api_key if row else None

    def save_api_key(self, provider_type: ProviderType, api_key: str) -> None:
        with get_session(self.engine) as session:
            row = session.get(APIKeyRecord, provider_type.value)
            if row is None:
                row = APIKeyRecord(type=provider_type.value, api_key=api_key)
            else:
                row.api_key = api_key
            session.add(row)

    def delete_api_key(self, provider_type: ProviderType) -> None:
        with get_session(self.engine) as session:
            row = session.get(APIKeyRecord, provider_type.value)
            if row is not None:
                session.delete(row)

    # Preferences
    def get_preferences(self) -> Preferences:
        with get_session(self.engine) as session:
            row = session.get(PreferencesRecord, 1)
            if row is None:
                return Preferences()
            return Preferences(
                current_provider=row.current_provider,
                translation_language=row.translation_language,
                chat_prompt=row.chat_prompt,
                image_prompt=row.image_prompt,
                pet_name=row.pet_name,
                pet_nickname=row.pet_nickname,
                owner_name=row.owner_name,
            )

    def update_preferences(self, prefs: Preferences) -> None:
        values = prefs.model_dump(mode="json")
        with get_session(self.engine) as session:
            row = session.get(PreferencesRecord, 1)
            if row is None:
                session.add(PreferencesRecord(id=1, **values))
                return
            for field, value in values.items():
                setattr(row, field, value)
            session.add(row)
        logger.debug("Preferences saved (provider=%s)", prefs.current_provider.value)
