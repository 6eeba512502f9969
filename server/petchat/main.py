from typing import Optional

import httpx
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.chat import router as chat_router
from .api.v1.providers import router as providers_router
from .config import Settings, get_settings
from .core.logging import setup_logging
from .core.store import ConfigStore, get_store
from .providers.manager import ProviderManager


def create_app(
    store: Optional[ConfigStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)
    app = FastAPI(title="PetChat Bridge", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(o) for o in settings.allowed_origins],
        allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.manager = ProviderManager(
        store if store is not None else get_store(settings),
        settings=settings,
        transport=transport,
    )

    api_v1 = APIRouter()
    api_v1.include_router(chat_router, prefix="/v1")
    api_v1.include_router(providers_router, prefix="/v1")
    app.include_router(api_v1, prefix="/api")

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        app.state.manager.cancel_current_request()

    @app.get("/healthz")
    def healthz():
        return {"status": "ok", "provider": app.state.manager.provider_type.value}

    @app.get("/")
    def root():
        return {"service": "petchat", "version": "0.1.0"}

    return app


app = create_app()
