from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from typing import Any, Dict, List

from petchat.api.v1.chat import get_manager
from petchat.providers.manager import ProviderManager
from petchat.schemas.chat import APIKeyUpdate, SwitchProviderRequest
from petchat.schemas.provider import ProviderConfig, ProviderSummary, ProviderType

router = APIRouter()


def _summary(manager: ProviderManager, provider_type: ProviderType) -> ProviderSummary:
    provider = manager.create_provider(provider_type)
    return ProviderSummary(
        type=provider_type,
        name=provider_type.display_name,
        models=provider_type.recommended_models,
        requires_api_key=provider_type.requires_api_key,
        supports_vision=provider_type.supports_vision,
        configured=provider.is_configured(),
        config=provider.config,
        active=provider_type is manager.provider_type,
    )


@router.get("/providers")
async def list_providers(manager: ProviderManager = Depends(get_manager)) -> List[ProviderSummary]:
    """Every provider type with its metadata and stored configuration."""
    return [_summary(manager, t) for t in ProviderType]


@router.put("/providers/current")
async def switch_provider(body: SwitchProviderRequest, manager: ProviderManager = Depends(get_manager)) -> ProviderSummary:
    manager.provider_type = body.type
    return _summary(manager, body.type)


@router.put("/providers/{provider_type}/config")
async def update_config(
    provider_type: ProviderType,
    changes: Dict[str, Any],
    manager: ProviderManager = Depends(get_manager),
) -> ProviderSummary:
    current = manager.store.get_config(provider_type)
    changes.pop("type", None)
    try:
        config = ProviderConfig(**{**current.model_dump(), **changes})
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))
    manager.store.update_config(config)
    if provider_type is manager.provider_type:
        manager.refresh_current_provider()
    return _summary(manager, provider_type)


@router.put("/providers/{provider_type}/api-key")
async def update_api_key(
    provider_type: ProviderType,
    body: APIKeyUpdate,
    manager: ProviderManager = Depends(get_manager),
) -> ProviderSummary:
    if body.api_key:
        manager.store.save_api_key(provider_type, body.api_key)
    else:
        manager.store.delete_api_key(provider_type)
    if provider_type is manager.provider_type:
        manager.refresh_current_provider()
    return _summary(manager, provider_type)


@router.get("/providers/{provider_type}/health")
async def provider_health(provider_type: ProviderType, manager: ProviderManager = Depends(get_manager)) -> Dict[str, Any]:
    ok = await manager.health.probe(provider_type)
    return {"type": provider_type.value, "healthy": ok}


@router.get("/providers/ollama/models")
async def local_models(manager: ProviderManager = Depends(get_manager)) -> Dict[str, List[str]]:
    return {"models": await manager.list_local_models()}
