from __future__ import annotations

import httpx
import pytest

from helpers import Recorder, make_config
from petchat.providers.health import HealthChecker
from petchat.providers.router import build_provider
from petchat.schemas.provider import ProviderType


def _checker(settings, respond, keys=None) -> HealthChecker:
    keys = keys or {}
    transport = Recorder(respond).transport

    def factory(provider_type: ProviderType):
        config = make_config(provider_type, endpoint="https://example.com")
        return build_provider(config, keys.get(provider_type), settings=settings, transport=transport)

    return HealthChecker(factory)


@pytest.mark.asyncio
async def test_check_all_resolves_every_type(settings) -> None:
    checker = _checker(
        settings,
        lambda req: httpx.Response(200, json={"models": []}),
        keys={ProviderType.OPENAI: "sk-x", ProviderType.GEMINI: "AIza-x"},
    )
    results = await checker.check_all()
    assert set(results) == set(ProviderType)
    assert results[ProviderType.OLLAMA] is True
    assert results[ProviderType.OPENAI] is True
    assert results[ProviderType.GEMINI] is True
    # No key, no probe
    assert results[ProviderType.ANTHROPIC] is False
    assert results[ProviderType.CUSTOM] is False


@pytest.mark.asyncio
async def test_probe_never_raises(settings) -> None:
    def respond(req: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=req)

    checker = _checker(settings, respond)
    assert await checker.probe(ProviderType.OLLAMA) is False


@pytest.mark.asyncio
async def test_probe_survives_factory_failure() -> None:
    def factory(provider_type: ProviderType):
        raise RuntimeError("store unavailable")

    assert await HealthChecker(factory).probe(ProviderType.OLLAMA) is False


@pytest.mark.asyncio
async def test_check_delivers_result_through_callback(settings) -> None:
    checker = _checker(settings, lambda req: httpx.Response(503))
    seen = []
    await checker.check(ProviderType.OLLAMA, seen.append)
    assert seen == [False]
