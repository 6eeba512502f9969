"""Local HTTP bridge, exercised through FastAPI's TestClient with a mocked vendor."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from helpers import Collector, Recorder, chunked
from petchat.api.v1.chat import relay, sse
from petchat.main import create_app
from petchat.providers.manager import ProviderManager
from petchat.schemas.provider import ProviderType


def _events(text: str) -> list:
    return [json.loads(line[len("data: "):]) for line in text.splitlines() if line.startswith("data: ")]


def _ollama(req: httpx.Request) -> httpx.Response:
    if req.url.path == "/api/tags":
        return httpx.Response(200, json={"models": [{"name": "gemma3:4b"}]})
    return chunked('{"message":{"content":"Hi"}}\n', '{"message":{"content":"!"}}\n')


@pytest.fixture
def recorder() -> Recorder:
    return Recorder(_ollama)


@pytest.fixture
def client(store, settings, recorder) -> TestClient:
    app = create_app(store=store, transport=recorder.transport, settings=settings)
    return TestClient(app)


def test_healthz(client) -> None:
    assert client.get("/healthz").json() == {"status": "ok", "provider": "ollama"}


def test_chat_stream_relays_updates(client) -> None:
    resp = client.post("/api/v1/chat/stream", json={"message": "hello"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert _events(resp.text) == [
        {"content": "Hi"},
        {"content": "Hi!"},
        {"done": True, "content": "Hi!"},
    ]
    manager = client.app.state.manager
    assert [t.role for t in manager.history.turns()] == ["user", "assistant"]


def test_chat_stream_validates_body(client) -> None:
    assert client.post("/api/v1/chat/stream", json={"message": ""}).status_code == 422


def test_unconfigured_provider_streams_error(client) -> None:
    assert client.put("/api/v1/providers/current", json={"type": "openai"}).status_code == 200
    events = _events(client.post("/api/v1/chat/stream", json={"message": "hello"}).text)
    assert events == [{"error": "not_configured", "message": "[openai] The AI service is not configured. Add an API key in settings."}]


def test_image_and_translate_streams(client) -> None:
    events = _events(client.post("/api/v1/chat/image/stream", json={"image_base64": "QUJD"}).text)
    assert events[-1] == {"done": True, "content": "Hi!"}
    history = client.app.state.manager.history.turns()
    assert history[0].content == "[image] Please describe this image."

    events = _events(client.post("/api/v1/translate/stream", json={"text": "salut"}).text)
    assert events[-1] == {"done": True, "content": "Hi!"}
    assert len(client.app.state.manager.history) == 2


def test_clear_history_and_cancel(client) -> None:
    client.post("/api/v1/chat/stream", json={"message": "hello"})
    assert client.delete("/api/v1/chat/history").json() == {"cleared": True}
    assert len(client.app.state.manager.history) == 0
    assert client.post("/api/v1/chat/cancel").json() == {"cancelled": True}


def test_list_providers(client) -> None:
    providers = client.get("/api/v1/providers").json()
    assert [p["type"] for p in providers] == [t.value for t in ProviderType]
    ollama = providers[0]
    assert ollama["active"] is True
    assert ollama["configured"] is True
    assert ollama["requires_api_key"] is False
    openai = next(p for p in providers if p["type"] == "openai")
    assert openai["configured"] is False
    assert openai["models"][0] == openai["config"]["model"]


def test_update_config_and_key(client, store) -> None:
    resp = client.put("/api/v1/providers/custom/config", json={"endpoint": "https://gw.example.com", "model": "deepseek-chat"})
    assert resp.status_code == 200
    assert resp.json()["configured"] is False
    assert store.get_config(ProviderType.CUSTOM).endpoint == "https://gw.example.com"

    resp = client.put("/api/v1/providers/custom/api-key", json={"api_key": "sk-gw"})
    assert resp.json()["configured"] is True
    assert store.get_api_key(ProviderType.CUSTOM) == "sk-gw"

    client.put("/api/v1/providers/custom/api-key", json={"api_key": None})
    assert store.get_api_key(ProviderType.CUSTOM) is None


def test_update_config_rejects_out_of_range(client) -> None:
    resp = client.put("/api/v1/providers/openai/config", json={"temperature": 3.5})
    assert resp.status_code == 422


def test_provider_health_and_local_models(client) -> None:
    assert client.get("/api/v1/providers/ollama/health").json() == {"type": "ollama", "healthy": True}
    assert client.get("/api/v1/providers/gemini/health").json() == {"type": "gemini", "healthy": False}
    assert client.get("/api/v1/providers/ollama/models").json() == {"models": ["gemma3:4b"]}


def _hanging(req: httpx.Request) -> httpx.Response:
    return chunked('{"message":{"content":"Hi"}}\n', hang=True)


@pytest.mark.asyncio
async def test_disconnect_cancels_own_request(store, settings) -> None:
    manager = ProviderManager(store, settings=settings, transport=Recorder(_hanging).transport)
    events = relay(lambda up, done: manager.chat_stream("one", up, done), manager.cancel_request)
    assert await events.__anext__() == sse({"content": "Hi"})
    assert manager.current_provider.current_task is not None

    await events.aclose()
    assert manager.current_provider.current_task is None
    assert manager.current_provider.session is None


@pytest.mark.asyncio
async def test_disconnect_spares_newer_request(store, settings) -> None:
    manager = ProviderManager(store, settings=settings, transport=Recorder(_hanging).transport)
    first = relay(lambda up, done: manager.chat_stream("one", up, done), manager.cancel_request)
    assert await first.__anext__() == sse({"content": "Hi"})

    second = Collector()
    task = manager.chat_stream("two", second.on_update, second.on_complete)
    await first.aclose()

    await asyncio.wait_for(second.updated.wait(), 2.0)
    assert second.results == []
    assert manager.current_provider.current_task is task
    manager.cancel_current_request()
    assert second.result.cancelled
