from __future__ import annotations

import httpx
import pytest

from helpers import Collector, Recorder, chunked, make_config
from petchat.core.errors import ErrorKind
from petchat.providers.anthropic import FALLBACK_MAX_TOKENS, AnthropicProvider
from petchat.schemas.provider import ProviderType

SSE_REPLY = (
    'event: message_start\ndata: {"type":"message_start","message":{"id":"msg_1"}}\n\n'
    'event: content_block_start\ndata: {"type":"content_block_start","index":0}\n\n',
    'event: content_block_delta\ndata: {"type":"content_block_delta","delta":{"type":"text_delta","text":"Meow"}}\n\n',
    'event: content_block_delta\ndata: {"type":"content_block_del',
    'ta","delta":{"type":"text_delta","text":" meow"}}\n\n',
    'event: message_stop\ndata: {"type":"message_stop"}\n\n',
)


def _provider(settings, recorder: Recorder, **overrides) -> AnthropicProvider:
    config = make_config(ProviderType.ANTHROPIC, **overrides)
    return AnthropicProvider(config, "sk-ant-test", settings=settings, transport=recorder.transport)


@pytest.mark.asyncio
async def test_max_tokens_never_omitted(settings) -> None:
    recorder = Recorder(lambda req: chunked(*SSE_REPLY))
    provider = _provider(settings, recorder, max_tokens=0, enable_web_search=False)
    out = Collector()
    provider.chat_stream("hi", [], "", out.on_update, out.on_complete)
    result = await out.wait()

    body = recorder.body()
    assert body["max_tokens"] == FALLBACK_MAX_TOKENS
    assert "system" not in body
    assert "tools" not in body
    assert out.updates == ["Meow", "Meow meow"]
    assert result.text == "Meow meow"


@pytest.mark.asyncio
async def test_request_shape(settings) -> None:
    recorder = Recorder(lambda req: chunked(*SSE_REPLY))
    provider = _provider(settings, recorder, max_tokens=1024, temperature=0.7, top_p=0.9)
    out = Collector()
    history = [
        {"role": "user", "content": "q1"},
        {"role": "assistant", "content": "a1"},
        {"role": "function", "content": "tool output"},
    ]
    provider.chat_stream("q2", history, "Be a cat.", out.on_update, out.on_complete)
    await out.wait()

    req = recorder.last
    assert req.url == "https://api.anthropic.com/v1/messages"
    assert req.headers["x-api-key"] == "sk-ant-test"
    assert req.headers["anthropic-version"] == "2023-06-01"
    body = recorder.body()
    assert body["system"] == "Be a cat."
    assert body["max_tokens"] == 1024
    assert body["temperature"] == 0.7
    assert body["top_p"] == 0.9
    assert body["stream"] is True
    # Non-user roles collapse to assistant; the system prompt never becomes a message
    assert body["messages"] == [
        {"role": "user", "content": "q1"},
        {"role": "assistant", "content": "a1"},
        {"role": "assistant", "content": "tool output"},
        {"role": "user", "content": "q2"},
    ]
    assert body["tools"][0]["name"] == "web_search"


@pytest.mark.asyncio
async def test_image_content_blocks(settings) -> None:
    recorder = Recorder(lambda req: chunked(*SSE_REPLY))
    provider = _provider(settings, recorder)
    out = Collector()
    provider.analyze_image_stream("QUJD", "what?", "sys", out.on_update, out.on_complete)
    await out.wait()
    content = recorder.body()["messages"][0]["content"]
    assert content[0] == {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": "QUJD"}}
    assert content[1] == {"type": "text", "text": "what?"}


@pytest.mark.asyncio
async def test_error_event_short_circuits(settings) -> None:
    recorder = Recorder(
        lambda req: chunked(
            SSE_REPLY[1],
            'event: error\ndata: {"type":"error","error":{"type":"overloaded_error","message":"Overloaded"}}\n\n',
            SSE_REPLY[2],
        )
    )
    provider = _provider(settings, recorder)
    out = Collector()
    provider.chat_stream("hi", [], "", out.on_update, out.on_complete)
    result = await out.wait()
    assert result.error.kind is ErrorKind.SERVER_ERROR
    assert result.error.message == "Overloaded"
    assert out.updates == ["Meow"]


@pytest.mark.asyncio
async def test_unauthorized_maps_to_invalid_key(settings) -> None:
    recorder = Recorder(
        lambda req: httpx.Response(
            401, json={"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}}
        )
    )
    provider = _provider(settings, recorder)
    out = Collector()
    provider.chat_stream("hi", [], "", out.on_update, out.on_complete)
    result = await out.wait()
    assert result.error.kind is ErrorKind.INVALID_API_KEY
    assert result.error.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,payload,expected",
    [
        (200, {"content": []}, True),
        (503, {"error": {"type": "api_error"}}, False),
        (400, {"error": {"type": "invalid_request_error", "message": "model: claude-nope"}}, False),
        (400, {"error": {"type": "invalid_request_error", "message": "credit balance is too low"}}, True),
        (429, {"error": {"type": "rate_limit_error", "message": "slow down"}}, True),
    ],
)
async def test_health(settings, status: int, payload: dict, expected: bool) -> None:
    recorder = Recorder(lambda req: httpx.Response(status, json=payload))
    provider = _provider(settings, recorder, model="claude-nope")
    assert await provider.probe_health() is expected
    body = recorder.body()
    assert body["max_tokens"] == 1
    assert "stream" not in body
