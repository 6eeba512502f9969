from __future__ import annotations

import httpx
import pytest

from petchat.core.errors import (
    ErrorKind,
    InvalidAPIKeyError,
    ModelNotFoundError,
    NetworkError,
    NotConfiguredError,
    ProviderError,
    RateLimitedError,
    ServerError,
    error_from_response,
    extract_error_message,
    friendly_message,
)
from petchat.core.result import StreamResult


@pytest.mark.parametrize(
    "status,cls",
    [
        (401, InvalidAPIKeyError),
        (403, InvalidAPIKeyError),
        (429, RateLimitedError),
        (404, ModelNotFoundError),
        (500, ServerError),
        (529, ServerError),
    ],
)
def test_status_mapping(status: int, cls: type) -> None:
    err = error_from_response(status, b"", provider="openai")
    assert isinstance(err, cls)
    assert err.status_code == status
    assert err.provider == "openai"


def test_vendor_message_is_unwrapped() -> None:
    body = b'{"type":"error","error":{"type":"overloaded_error","message":"Overloaded"}}'
    err = error_from_response(529, body)
    assert err.message == "Overloaded"


def test_plain_body_kept_in_message() -> None:
    err = error_from_response(502, b"Bad Gateway")
    assert err.message == "HTTP 502: Bad Gateway"


def test_extract_error_message_variants() -> None:
    assert extract_error_message([{"error": {"message": "quota"}}]) == "quota"
    assert extract_error_message([{"candidates": []}, {"error": {"message": "overloaded"}}]) == "overloaded"
    assert extract_error_message([{"candidates": []}]) is None
    assert extract_error_message({"error": "model 'x' not found"}) == "model 'x' not found"
    assert extract_error_message({"error": {"type": "invalid_request_error"}}) == "invalid_request_error"
    assert extract_error_message({"choices": []}) is None
    assert extract_error_message("nope") is None


def test_network_error_keeps_cause() -> None:
    cause = httpx.ConnectError("refused")
    err = NetworkError(cause, provider="ollama")
    assert err.cause is cause
    assert err.__cause__ is cause
    assert err.kind is ErrorKind.NETWORK_ERROR


def test_friendly_messages() -> None:
    assert "not configured" in friendly_message(NotConfiguredError())
    assert friendly_message(ServerError("Overloaded", provider="anthropic")) == "[anthropic] Server error: Overloaded"
    assert friendly_message(ValueError("plain")) == "plain"
    for kind_error in (InvalidAPIKeyError(), RateLimitedError(), ModelNotFoundError()):
        assert friendly_message(kind_error)


def test_result_unwrap() -> None:
    assert StreamResult.success("ok").unwrap() == "ok"
    with pytest.raises(ProviderError):
        StreamResult.failure(ServerError("x")).unwrap()
