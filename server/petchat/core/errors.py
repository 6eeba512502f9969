"""Error taxonomy shared by every provider adapter.

Adapters never raise across the callback boundary: failures are wrapped in one
of the classes below and delivered through ``on_complete``.
"""

from __future__ import annotations
import json
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    INVALID_API_KEY = "invalid_api_key"
    NETWORK_ERROR = "network_error"
    INVALID_RESPONSE = "invalid_response"
    RATE_LIMITED = "rate_limited"
    MODEL_NOT_FOUND = "model_not_found"
    SERVER_ERROR = "server_error"
    CANCELLED = "cancelled"


class ProviderError(Exception):
    kind: ErrorKind = ErrorKind.SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code


class NotConfiguredError(ProviderError):
    kind = ErrorKind.NOT_CONFIGURED

    def __init__(self, message: str = "provider is not configured", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class InvalidAPIKeyError(ProviderError):
    kind = ErrorKind.INVALID_API_KEY

    def __init__(self, message: str = "API key rejected", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class NetworkError(ProviderError):
    kind = ErrorKind.NETWORK_ERROR

    def __init__(self, cause: BaseException, **kwargs: Any) -> None:
        super().__init__(f"network error: {cause!r}", **kwargs)
        self.cause = cause
        self.__cause__ = cause


class InvalidResponseError(ProviderError):
    kind = ErrorKind.INVALID_RESPONSE

    def __init__(self, message: str = "invalid response from server", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class RateLimitedError(ProviderError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str = "rate limited", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class ModelNotFoundError(ProviderError):
    kind = ErrorKind.MODEL_NOT_FOUND

    def __init__(self, message: str = "model not found", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class ServerError(ProviderError):
    kind = ErrorKind.SERVER_ERROR


class RequestCancelledError(ProviderError):
    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "request cancelled", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


def extract_error_message(payload: Any) -> Optional[str]:
    """Pull ``error.message`` (or a bare ``error`` string) out of a vendor payload."""
    if isinstance(payload, list):
        # Google streams an error as an array element, possibly after content elements
        payload = next((item for item in payload if isinstance(item, dict) and "error" in item), None)
    if not isinstance(payload, dict):
        return None
    err = payload.get("error")
    if isinstance(err, dict):
        message = err.get("message")
        if isinstance(message, str) and message:
            return message
        etype = err.get("type")
        return str(etype) if etype else json.dumps(err)
    if isinstance(err, str) and err:
        return err
    return None


def error_from_response(
    status_code: int,
    body: bytes,
    *,
    provider: Optional[str] = None,
) -> ProviderError:
    text = body.decode("utf-8", errors="ignore").strip()
    message: Optional[str] = None
    try:
        message = extract_error_message(json.loads(text))
    except ValueError:
        pass
    detail = message or (f"HTTP {status_code}: {text}" if text else f"HTTP {status_code}")

    if status_code in (401, 403):
        return InvalidAPIKeyError(detail, provider=provider, status_code=status_code)
    if status_code == 429:
        return RateLimitedError(detail, provider=provider, status_code=status_code)
    if status_code == 404:
        return ModelNotFoundError(detail, provider=provider, status_code=status_code)
    return ServerError(detail, provider=provider, status_code=status_code)


_FRIENDLY = {
    ErrorKind.NOT_CONFIGURED: "The AI service is not configured. Add an API key in settings.",
    ErrorKind.INVALID_API_KEY: "Authentication/permission issue. Check your API key and model access.",
    ErrorKind.INVALID_RESPONSE: "The server returned an invalid response.",
    ErrorKind.RATE_LIMITED: "Too many requests. Please wait a moment and try again.",
    ErrorKind.MODEL_NOT_FOUND: "The selected model does not exist.",
    ErrorKind.CANCELLED: "Request cancelled.",
}


def friendly_message(error: BaseException) -> str:
    if not isinstance(error, ProviderError):
        return str(error)
    prefix = f"[{error.provider}] " if error.provider else ""
    if isinstance(error, NetworkError):
        return f"{prefix}Network error: {error.cause}"
    if isinstance(error, ServerError):
        return f"{prefix}Server error: {error.message}"
    return prefix + _FRIENDLY[error.kind]
