"""Test helpers: a recording mock transport and a callback collector.

Streaming bodies are async generators so chunk boundaries land exactly where
a test puts them.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any, Callable, List, Optional, Union

import httpx

from petchat.core.result import StreamResult
from petchat.schemas.provider import ProviderConfig, ProviderType

Chunk = Union[str, bytes]

# Friday
FIXED_NOW = datetime(2025, 3, 14, 9, 26)


def chunked(*chunks: Chunk, status_code: int = 200, hang: bool = False) -> httpx.Response:
    """Response whose body arrives as the given chunks; ``hang`` keeps it open afterwards."""

    async def body():
        for chunk in chunks:
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
        if hang:
            await asyncio.sleep(30)

    return httpx.Response(status_code, content=body())


class Recorder:
    """MockTransport that records every request and answers via ``responder``."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: List[httpx.Request] = []
        self._responder = responder
        self.transport = httpx.MockTransport(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


class Collector:
    """Captures on_update / on_complete calls of one streaming call."""

    def __init__(self) -> None:
        self.updates: List[str] = []
        self.results: List[StreamResult] = []
        self.updated = asyncio.Event()
        self.completed = asyncio.Event()

    def on_update(self, text: str) -> None:
        self.updates.append(text)
        self.updated.set()

    def on_complete(self, result: StreamResult) -> None:
        self.results.append(result)
        self.completed.set()

    @property
    def result(self) -> Optional[StreamResult]:
        return self.results[0] if self.results else None

    async def wait(self, timeout: float = 2.0) -> StreamResult:
        await asyncio.wait_for(self.completed.wait(), timeout)
        return self.results[0]


def make_config(provider_type: ProviderType, **overrides: Any) -> ProviderConfig:
    return ProviderConfig.defaults(provider_type, **overrides)
