from __future__ import annotations
import asyncio
import json
import logging
from typing import AsyncIterator, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from petchat.core.errors import friendly_message
from petchat.core.result import CompleteCallback, StreamResult, UpdateCallback
from petchat.providers.manager import ProviderManager
from petchat.schemas.chat import ChatStreamRequest, ImageStreamRequest, TranslateStreamRequest

router = APIRouter()
logger = logging.getLogger(__name__)

StartFn = Callable[[UpdateCallback, CompleteCallback], Optional[asyncio.Task]]
DisconnectFn = Callable[[Optional[asyncio.Task]], None]


def get_manager(request: Request) -> ProviderManager:
    return request.app.state.manager


def sse(payload: Dict) -> str:
    return "data: " + json.dumps(payload, ensure_ascii=False) + "\n\n"


async def relay(start: StartFn, on_disconnect: DisconnectFn) -> AsyncIterator[str]:
    """Turn the on_update/on_complete pair into an SSE event stream."""
    queue: asyncio.Queue = asyncio.Queue()

    def on_update(text: str) -> None:
        queue.put_nowait(("update", text))

    def on_complete(result: StreamResult) -> None:
        queue.put_nowait(("complete", result))

    task = start(on_update, on_complete)
    finished = False
    try:
        while True:
            kind, value = await queue.get()
            if kind == "update":
                yield sse({"content": value})
                continue
            finished = True
            if value.ok:
                yield sse({"done": True, "content": value.text})
            else:
                yield sse({"error": value.error.kind.value, "message": friendly_message(value.error)})
            return
    finally:
        if not finished:
            # Client went away mid-stream
            on_disconnect(task)


def _streaming(gen: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        gen,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.post("/chat/stream")
async def stream_chat(body: ChatStreamRequest, manager: ProviderManager = Depends(get_manager)):
    """Stream a chat reply from the active provider."""
    logger.info("/chat/stream provider=%s history=%d", manager.provider_type.value, len(manager.history))
    return _streaming(
        relay(
            lambda up, done: manager.chat_stream(body.message, up, done),
            manager.cancel_request,
        )
    )


@router.post("/chat/image/stream")
async def stream_image(body: ImageStreamRequest, manager: ProviderManager = Depends(get_manager)):
    return _streaming(
        relay(
            lambda up, done: manager.analyze_image_stream(body.image_base64, body.question, up, done),
            manager.cancel_request,
        )
    )


@router.post("/translate/stream")
async def stream_translate(body: TranslateStreamRequest, manager: ProviderManager = Depends(get_manager)):
    # Translation runs on its own adapter, disconnects just drop the events
    return _streaming(
        relay(
            lambda up, done: manager.translate_stream(body.text, up, done),
            lambda task: None,
        )
    )


@router.post("/chat/cancel")
async def cancel_chat(manager: ProviderManager = Depends(get_manager)) -> Dict[str, bool]:
    manager.cancel_current_request()
    return {"cancelled": True}


@router.delete("/chat/history")
async def clear_history(manager: ProviderManager = Depends(get_manager)) -> Dict[str, bool]:
    manager.clear_chat_history()
    return {"cleared": True}
