from __future__ import annotations
import asyncio
import logging
import re
from typing import Any, Iterable, List, Mapping, Optional, Set, Union

import httpx

from petchat.config import Settings, get_settings
from petchat.core.errors import (
    InvalidResponseError,
    NetworkError,
    NotConfiguredError,
    ProviderError,
    error_from_response,
)
from petchat.core.result import CompleteCallback, HealthCallback, UpdateCallback
from petchat.providers.decoders import FrameBufferOverflow
from petchat.providers.session import SessionState, StreamSession
from petchat.schemas.chat import CanonicalRequest, ConversationTurn, GenerationConfig, HTTPRequestSpec
from petchat.schemas.provider import ProviderConfig, ProviderType

logger = logging.getLogger(__name__)

HistoryLike = Iterable[Union[ConversationTurn, Mapping[str, str]]]

_ARTIFACTS = re.compile(
    r"<end_of_turn>|<start_of_turn>|<\|eot_id\|>|<\|end\|>|<\|start\|>|<\|im_end\|>|<\|im_start\|>",
    re.IGNORECASE,
)


def clean_model_output(text: str) -> str:
    """Strip chat-template control tokens some local models leak into their output."""
    return _ARTIFACTS.sub("", text).strip()


def as_turns(history: HistoryLike) -> List[ConversationTurn]:
    turns = []
    for item in history:
        if isinstance(item, ConversationTurn):
            turns.append(item)
        else:
            turns.append(ConversationTurn(role=item.get("role", ""), content=item.get("content", "")))
    return turns


class StreamingProvider:
    """Shared transport and session handling for the vendor adapters.

    Subclasses only shape requests and interpret frames. The adapter owns at
    most one StreamSession and the task driving it; starting a new stream
    cancels the previous one first.
    """

    provider_type: ProviderType
    read_timeout: Optional[float] = None

    def __init__(
        self,
        config: ProviderConfig,
        api_key: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.api_key = (api_key or "").strip()
        self.settings = settings or get_settings()
        self._transport = transport
        self._session: Optional[StreamSession] = None
        self._task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()

    @property
    def model(self) -> str:
        return self.config.model.strip()

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def name(self) -> str:
        return self.provider_type.value

    @property
    def session(self) -> Optional[StreamSession]:
        return self._session

    @property
    def current_task(self) -> Optional[asyncio.Task]:
        return self._task

    def is_configured(self) -> bool:
        if self.provider_type.requires_api_key and not self.api_key:
            return False
        return bool(self.model) and bool(self.base_url)

    def generation_config(self) -> GenerationConfig:
        return GenerationConfig.from_provider_config(self.config)

    # Hooks implemented per vendor

    def build_chat_request(self, request: CanonicalRequest) -> HTTPRequestSpec:
        raise NotImplementedError

    def build_image_request(self, request: CanonicalRequest) -> HTTPRequestSpec:
        raise NotImplementedError

    def new_decoder(self) -> Any:
        raise NotImplementedError

    def handle_frame(self, session: StreamSession, frame: Any) -> Optional[ProviderError]:
        """Apply one decoded frame; returning an error ends the stream with it."""
        raise NotImplementedError

    async def probe_health(self) -> bool:
        raise NotImplementedError

    def finish_stream(self, session: StreamSession, decoder: Any) -> None:
        for frame in decoder.finish():
            error = self.handle_frame(session, frame)
            if error is not None:
                session.fail(error)
                return
        if decoder.failed and not session.text:
            session.fail(InvalidResponseError("no decodable frame in response"))
            return
        session.succeed(clean_model_output(session.text))

    # Capability surface

    def chat_stream(
        self,
        message: str,
        history: HistoryLike,
        system_prompt: str,
        on_update: UpdateCallback,
        on_complete: CompleteCallback,
    ) -> Optional[asyncio.Task]:
        request = CanonicalRequest(
            message=message,
            history=as_turns(history),
            system_prompt=system_prompt,
            generation_config=self.generation_config(),
        )
        return self._start(request, on_update, on_complete)

    def analyze_image_stream(
        self,
        image_base64: str,
        question: str,
        system_prompt: str,
        on_update: UpdateCallback,
        on_complete: CompleteCallback,
    ) -> Optional[asyncio.Task]:
        request = CanonicalRequest(
            message=question,
            system_prompt=system_prompt,
            generation_config=self.generation_config(),
            image_base64=image_base64,
        )
        return self._start(request, on_update, on_complete)

    def cancel_current_request(self) -> None:
        session, task = self._session, self._task
        self._session = None
        self._task = None
        if task is not None and not task.done():
            task.cancel()
        if session is not None and session.cancel():
            logger.info("%s request cancelled", self.name)

    def check_health(self, on_result: HealthCallback) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._report_health(on_result))
        # The loop only keeps weak references to tasks
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def safe_probe(self) -> bool:
        if not self.is_configured():
            return False
        try:
            return await self.probe_health()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("%s health check failed: %r", self.name, exc)
            return False

    async def _report_health(self, on_result: HealthCallback) -> None:
        on_result(await self.safe_probe())

    # Transport

    def _client(self, timeout: Optional[httpx.Timeout] = None) -> httpx.AsyncClient:
        if timeout is None:
            timeout = httpx.Timeout(
                connect=self.settings.connect_timeout,
                read=self.read_timeout or self.settings.request_timeout,
                write=30.0,
                pool=10.0,
            )
        return httpx.AsyncClient(timeout=timeout, trust_env=True, transport=self._transport)

    def _health_client(self) -> httpx.AsyncClient:
        return self._client(httpx.Timeout(self.settings.health_timeout))

    def _start(
        self,
        request: CanonicalRequest,
        on_update: UpdateCallback,
        on_complete: CompleteCallback,
    ) -> Optional[asyncio.Task]:
        self.cancel_current_request()
        session = StreamSession(on_update, on_complete, provider=self.name)
        if not self.is_configured():
            session.fail(NotConfiguredError())
            return None
        try:
            spec = self.build_image_request(request) if request.has_image else self.build_chat_request(request)
        except ProviderError as exc:
            session.fail(exc)
            return None

        session.mark_requesting()
        self._session = session
        self._task = asyncio.get_running_loop().create_task(self._run(session, spec))
        return self._task

    async def _run(self, session: StreamSession, spec: HTTPRequestSpec) -> None:
        try:
            await self._stream(session, spec)
        except asyncio.CancelledError:
            # No-op when cancel_current_request already completed the session
            session.cancel()
            raise
        except FrameBufferOverflow as exc:
            logger.warning("%s stream aborted: %s", self.name, exc)
            session.fail(InvalidResponseError(str(exc)))
        except httpx.HTTPError as exc:
            logger.warning("%s request failed: %r", self.name, exc)
            session.fail(NetworkError(exc))
        except Exception as exc:
            logger.exception("%s stream crashed", self.name)
            session.fail(InvalidResponseError(f"unexpected stream failure: {exc!r}"))
        finally:
            if self._session is session:
                self._session = None
                self._task = None

    async def _stream(self, session: StreamSession, spec: HTTPRequestSpec) -> None:
        max_attempts = max(1, self.settings.max_connect_attempts)
        backoff = self.settings.retry_backoff
        logger.info("%s stream start model=%s", self.name, self.model)
        for attempt in range(1, max_attempts + 1):
            decoder = self.new_decoder()
            try:
                async with self._client() as client:
                    async with client.stream(spec.method, spec.url, headers=spec.headers, json=spec.body) as resp:
                        if resp.status_code >= 400:
                            body = await resp.aread()
                            error = error_from_response(resp.status_code, body, provider=self.name)
                            logger.warning("%s returned HTTP %s: %s", self.name, resp.status_code, error.message)
                            session.fail(error)
                            return
                        session.mark_streaming()
                        async for chunk in resp.aiter_bytes():
                            for frame in decoder.feed(chunk):
                                error = self.handle_frame(session, frame)
                                if error is not None:
                                    # Vendor error frames end the stream even if more bytes follow
                                    logger.warning("%s stream error: %s", self.name, error.message)
                                    session.fail(error)
                                    return
                        self.finish_stream(session, decoder)
                        return
            except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
                # Only safe to retry before anything was streamed
                if attempt < max_attempts and session.state is SessionState.REQUESTING:
                    logger.info("%s connect failed (%r), retrying in %.1fs", self.name, exc, backoff)
                    await asyncio.sleep(backoff)
                    backoff *= 2
                    continue
                raise
