from __future__ import annotations
import logging
from enum import Enum
from typing import Optional

from petchat.core.errors import ProviderError, RequestCancelledError
from petchat.core.result import CompleteCallback, StreamResult, UpdateCallback

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED})


class StreamSession:
    """State of one in-flight streaming call.

    ``on_update`` only ever sees a strictly growing accumulated text and
    ``on_complete`` fires exactly once; after a terminal state both callbacks
    are dropped so a late frame can never reach the caller.
    """

    def __init__(self, on_update: UpdateCallback, on_complete: CompleteCallback, *, provider: str = "") -> None:
        self.provider = provider
        self.state = SessionState.IDLE
        self.text = ""
        self._on_update: Optional[UpdateCallback] = on_update
        self._on_complete: Optional[CompleteCallback] = on_complete

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def mark_requesting(self) -> None:
        if self.state is SessionState.IDLE:
            self.state = SessionState.REQUESTING

    def mark_streaming(self) -> None:
        if self.state in (SessionState.IDLE, SessionState.REQUESTING):
            self.state = SessionState.STREAMING

    def append(self, delta: str) -> None:
        if delta:
            self.replace(self.text + delta)

    def replace(self, text: str) -> None:
        """Publish a new accumulated text; shorter or identical text is ignored."""
        if self.finished or len(text) <= len(self.text) or text == self.text:
            return
        self.text = text
        if self._on_update is not None:
            self._on_update(text)

    def succeed(self, text: str) -> bool:
        return self._finish(SessionState.COMPLETED, StreamResult.success(text))

    def fail(self, error: ProviderError) -> bool:
        if error.provider is None:
            error.provider = self.provider or None
        return self._finish(SessionState.FAILED, StreamResult.failure(error))

    def cancel(self) -> bool:
        return self._finish(
            SessionState.CANCELLED,
            StreamResult.failure(RequestCancelledError(provider=self.provider or None)),
        )

    def _finish(self, state: SessionState, result: StreamResult) -> bool:
        if self.finished:
            return False
        self.state = state
        callback = self._on_complete
        self._on_complete = None
        self._on_update = None
        logger.debug("%s session -> %s", self.provider, state.value)
        if callback is not None:
            callback(result)
        return True
