"""Incremental frame decoders for the three streaming framings we talk to.

Each decoder is fed raw network chunks and returns the frames that became
complete. Partial or malformed input is kept (or dropped) silently and never
raises, except when the Google-style array buffer exceeds its hard cap.
"""

from __future__ import annotations
import json
import logging
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data: "
SSE_DONE = "[DONE]"
# Gateways that forget the SSE prefix still send recognisable JSON lines
_BARE_FRAME_MARKERS = ('"choices"', '"delta"', '"content"', '"error"')


class FrameBufferOverflow(Exception):
    pass


class LineBuffer:
    """Splits a byte stream on ``\\n`` and keeps the unterminated tail."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> List[bytes]:
        self._buffer.extend(chunk)
        lines: List[bytes] = []
        while True:
            idx = self._buffer.find(b"\n")
            if idx < 0:
                break
            lines.append(bytes(self._buffer[:idx]))
            del self._buffer[: idx + 1]
        return lines

    def flush(self) -> Optional[bytes]:
        if not self._buffer:
            return None
        tail = bytes(self._buffer)
        self._buffer.clear()
        return tail

    def __len__(self) -> int:
        return len(self._buffer)


def _loads(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return None


class NDJSONDecoder:
    """One JSON object per line (local inference servers)."""

    def __init__(self) -> None:
        self._lines = LineBuffer()
        self.frames_seen = 0
        self.saw_bytes = False

    def _decode(self, raw: bytes) -> Optional[dict]:
        text = raw.decode("utf-8", errors="ignore").strip()
        if not text:
            return None
        obj = _loads(text)
        if isinstance(obj, dict):
            self.frames_seen += 1
            return obj
        logger.debug("Skipping unparseable NDJSON line: %.200s", text)
        return None

    def feed(self, chunk: bytes) -> List[dict]:
        if chunk:
            self.saw_bytes = True
        frames = []
        for line in self._lines.feed(chunk):
            frame = self._decode(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def finish(self) -> List[dict]:
        tail = self._lines.flush()
        if tail is None:
            return []
        frame = self._decode(tail)
        return [frame] if frame is not None else []

    @property
    def failed(self) -> bool:
        return self.saw_bytes and self.frames_seen == 0


class SSEDecoder:
    """``data: {...}`` lines, terminated by ``data: [DONE]``."""

    def __init__(self, accept_bare_json: bool = False) -> None:
        self._lines = LineBuffer()
        self.accept_bare_json = accept_bare_json
        self.frames_seen = 0
        self.saw_bytes = False
        self.done = False

    def _decode(self, raw: bytes) -> Optional[dict]:
        line = raw.decode("utf-8", errors="ignore").strip()
        if not line:
            return None
        if line.startswith(SSE_DATA_PREFIX):
            payload = line[len(SSE_DATA_PREFIX):].strip()
            if payload == SSE_DONE:
                self.done = True
                self.frames_seen += 1
                return None
        elif self.accept_bare_json and any(m in line for m in _BARE_FRAME_MARKERS):
            payload = line
        else:
            # event:, id:, retry: and comment lines carry nothing we need
            return None
        obj = _loads(payload)
        if isinstance(obj, dict):
            self.frames_seen += 1
            return obj
        logger.debug("Skipping partial SSE frame: %.200s", payload)
        return None

    def feed(self, chunk: bytes) -> List[dict]:
        if chunk:
            self.saw_bytes = True
        frames = []
        for line in self._lines.feed(chunk):
            frame = self._decode(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def finish(self) -> List[dict]:
        tail = self._lines.flush()
        if tail is None:
            return []
        frame = self._decode(tail)
        return [frame] if frame is not None else []

    @property
    def failed(self) -> bool:
        return self.saw_bytes and self.frames_seen == 0


class JSONArrayDecoder:
    """A single top-level JSON array delivered incrementally.

    While the array is still open the decoder tries ``buffer + "]"``; a failed
    attempt just waits for more bytes. A successful parse yields the whole
    array so far (a snapshot, not a delta). Parsing is only attempted when the
    new chunk could have closed an element, and the buffer is capped at
    ``max_bytes``.
    """

    def __init__(self, max_bytes: int = 8 * 1024 * 1024) -> None:
        self.max_bytes = max_bytes
        self._buffer = bytearray()
        self.frames_seen = 0
        self.parse_attempts = 0

    @property
    def text(self) -> str:
        return self._buffer.decode("utf-8", errors="ignore").strip()

    def _try_parse(self, final: bool) -> Any:
        text = self.text
        if not text:
            return None
        if not final and text.startswith("[") and not text.endswith("]"):
            text += "]"
        self.parse_attempts += 1
        return _loads(text)

    def feed(self, chunk: bytes) -> List[list]:
        self._buffer.extend(chunk)
        if len(self._buffer) > self.max_bytes:
            raise FrameBufferOverflow(f"streamed array exceeded {self.max_bytes} bytes")
        if b"}" not in chunk and b"]" not in chunk:
            return []
        parsed = self._try_parse(final=False)
        if isinstance(parsed, list):
            self.frames_seen += 1
            return [parsed]
        return []

    def finish(self) -> Any:
        """Parse the complete body; returns a list, an error object, or None."""
        parsed = self._try_parse(final=True)
        if parsed is None and self.text.startswith("["):
            # A truncated but otherwise valid array still counts
            parsed = self._try_parse(final=False)
        if isinstance(parsed, (list, dict)):
            self.frames_seen += 1
            return parsed
        return None

    @property
    def failed(self) -> bool:
        return bool(self._buffer) and self.frames_seen == 0
