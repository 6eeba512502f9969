from __future__ import annotations
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List

from petchat.schemas.chat import ConversationTurn


MAX_HISTORY_ROUNDS = 20


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass
class HistoryEntry:
    role: str
    content: str
    created_at: str

    def as_turn(self) -> ConversationTurn:
        return ConversationTurn(role=self.role, content=self.content)


class ConversationHistory:
    """Shared chat memory, bounded to the most recent ``max_rounds`` user/assistant rounds."""

    def __init__(self, max_rounds: int = MAX_HISTORY_ROUNDS) -> None:
        self._lock = threading.Lock()
        self.max_rounds = max_rounds
        self._entries: List[HistoryEntry] = []

    @property
    def max_turns(self) -> int:
        return self.max_rounds * 2

    def append(self, role: str, content: str) -> None:
        entry = HistoryEntry(role=role, content=content, created_at=utcnow_iso())
        with self._lock:
            self._entries.append(entry)
            # Oldest turns are dropped, not archived
            overflow = len(self._entries) - self.max_turns
            if overflow > 0:
                del self._entries[:overflow]

    def turns(self) -> List[ConversationTurn]:
        with self._lock:
            return [e.as_turn() for e in self._entries]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
