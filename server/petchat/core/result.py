from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional

from petchat.core.errors import ErrorKind, ProviderError


@dataclass(frozen=True)
class StreamResult:
    """Outcome of one streaming call: final text on success, a ProviderError otherwise."""

    text: Optional[str] = None
    error: Optional[ProviderError] = None

    @classmethod
    def success(cls, text: str) -> "StreamResult":
        return cls(text=text)

    @classmethod
    def failure(cls, error: ProviderError) -> "StreamResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def cancelled(self) -> bool:
        return self.error is not None and self.error.kind is ErrorKind.CANCELLED

    def unwrap(self) -> str:
        if self.error is not None:
            raise self.error
        return self.text or ""


UpdateCallback = Callable[[str], None]
CompleteCallback = Callable[[StreamResult], None]
HealthCallback = Callable[[bool], None]
