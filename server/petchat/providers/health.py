from __future__ import annotations
import asyncio
import logging
from typing import Callable, Dict, Iterable, Optional, Set

from petchat.core.result import HealthCallback
from petchat.providers.base import StreamingProvider
from petchat.schemas.provider import ProviderType

logger = logging.getLogger(__name__)


class HealthChecker:
    """Uniform reachability probe over every provider type.

    Probes never raise: unconfigured providers, transport failures and
    unexpected payloads all resolve to ``False``.
    """

    def __init__(self, factory: Callable[[ProviderType], StreamingProvider]) -> None:
        self._factory = factory
        self._pending: Set[asyncio.Task] = set()

    async def probe(self, provider_type: ProviderType) -> bool:
        try:
            provider = self._factory(provider_type)
        except Exception as exc:
            logger.warning("Could not build %s for health check: %r", provider_type.value, exc)
            return False
        ok = await provider.safe_probe()
        logger.info("Health %s: %s", provider_type.value, "ok" if ok else "unavailable")
        return ok

    def check(self, provider_type: ProviderType, on_result: HealthCallback) -> asyncio.Task:
        async def _run() -> None:
            on_result(await self.probe(provider_type))

        task = asyncio.get_running_loop().create_task(_run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def check_all(self, types: Optional[Iterable[ProviderType]] = None) -> Dict[ProviderType, bool]:
        selected = list(types) if types is not None else list(ProviderType)
        results = await asyncio.gather(*(self.probe(t) for t in selected))
        return dict(zip(selected, results))
