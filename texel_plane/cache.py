import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class RequestCache:
    """
    Deduplicates requests by key for a short time.

    Concurrent callers of the same key share one in-flight task, later
    callers reuse its result until ``ttl`` seconds after it was started.
    Failed requests are forgotten as soon as they fail.
    """

    def __init__(self, ttl: float = 5.0, clock: Clock = time.monotonic) -> None:
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, tuple[float, asyncio.Future]] = {}

    def __len__(self) -> int:
        self._evict_expired()
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        self._evict_expired()
        return key in self._entries

    def _evict_expired(self) -> None:
        now = self.clock()
        expired = [k for k, (created, _) in self._entries.items() if now - created >= self.ttl]
        for key in expired:
            del self._entries[key]

    def _forget_failed(self, key: str, future: asyncio.Future) -> None:
        if not future.cancelled() and future.exception() is None:
            return
        entry = self._entries.get(key)
        if entry is not None and entry[1] is future:
            del self._entries[key]

    async def get(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        self._evict_expired()
        entry = self._entries.get(key)
        if entry is None:
            future = asyncio.ensure_future(factory())
            self._entries[key] = (self.clock(), future)
            future.add_done_callback(lambda f: self._forget_failed(key, f))
        else:
            logger.debug("Request cache hit, %d entries cached", len(self._entries))
            future = entry[1]

        return await asyncio.shield(future)

    def clear(self) -> None:
        self._entries.clear()
