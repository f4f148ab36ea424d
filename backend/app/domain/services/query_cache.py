"""
Query Cache
Short-lived cache for lead queries, invalidated
through a small publish/subscribe bus
"""
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Tuple

logger = logging.getLogger(__name__)

LEADS_KEY = "leads"
LEAD_KEY = "lead"

QueryKey = Tuple[Hashable, ...]
InvalidationHandler = Callable[[str], None]


class InvalidationBus:
    """
    Fan-out of "invalidate(key)" messages.

    Publishers (mutations, the realtime bridge) only know the bus;
    subscribers decide what a key means to them.
    """

    def __init__(self):
        self._subscribers: List[InvalidationHandler] = []

    def subscribe(self, handler: InvalidationHandler) -> Callable[[], None]:
        """Register a handler. Returns a function that unregisters it."""
        self._subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return unsubscribe

    def publish(self, key: str) -> None:
        for handler in list(self._subscribers):
            try:
                handler(key)
            except Exception as e:
                logger.error(f"Invalidation handler failed for '{key}': {e}")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


@dataclass
class _CacheEntry:
    value: Any
    stored_at: float


class QueryCache:
    """
    Caches query results by key tuple; the first element is the key prefix
    that invalidation targets (("leads",), ("lead", table, id)).

    A result is only stored when it is still current: no invalidation of its
    prefix happened while it was in flight, and no newer request for the
    same key started after it. Stale results are returned to their caller
    but never cached.
    """

    def __init__(
        self,
        bus: Optional[InvalidationBus] = None,
        ttl_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[QueryKey, _CacheEntry] = {}
        self._generations: Dict[Hashable, int] = {}
        self._latest_request: Dict[QueryKey, int] = {}
        self._sequence = itertools.count(1)
        self._unsubscribe: Optional[Callable[[], None]] = None
        if bus is not None:
            self._unsubscribe = bus.subscribe(self.invalidate)

    def generation(self, prefix: Hashable) -> int:
        return self._generations.get(prefix, 0)

    def get(self, key: QueryKey) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return entry.value

    async def get_or_fetch(self, key: QueryKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value for key, or await fetcher() and cache it.

        Exceptions from fetcher propagate and nothing is cached.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for {key[0]}")
            return cached

        prefix = key[0]
        generation = self.generation(prefix)
        request_id = next(self._sequence)
        self._latest_request[key] = request_id

        value = await fetcher()

        if self.generation(prefix) != generation or self._latest_request.get(key) != request_id:
            logger.debug(f"Discarding stale response for {prefix}")
            return value

        self._entries[key] = _CacheEntry(value=value, stored_at=self._clock())
        self._latest_request.pop(key, None)
        return value

    def invalidate(self, prefix: Hashable) -> None:
        """Drop every entry under prefix and mark in-flight requests stale."""
        self._generations[prefix] = self.generation(prefix) + 1
        for key in [k for k in self._entries if k[0] == prefix]:
            del self._entries[key]
        logger.debug(f"Invalidated cache prefix '{prefix}'")

    def clear(self) -> None:
        self._entries.clear()
        self._latest_request.clear()

    def close(self) -> None:
        """Detach from the invalidation bus."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __len__(self) -> int:
        return len(self._entries)


_bus: Optional[InvalidationBus] = None
_cache: Optional[QueryCache] = None


def get_invalidation_bus() -> InvalidationBus:
    """Process-wide invalidation bus."""
    global _bus
    if _bus is None:
        _bus = InvalidationBus()
    return _bus


def get_query_cache() -> QueryCache:
    """Process-wide query cache, subscribed to the invalidation bus."""
    global _cache
    if _cache is None:
        from app.core.config import get_settings
        _cache = QueryCache(bus=get_invalidation_bus(), ttl_seconds=get_settings().cache_ttl_seconds)
    return _cache
