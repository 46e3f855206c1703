"""In-process TTL cache with stale fallback.

Used for read-mostly lookups that can tolerate slightly old data: the
leaderboard, the catalog name list and the identity provider's signing keys.
This is per-process memory (cachetools), not the shared Redis tier that holds
the round queue.

When the source is unavailable, reads fall back to the last value that was
successfully loaded, so a short outage does not take the page down.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Distinguishes "not cached" from a cached None
_MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])


class AsyncTTLCache:
    """TTL cache plus a bounded last-known-good store.

    ``_cache`` holds fresh values and expires them after *ttl* seconds.
    ``_stale`` keeps the most recent value per key (LRU, *maxsize* entries)
    and is only consulted after the loader failed.
    """

    def __init__(self, maxsize: int = 128, ttl: float = 60.0):
        self._maxsize = maxsize
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._stale: OrderedDict[str, Any] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            if len(self._locks) >= self._maxsize * 2:
                # Drop locks nobody is holding
                for k in [k for k, v in self._locks.items() if not v.locked()]:
                    del self._locks[k]
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def get(self, key: str) -> Any:
        """Fresh value or ``_MISSING``."""
        return self._cache.get(key, _MISSING)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value
        self._stale[key] = value
        self._stale.move_to_end(key)
        while len(self._stale) > self._maxsize:
            self._stale.popitem(last=False)

    def get_stale(self, key: str) -> Any:
        """Last successfully loaded value or ``_MISSING``."""
        value = self._stale.get(key, _MISSING)
        if value is not _MISSING:
            self._stale.move_to_end(key)
        return value

    def invalidate(self, key: str) -> None:
        """Expire one key now; its stale copy is kept."""
        self._cache.pop(key, None)

    def clear(self) -> None:
        """Expire everything now; stale copies are kept."""
        self._cache.clear()

    @property
    def size(self) -> int:
        return len(self._cache)


def cached(
    cache: AsyncTTLCache,
    key_func: Callable[..., str],
    *,
    retry: int = 3,
    retry_delay: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
):
    """Cache the result of an async loader, with retries and stale fallback.

    *key_func* receives the loader's arguments and returns the cache key.
    Exceptions listed in *retry_on* are retried up to *retry* attempts with a
    linear delay; once attempts are exhausted the stale value is returned if
    one exists, otherwise the last exception propagates.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            key = key_func(*args, **kwargs)

            result = cache.get(key)
            if result is not _MISSING:
                return result

            async with cache.lock_for(key):
                result = cache.get(key)
                if result is not _MISSING:
                    return result

                last_exc: BaseException | None = None
                for attempt in range(1, retry + 1):
                    try:
                        result = await func(*args, **kwargs)
                    except retry_on as exc:
                        last_exc = exc
                        if attempt < retry:
                            delay = retry_delay * attempt
                            logger.warning(
                                "Load %d/%d failed for %s: %s, retrying in %.1fs",
                                attempt,
                                retry,
                                key,
                                type(exc).__name__,
                                delay,
                            )
                            await asyncio.sleep(delay)
                        continue
                    cache.set(key, result)
                    return result

                stale = cache.get_stale(key)
                if stale is not _MISSING:
                    logger.warning("Serving stale value for %s (%s)", key, type(last_exc).__name__)
                    return stale

                raise last_exc  # type: ignore[misc]

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
