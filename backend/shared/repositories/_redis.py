"""Helpers shared by the Redis-backed repositories."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from redis.exceptions import RedisError

from shared.errors import CacheUnavailable

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

KEY_PREFIX = "pokeguess"


def cache_call(func: F) -> F:
    """Translate Redis client failures into ``CacheUnavailable``."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except (RedisError, OSError) as e:
            logger.error(f"Cache operation {func.__qualname__} failed: {type(e).__name__}: {e}")
            raise CacheUnavailable(f"Cache tier unavailable ({type(e).__name__})") from e

    return wrapper  # type: ignore[return-value]
