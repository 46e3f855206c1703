"""Tops the shared round queue up to its target size from the catalog."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Protocol

from shared.errors import UpstreamError, UpstreamExhausted
from shared.models.round import RoundRecord
from shared.repositories.round_queue import RoundQueueRepository

logger = logging.getLogger(__name__)


class RoundFetcher(Protocol):
    async def fetch(self, pokemon_id: int) -> RoundRecord: ...


class RoundRefiller:
    """Fill the round queue with freshly fetched records.

    Concurrent ``refill()`` calls are not mutually exclusive: each reads the
    queue length once and appends until its own count reaches the target, so
    two overlapping refills may overshoot. The queue is a buffer, not a hard
    capacity, so that is fine.

    Upstream failures are skipped (a new random id is drawn) with exponential
    backoff between consecutive failures. After *max_failures* failures in a
    row the refill stops with ``UpstreamExhausted`` instead of spinning.
    """

    def __init__(
        self,
        queue: RoundQueueRepository,
        fetcher: RoundFetcher,
        *,
        target_size: int = 10,
        max_id: int = 386,
        max_failures: int = 25,
        backoff_base: float = 0.25,
        backoff_max: float = 8.0,
        rng: random.Random | None = None,
    ) -> None:
        if target_size < 1:
            raise ValueError("target_size must be at least 1")
        if max_id < 1:
            raise ValueError("max_id must be at least 1")
        self.queue = queue
        self.fetcher = fetcher
        self.target_size = target_size
        self.max_id = max_id
        self.max_failures = max_failures
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._rng = rng or random.Random()

    def _next_id(self) -> int:
        return self._rng.randint(1, self.max_id)

    def _backoff(self, failures: int) -> float:
        return min(self.backoff_base * (2 ** (failures - 1)), self.backoff_max)

    async def refill(self) -> int:
        """Append records until the queue holds at least ``target_size``.

        Returns the number of records this call appended.
        """
        length = await self.queue.length()
        if length >= self.target_size:
            return 0

        added = 0
        failures = 0
        while length < self.target_size:
            pokemon_id = self._next_id()
            try:
                record = await self.fetcher.fetch(pokemon_id)
            except UpstreamError as e:
                failures += 1
                if failures >= self.max_failures:
                    logger.error(
                        f"Refill giving up after {failures} consecutive upstream failures "
                        f"(queue at {length}/{self.target_size})"
                    )
                    raise UpstreamExhausted(
                        f"Catalog failed {failures} times in a row", attempts=failures
                    ) from e
                delay = self._backoff(failures)
                logger.warning(
                    f"Skipping #{pokemon_id}: {type(e).__name__}: {e} "
                    f"(failure {failures}/{self.max_failures}, retry in {delay:.2f}s)"
                )
                if delay > 0:
                    await asyncio.sleep(delay)
                continue

            failures = 0
            await self.queue.push(record)
            length += 1
            added += 1

        logger.info(f"Refill added {added} round(s), queue at ~{length}")
        return added
