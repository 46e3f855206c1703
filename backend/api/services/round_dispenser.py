"""Request-facing round dispenser over the shared queue."""

from __future__ import annotations

import asyncio
import logging

from shared.errors import UpstreamExhausted
from shared.models.round import RoundRecord
from shared.repositories.round_queue import RoundQueueRepository

from .round_refiller import RoundRefiller

logger = logging.getLogger(__name__)


class RoundDispenser:
    """Hand out one buffered round per request and keep the buffer topped up.

    A successful pop schedules a background refill and returns at once; the
    request never waits on that refill and its failures are only logged. An
    empty queue is refilled synchronously before popping again.
    """

    def __init__(
        self,
        queue: RoundQueueRepository,
        refiller: RoundRefiller,
        *,
        max_attempts: int = 5,
    ) -> None:
        self.queue = queue
        self.refiller = refiller
        self.max_attempts = max_attempts
        # Strong references so running tasks aren't garbage collected
        self._background: set[asyncio.Task] = set()
        self._current: asyncio.Task | None = None
        self._refill_requested = False

    @property
    def background_pending(self) -> int:
        return len(self._background)

    async def dispense(self) -> RoundRecord:
        """Pop one round, refilling synchronously while the queue is empty.

        Raises UpstreamExhausted if the queue is still empty after
        ``max_attempts`` synchronous refills; CacheUnavailable propagates.
        """
        for attempt in range(1, self.max_attempts + 1):
            record = await self.queue.pop()
            if record is not None:
                self.start_background_refill()
                return record

            logger.info(
                f"Round queue empty, refilling synchronously ({attempt}/{self.max_attempts})"
            )
            await self.refiller.refill()

        record = await self.queue.pop()
        if record is not None:
            self.start_background_refill()
            return record

        raise UpstreamExhausted(
            f"Round queue still empty after {self.max_attempts} refills",
            attempts=self.max_attempts,
        )

    def start_background_refill(self) -> asyncio.Task | None:
        """Schedule a fire-and-forget refill.

        At most one background refill per process is in flight. A trigger that
        arrives while one is running is coalesced: the running task refills
        again once it finishes, so pops made meanwhile are still made up.
        Returns None for a coalesced trigger.
        """
        if self._current is not None and not self._current.done():
            self._refill_requested = True
            logger.debug("Background refill already running, coalescing trigger")
            return None

        self._refill_requested = False
        task = asyncio.create_task(self._refill_until_settled(), name="round-refill")
        self._current = task
        self._background.add(task)
        task.add_done_callback(self._on_refill_done)
        return task

    async def _refill_until_settled(self) -> int:
        added = 0
        while True:
            self._refill_requested = False
            added += await self.refiller.refill()
            if not self._refill_requested:
                return added
            logger.debug("Pops arrived during refill, refilling again")

    def _on_refill_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            logger.debug("Background refill cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background refill failed: {type(exc).__name__}: {exc}")

    async def wait_background(self) -> None:
        """Wait for in-flight background refills (errors are already logged)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight background refills."""
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} background refill(s)")
