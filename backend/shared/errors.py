"""Domain errors shared by the API services and repositories.

Repositories translate driver exceptions (redis, asyncpg, httpx) into these
so that services and routers never depend on a particular client library.
"""

from __future__ import annotations


class PokeGuessError(Exception):
    """Base class for all PokeGuess domain errors."""


# ==================== Upstream catalog ====================


class UpstreamError(PokeGuessError):
    """The catalog could not produce a usable round for a given id."""

    def __init__(self, message: str, *, pokemon_id: int | None = None) -> None:
        super().__init__(message)
        self.pokemon_id = pokemon_id


class UpstreamUnavailable(UpstreamError):
    """Network or HTTP failure talking to the catalog."""


class NotFound(UpstreamError):
    """The catalog has no subject with the requested id."""


class InvalidPayload(UpstreamError):
    """The catalog responded but the data is unusable (no name or image)."""


class UpstreamExhausted(PokeGuessError):
    """Refill gave up after too many consecutive upstream failures."""

    def __init__(self, message: str, *, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


# ==================== Storage tiers ====================


class CacheUnavailable(PokeGuessError):
    """The cache tier holding the round queue and round state is unreachable."""


class LedgerUnavailable(PokeGuessError):
    """The score store could not complete a read or write."""
