"""Per-player round lifecycle: start a round, validate guesses, award points.

State per player is either "no active round" (no key) or "awaiting a guess"
(key holds the expected, normalized answer). A correct guess claims the round
atomically before the ledger is touched, so one round can score at most once
even when the same player guesses from two devices at the same time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from shared.models.round import RoundRecord
from shared.repositories.round_state import RoundStateRepository

from .round_dispenser import RoundDispenser

logger = logging.getLogger(__name__)

ROUND_REWARD = 10


class ScoreLedger(Protocol):
    async def increment(self, player_id: str, points: int) -> int: ...


def normalize_guess(text: str) -> str:
    return text.strip().lower()


@dataclass(frozen=True)
class GuessResult:
    correct: bool
    new_score: int | None = None


class GuessService:
    """Start rounds and score guesses for a player."""

    def __init__(
        self,
        dispenser: RoundDispenser,
        state: RoundStateRepository,
        ledger: ScoreLedger,
        *,
        reward: int = ROUND_REWARD,
    ) -> None:
        self.dispenser = dispenser
        self.state = state
        self.ledger = ledger
        self.reward = reward

    async def start_round(self, player_id: str) -> RoundRecord:
        """Dispense a round and make it the player's active one.

        Any unresolved previous round is discarded without scoring.
        """
        record = await self.dispenser.dispense()
        await self.state.start(player_id, normalize_guess(record.display_name))
        logger.debug(f"Player {player_id} started round #{record.external_id}")
        return record

    async def submit_guess(self, player_id: str, text: str) -> GuessResult:
        """Check a guess against the player's active round.

        Wrong guesses leave the round active. LedgerUnavailable and
        CacheUnavailable propagate; if the score update fails for any reason
        the round is put back so the same guess can be retried.
        """
        expected = await self.state.get(player_id)
        if expected is None:
            return GuessResult(correct=False)

        if normalize_guess(text) != expected:
            return GuessResult(correct=False)

        claimed = await self.state.claim(player_id)
        if claimed != expected:
            # Lost the race to another guess, or a new round replaced this one
            if claimed is not None:
                await self.state.restore(player_id, claimed)
            return GuessResult(correct=False)

        try:
            new_score = await self.ledger.increment(player_id, self.reward)
        except BaseException as e:
            # Any failure after the claim, cancellation included, puts the round back
            restored = await self.state.restore(player_id, claimed)
            logger.warning(
                f"Score update failed for {player_id} ({type(e).__name__}), round "
                f"{'restored' if restored else 'superseded by a newer round'}"
            )
            raise

        logger.info(f"Player {player_id} guessed '{expected}' (+{self.reward}, now {new_score})")
        return GuessResult(correct=True, new_score=new_score)
