"""Tests for round start and guess validation."""

import asyncio

import pytest
from fakes import FakeLedger, FakeRedis, make_record

from services.guess_service import GuessResult, GuessService, normalize_guess
from shared.errors import CacheUnavailable, LedgerUnavailable
from shared.repositories.round_state import RoundStateRepository


class ScriptedDispenser:
    """Hands out the given records in order."""

    def __init__(self, *records):
        self.records = list(records)

    async def dispense(self):
        return self.records.pop(0)


def create_service(*records, redis=None, ledger=None):
    redis = redis or FakeRedis()
    state = RoundStateRepository(redis, prefix="r")
    ledger = ledger or FakeLedger()
    service = GuessService(ScriptedDispenser(*records), state, ledger)
    return service, state, ledger


class TestNormalizeGuess:
    @pytest.mark.parametrize(
        "text,expected",
        [("  PIKACHU ", "pikachu"), ("Mr. Mime", "mr. mime"), ("\tEevee\n", "eevee")],
    )
    def test_trims_and_lowercases(self, text, expected):
        assert normalize_guess(text) == expected


class TestStartRound:
    """Tests for GuessService.start_round."""

    def test_stores_normalized_answer(self):
        service, state, _ = create_service(make_record(25, "Pikachu"))

        async def run():
            record = await service.start_round("ash")
            return record, await state.get("ash")

        record, expected = asyncio.run(run())
        assert record == make_record(25, "Pikachu")
        assert expected == "pikachu"

    def test_new_round_discards_unresolved_one(self):
        service, _, ledger = create_service(
            make_record(1, "bulbasaur"), make_record(4, "charmander")
        )

        async def run():
            await service.start_round("ash")
            await service.start_round("ash")
            old = await service.submit_guess("ash", "bulbasaur")
            new = await service.submit_guess("ash", "charmander")
            return old, new

        old, new = asyncio.run(run())
        assert old == GuessResult(correct=False)
        assert new == GuessResult(correct=True, new_score=10)
        assert ledger.calls == 1


class TestSubmitGuess:
    """Tests for GuessService.submit_guess."""

    def test_correct_guess_ignores_case_and_whitespace(self):
        service, state, ledger = create_service(make_record(25, "pikachu"))

        async def run():
            await service.start_round("ash")
            result = await service.submit_guess("ash", "  PIKACHU ")
            return result, await state.get("ash")

        result, remaining = asyncio.run(run())
        assert result == GuessResult(correct=True, new_score=10)
        assert remaining is None
        assert ledger.scores == {"ash": 10}

    def test_round_scores_only_once(self):
        service, _, ledger = create_service(make_record(25, "pikachu"))

        async def run():
            await service.start_round("ash")
            first = await service.submit_guess("ash", "pikachu")
            second = await service.submit_guess("ash", "pikachu")
            return first, second

        first, second = asyncio.run(run())
        assert first.correct is True
        assert second == GuessResult(correct=False)
        assert ledger.scores == {"ash": 10}

    def test_wrong_guess_keeps_round_active(self):
        service, state, ledger = create_service(make_record(25, "pikachu"))

        async def run():
            await service.start_round("ash")
            wrong = await service.submit_guess("ash", "raichu")
            remaining = await state.get("ash")
            right = await service.submit_guess("ash", "pikachu")
            return wrong, remaining, right

        wrong, remaining, right = asyncio.run(run())
        assert wrong == GuessResult(correct=False)
        assert remaining == "pikachu"
        assert right.correct is True
        assert ledger.calls == 1

    def test_no_active_round_is_incorrect(self):
        service, _, ledger = create_service()

        result = asyncio.run(service.submit_guess("ash", "pikachu"))

        assert result == GuessResult(correct=False)
        assert ledger.calls == 0

    def test_scores_accumulate_across_rounds(self):
        service, _, _ = create_service(make_record(1, "bulbasaur"), make_record(7, "squirtle"))

        async def run():
            scores = []
            for name in ("bulbasaur", "squirtle"):
                await service.start_round("ash")
                scores.append((await service.submit_guess("ash", name)).new_score)
            return scores

        assert asyncio.run(run()) == [10, 20]

    def test_players_do_not_share_rounds(self):
        service, _, ledger = create_service(make_record(25, "pikachu"), make_record(120, "staryu"))

        async def run():
            await service.start_round("ash")
            await service.start_round("misty")
            return await service.submit_guess("misty", "pikachu")

        assert asyncio.run(run()) == GuessResult(correct=False)
        assert ledger.calls == 0

    def test_ledger_outage_restores_round_for_retry(self):
        """A failed score update must not lose the round."""
        service, state, ledger = create_service(make_record(25, "pikachu"))

        async def start():
            await service.start_round("ash")

        asyncio.run(start())
        ledger.down = True
        with pytest.raises(LedgerUnavailable):
            asyncio.run(service.submit_guess("ash", "pikachu"))

        assert asyncio.run(state.get("ash")) == "pikachu"
        assert ledger.scores == {}

        ledger.down = False
        result = asyncio.run(service.submit_guess("ash", "pikachu"))
        assert result == GuessResult(correct=True, new_score=10)

    def test_unexpected_ledger_error_still_restores_round(self):
        service, state, ledger = create_service(make_record(25, "pikachu"))

        asyncio.run(service.start_round("ash"))
        ledger.error = RuntimeError("unmapped driver failure")
        with pytest.raises(RuntimeError):
            asyncio.run(service.submit_guess("ash", "pikachu"))

        assert asyncio.run(state.get("ash")) == "pikachu"

    def test_cancelled_score_update_restores_round(self):
        service, state, ledger = create_service(make_record(25, "pikachu"))

        asyncio.run(service.start_round("ash"))
        ledger.error = asyncio.CancelledError()
        with pytest.raises(asyncio.CancelledError):
            asyncio.run(service.submit_guess("ash", "pikachu"))

        assert asyncio.run(state.get("ash")) == "pikachu"

    def test_concurrent_correct_guesses_score_once(self):
        """Two devices guessing the same round at once: exactly one wins."""
        service, _, ledger = create_service(make_record(25, "pikachu"))

        async def run():
            await service.start_round("ash")
            return await asyncio.gather(
                service.submit_guess("ash", "pikachu"),
                service.submit_guess("ash", "Pikachu"),
            )

        results = asyncio.run(run())
        assert sorted(r.correct for r in results) == [False, True]
        assert ledger.scores == {"ash": 10}
        assert ledger.calls == 1

    def test_cache_outage_propagates(self):
        redis = FakeRedis()
        service, _, ledger = create_service(make_record(25, "pikachu"), redis=redis)
        redis.down = True

        with pytest.raises(CacheUnavailable):
            asyncio.run(service.submit_guess("ash", "pikachu"))
        assert ledger.calls == 0
