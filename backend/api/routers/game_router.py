"""Game API routes: start a round, submit a guess, list catalog names."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from core.config import get_settings
from core.dependencies import get_current_player_id, get_guess_service, get_pokeapi_client
from services import GuessService, PokeAPIClient
from shared.errors import (
    CacheUnavailable,
    LedgerUnavailable,
    UpstreamError,
    UpstreamExhausted,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/game", tags=["game"])


# ============================================
# Response / Request Models
# ============================================


class RoundResponse(BaseModel):
    external_id: int
    image_ref: str


class GuessRequest(BaseModel):
    guess: str = Field(..., min_length=1, max_length=100)


class GuessResponse(BaseModel):
    correct: bool
    score: int | None = None


class NamesResponse(BaseModel):
    names: list[str]


# ============================================
# Round Endpoints
# ============================================


@router.post("/start", response_model=RoundResponse)
async def start_round(
    player_id: str = Depends(get_current_player_id),
    service: GuessService = Depends(get_guess_service),
) -> RoundResponse:
    """Dispense a round and make it the player's active one.

    The answer stays on the server; only the image is returned.
    """
    try:
        record = await service.start_round(player_id)
        return RoundResponse(external_id=record.external_id, image_ref=record.image_ref)
    except UpstreamExhausted as e:
        logger.error(f"No round available for {player_id}: {e}")
        raise HTTPException(status_code=503, detail="No round available, try again") from None
    except CacheUnavailable:
        logger.exception(f"Cache unavailable starting round for {player_id}")
        raise HTTPException(status_code=503, detail="Game temporarily unavailable") from None
    except Exception as e:
        logger.exception(f"Failed to start round: {e}")
        raise HTTPException(status_code=500, detail="Failed to start round") from None


@router.post("/guess", response_model=GuessResponse)
async def submit_guess(
    body: GuessRequest,
    player_id: str = Depends(get_current_player_id),
    service: GuessService = Depends(get_guess_service),
) -> GuessResponse:
    """Check a guess against the player's active round."""
    try:
        result = await service.submit_guess(player_id, body.guess)
        return GuessResponse(correct=result.correct, score=result.new_score)
    except (CacheUnavailable, LedgerUnavailable) as e:
        logger.error(f"Guess for {player_id} not recorded: {type(e).__name__}: {e}")
        raise HTTPException(status_code=503, detail="Guess not recorded, try again") from None
    except Exception as e:
        logger.exception(f"Failed to submit guess: {e}")
        raise HTTPException(status_code=500, detail="Failed to submit guess") from None


@router.get("/names", response_model=NamesResponse)
async def list_names(
    client: PokeAPIClient = Depends(get_pokeapi_client),
) -> NamesResponse:
    """Catalog names for guess autocompletion (no auth)."""
    try:
        names = await client.list_names(get_settings().pokemon_id_max)
        return NamesResponse(names=names)
    except UpstreamError as e:
        logger.warning(f"Catalog listing unavailable: {e}")
        raise HTTPException(status_code=503, detail="Name list unavailable") from None
