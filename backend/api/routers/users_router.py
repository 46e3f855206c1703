"""Player account API routes: register, dashboard, delete"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator

from core.dependencies import (
    get_player_repository,
    get_score_repository,
    get_token_claims,
)
from shared.errors import LedgerUnavailable
from shared.repositories import PlayerRepository, ScoreRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


# ============================================
# Response / Request Models
# ============================================


class RegisterRequest(BaseModel):
    nickname: str | None = Field(default=None, min_length=1, max_length=50, pattern=r"^[^<>\\/]+$")

    @field_validator("nickname", mode="before")
    @classmethod
    def strip_nickname(cls, v):
        """Trim before the length check so a blank nickname is rejected"""
        return v.strip() if isinstance(v, str) else v


class PlayerResponse(BaseModel):
    id: str
    nickname: str
    score: int


class OkResponse(BaseModel):
    ok: bool
    message: str | None = None


def _nickname_from_claims(claims: dict) -> str:
    for claim in ("nickname", "preferred_username", "cognito:username", "username"):
        value = str(claims.get(claim) or "").strip()
        if value:
            return value[:50]
    return "player"


# ============================================
# Endpoints
# ============================================


@router.post("/register", response_model=OkResponse)
async def register(
    body: RegisterRequest,
    claims: dict = Depends(get_token_claims),
    players: PlayerRepository = Depends(get_player_repository),
    scores: ScoreRepository = Depends(get_score_repository),
) -> OkResponse:
    """Create the player row and a zero score for the authenticated identity"""
    player_id = str(claims["sub"])
    nickname = body.nickname or _nickname_from_claims(claims)
    try:
        created = await players.insert(player_id, nickname)
        await scores.ensure(player_id)
    except LedgerUnavailable:
        raise HTTPException(status_code=503, detail="Registration unavailable") from None

    if created:
        logger.info(f"Registered player {player_id} ({nickname})")
        return OkResponse(ok=True, message="Registered successfully")
    return OkResponse(ok=True, message="Already registered")


@router.get("/me", response_model=PlayerResponse)
async def get_me(
    claims: dict = Depends(get_token_claims),
    players: PlayerRepository = Depends(get_player_repository),
    scores: ScoreRepository = Depends(get_score_repository),
) -> PlayerResponse:
    """Dashboard data: nickname and current score"""
    player_id = str(claims["sub"])
    try:
        player = await players.get(player_id)
        score = await scores.get_score(player_id)
    except LedgerUnavailable:
        raise HTTPException(status_code=503, detail="Player data unavailable") from None

    nickname = player.nickname if player else _nickname_from_claims(claims)
    return PlayerResponse(id=player_id, nickname=nickname, score=score)


@router.delete("/me", response_model=OkResponse)
async def delete_me(
    claims: dict = Depends(get_token_claims),
    players: PlayerRepository = Depends(get_player_repository),
) -> OkResponse:
    """Delete the player's account and score"""
    player_id = str(claims["sub"])
    try:
        deleted = await players.delete(player_id)
    except LedgerUnavailable:
        raise HTTPException(status_code=503, detail="Account deletion unavailable") from None

    if not deleted:
        raise HTTPException(status_code=404, detail="User not found")

    logger.info(f"Deleted player {player_id}")
    return OkResponse(ok=True)
