"""Leaderboard API routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from core.config import get_settings
from core.dependencies import get_score_repository
from shared.errors import LedgerUnavailable
from shared.repositories import ScoreRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["leaderboard"])


class LeaderboardRow(BaseModel):
    nickname: str
    score: int


class LeaderboardResponse(BaseModel):
    rows: list[LeaderboardRow]


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    scores: ScoreRepository = Depends(get_score_repository),
) -> LeaderboardResponse:
    """Top players by score (public)"""
    try:
        entries = await scores.top(get_settings().leaderboard_size)
        return LeaderboardResponse(
            rows=[LeaderboardRow(nickname=e.nickname, score=e.score) for e in entries]
        )
    except LedgerUnavailable:
        raise HTTPException(status_code=503, detail="Leaderboard unavailable") from None
    except Exception as e:
        logger.exception(f"Failed to get leaderboard: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch leaderboard") from None
