"""Dependency injection utilities for FastAPI"""

import logging

import asyncpg
from fastapi import Depends, Header, HTTPException
from redis.asyncio import Redis

from core.cache_tier import get_redis_manager
from core.config import Settings, get_settings
from core.database import get_database_manager
from services import AuthService, GuessService, PokeAPIClient, RoundDispenser, RoundRefiller
from shared.repositories import (
    PlayerRepository,
    RoundQueueRepository,
    RoundStateRepository,
    ScoreRepository,
)

logger = logging.getLogger(__name__)


# ============================================
# Shared Clients
# ============================================


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get shared AuthService singleton (keeps the signing key cache warm)."""
    global _auth_service
    if _auth_service is None:
        settings = get_settings()
        _auth_service = AuthService(
            issuer=settings.cognito_issuer,
            jwks_url=settings.jwks_url,
            audience=settings.cognito_client_id or None,
        )
    return _auth_service


async def close_auth_service() -> None:
    global _auth_service
    if _auth_service is not None:
        await _auth_service.close()
        _auth_service = None


_pokeapi_client: PokeAPIClient | None = None


def get_pokeapi_client() -> PokeAPIClient:
    """Get shared PokeAPIClient singleton (connection reuse)."""
    global _pokeapi_client
    if _pokeapi_client is None:
        settings = get_settings()
        _pokeapi_client = PokeAPIClient(
            base_url=settings.pokeapi_base_url,
            timeout=settings.pokeapi_timeout,
        )
    return _pokeapi_client


async def close_pokeapi_client() -> None:
    """Close the shared PokeAPIClient. Call on app shutdown."""
    global _pokeapi_client
    if _pokeapi_client is not None:
        await _pokeapi_client.close()
        _pokeapi_client = None


# ============================================
# Storage Dependencies
# ============================================


def get_db_pool() -> asyncpg.Pool:
    db_manager = get_database_manager()
    if db_manager._pool is None:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db_manager._pool


def get_redis() -> Redis:
    redis_manager = get_redis_manager()
    if not redis_manager.is_connected:
        raise HTTPException(status_code=503, detail="Cache not ready")
    return redis_manager.client


def get_score_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> ScoreRepository:
    return ScoreRepository(pool)


def get_player_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> PlayerRepository:
    return PlayerRepository(pool)


# ============================================
# Game Dependencies
# ============================================


_round_dispenser: RoundDispenser | None = None


def build_round_dispenser(
    redis: Redis, fetcher: PokeAPIClient, settings: Settings
) -> RoundDispenser:
    """Wire queue, refiller and dispenser around an explicit Redis handle."""
    queue = RoundQueueRepository(redis, key=settings.round_queue_key)
    refiller = RoundRefiller(
        queue,
        fetcher,
        target_size=settings.round_queue_target,
        max_id=settings.pokemon_id_max,
        max_failures=settings.refill_max_failures,
        backoff_base=settings.refill_backoff_base,
        backoff_max=settings.refill_backoff_max,
    )
    return RoundDispenser(queue, refiller, max_attempts=settings.dispense_max_attempts)


def init_round_dispenser(
    redis: Redis, fetcher: PokeAPIClient, settings: Settings
) -> RoundDispenser:
    """Create the process-wide dispenser. Called from the app lifespan."""
    global _round_dispenser
    _round_dispenser = build_round_dispenser(redis, fetcher, settings)
    return _round_dispenser


async def close_round_dispenser() -> None:
    global _round_dispenser
    if _round_dispenser is not None:
        await _round_dispenser.shutdown()
        _round_dispenser = None


def get_round_dispenser() -> RoundDispenser:
    if _round_dispenser is None:
        raise HTTPException(status_code=503, detail="Round queue not ready")
    return _round_dispenser


def get_guess_service(
    dispenser: RoundDispenser = Depends(get_round_dispenser),
    redis: Redis = Depends(get_redis),
    scores: ScoreRepository = Depends(get_score_repository),
) -> GuessService:
    settings = get_settings()
    state = RoundStateRepository(redis, prefix=settings.round_state_prefix)
    return GuessService(dispenser, state, scores, reward=settings.round_reward)


# ============================================
# Authentication Dependencies
# ============================================


async def get_token_claims(authorization: str | None = Header(None)) -> dict:
    """Verify the bearer token and return its claims"""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = authorization[len("Bearer ") :].strip()
    payload = await get_auth_service().verify_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid token")

    return payload


async def get_current_player_id(claims: dict = Depends(get_token_claims)) -> str:
    """Return the identity provider's subject id, used as the player identity"""
    return str(claims["sub"])
