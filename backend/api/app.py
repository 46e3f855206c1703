"""FastAPI application factory"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from core.cache_tier import get_redis_manager, init_redis_manager
from core.config import get_settings
from core.database import get_database_manager, init_database_manager
from core.dependencies import (
    close_auth_service,
    close_pokeapi_client,
    close_round_dispenser,
    get_pokeapi_client,
    init_round_dispenser,
)
from core.logging import setup_logging
from routers import game_router, leaderboard_router, users_router
from shared.errors import CacheUnavailable
from shared.migrations.runner import MigrationRunner
from shared.repositories import RoundQueueRepository

logger = logging.getLogger(__name__)

# Track server start time
_start_time: float = 0.0

SERVICE_NAME = "pokeguess-api"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    global _start_time
    _start_time = time.time()

    settings = get_settings()

    # Startup
    logger.info("Starting PokeGuess API server")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Frontend URL: {settings.frontend_url}")

    db_manager = init_database_manager(settings.database_url, ssl=settings.database_ssl)
    await db_manager.connect()
    await MigrationRunner(db_manager.pool).run_pending()

    redis_manager = init_redis_manager(settings.redis_url)
    await redis_manager.connect()

    # Fill the queue in the background so the first requests find rounds waiting
    dispenser = init_round_dispenser(redis_manager.client, get_pokeapi_client(), settings)
    dispenser.start_background_refill()
    logger.info(f"Round queue warm-up started (target={settings.round_queue_target})")

    yield

    # Shutdown
    logger.info("Shutting down PokeGuess API server")
    try:
        await close_round_dispenser()
        await close_pokeapi_client()
        await close_auth_service()
        await redis_manager.disconnect()
        await db_manager.disconnect()
        logger.info("Connections closed")
    except Exception as e:
        logger.exception(f"Error during shutdown: {e}")


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    # Setup logging first
    setup_logging(settings)

    app = FastAPI(
        title="PokeGuess API",
        description="API server for PokeGuess, the guess-the-Pokemon game",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(game_router.router)
    app.include_router(leaderboard_router.router)
    app.include_router(users_router.router)

    @app.get("/")
    async def root():
        """Root endpoint - minimal service info"""
        return {"service": SERVICE_NAME, "status": "running"}

    # Liveness probe, no external dependency
    @app.get("/health")
    async def health():
        """Liveness check (no DB / Redis dependency)"""
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - _start_time),
        }

    @app.get("/status")
    async def status():
        """Readiness / status endpoint with DB, Redis and queue state"""
        db_ok = False
        redis_ok = False
        queue_length: int | None = None
        try:
            db_ok = await get_database_manager().check_health()
        except RuntimeError:
            pass
        try:
            redis_manager = get_redis_manager()
            redis_ok = await redis_manager.check_health()
            if redis_ok:
                queue = RoundQueueRepository(redis_manager.client, key=settings.round_queue_key)
                queue_length = await queue.length()
        except (RuntimeError, CacheUnavailable):
            redis_ok = False
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "uptime_seconds": int(time.time() - _start_time),
            "db_connected": db_ok,
            "redis_connected": redis_ok,
            "round_queue_length": queue_length,
            "environment": settings.environment,
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        """Ping endpoint"""
        return "pong"

    logger.info("FastAPI application configured")

    return app
