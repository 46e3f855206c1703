"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Identity provider (AWS Cognito user pool)
    cognito_region: str = Field(..., description="Cognito user pool region")
    cognito_user_pool_id: str = Field(..., description="Cognito user pool ID")
    cognito_client_id: str = Field(default="", description="App client ID (checked when set)")

    # Storage
    database_url: str = Field(..., description="PostgreSQL database URL")
    database_ssl: bool = Field(default=True, description="Require SSL for PostgreSQL")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")

    # Upstream catalog
    pokeapi_base_url: str = Field(
        default="https://pokeapi.co/api/v2", description="PokeAPI base URL"
    )
    pokeapi_timeout: float = Field(default=10.0, description="PokeAPI request timeout")
    pokemon_id_max: int = Field(default=386, ge=1, description="Highest catalog id to draw")

    # Round queue
    round_queue_key: str = Field(default="pokeguess:round_queue", description="Redis list key")
    round_state_prefix: str = Field(default="pokeguess:round", description="Redis key prefix")
    round_queue_target: int = Field(default=10, ge=1, description="Buffered rounds to keep")
    refill_max_failures: int = Field(
        default=25, ge=1, description="Consecutive upstream failures before giving up"
    )
    refill_backoff_base: float = Field(default=0.25, ge=0, description="First backoff delay")
    refill_backoff_max: float = Field(default=8.0, ge=0, description="Backoff delay cap")
    dispense_max_attempts: int = Field(
        default=5, ge=1, description="Synchronous refills tried before a dispense fails"
    )

    # Game
    round_reward: int = Field(default=10, ge=1, description="Points for a correct guess")
    leaderboard_size: int = Field(default=5, ge=1, description="Rows on the leaderboard")

    # Server URLs
    frontend_url: str = Field(default="http://localhost:5173", description="Frontend URL for CORS")

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=4000, description="Server port")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        return [self.frontend_url]

    @property
    def cognito_issuer(self) -> str:
        region = self.cognito_region
        return f"https://cognito-idp.{region}.amazonaws.com/{self.cognito_user_pool_id}"

    @property
    def jwks_url(self) -> str:
        return f"{self.cognito_issuer}/.well-known/jwks.json"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
