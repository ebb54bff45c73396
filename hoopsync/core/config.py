"""
Application configuration with environment-specific secrets management.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Required settings for production:
- DATABASE_URL
- REDIS_URL (when CACHE_BACKEND or LOCK_BACKEND is "redis")
"""
import os
import logging
from pathlib import Path
from typing import Optional, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the project root directory (2 levels up from this file's package)
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "HoopSync Data Sync Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8001

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./hoopsync.db")

    # Shared backends
    REDIS_URL: Optional[str] = None
    CACHE_BACKEND: Literal["memory", "redis"] = "memory"
    LOCK_BACKEND: Literal["local", "redis"] = "local"

    # Cache layer
    CACHE_MAX_BYTES: int = 50 * 1024 * 1024  # 50 MB budget for the in-process backend
    CACHE_DEFAULT_TTL: int = 900  # 15 minutes
    CACHE_KEY_NAMESPACE: str = "hoopsync"

    # Providers
    ESPN_BASE_URL: str = "https://site.api.espn.com/apis/site/v2/sports/basketball/nba"
    BALLDONTLIE_BASE_URL: str = "https://api.balldontlie.io/v1"
    BALLDONTLIE_API_KEY: str = ""
    PROVIDER_TIMEOUT_SECONDS: float = 30.0
    PROVIDER_RETRY_ATTEMPTS: int = 3
    PROVIDER_RETRY_BASE_DELAY: float = 1.0
    PROVIDER_RETRY_MAX_DELAY: float = 30.0
    CIRCUIT_FAIL_MAX: int = 5
    CIRCUIT_RESET_TIMEOUT: int = 30  # Seconds the circuit stays open

    # Distributed locking
    SYNC_LOCK_LEASE_SECONDS: float = 600.0  # 10 minutes
    SYNC_LOCK_LEASE_WORK_FRACTION: float = 0.9  # Share of the lease a unit may run before it is cancelled
    SYNC_LOCK_MAX_WAIT_SECONDS: float = 5.0
    LOCK_RETRY_INTERVAL_SECONDS: float = 0.5

    # Sync policy
    EXPECTED_TEAM_COUNT: int = 30
    FUTURE_SYNC_DAYS: int = 7
    YESTERDAY_SYNC_INTERVAL_MINUTES: int = 180  # every 12 ticks at the normal interval
    FUTURE_SYNC_INTERVAL_MINUTES: int = 60  # every 4 ticks at the normal interval
    PLAYER_STATS_SYNC_INTERVAL_MINUTES: int = 60
    PROVIDER_DAY_DELAY_SECONDS: float = 0.5  # Pause between per-day provider calls

    # Adaptive scheduler
    SYNC_ENABLED: bool = True
    SYNC_STARTUP_DELAY_SECONDS: float = 10.0
    LIVE_SYNC_INTERVAL_SECONDS: float = 120.0
    NORMAL_SYNC_INTERVAL_SECONDS: float = 900.0
    OFFSEASON_SYNC_INTERVAL_SECONDS: float = 3600.0
    ERROR_COOLDOWN_SECONDS: float = 300.0
    TICK_TIMEOUT_SECONDS: float = 1800.0
    CACHE_STATS_LOG_MINUTES: int = 30

    # Health thresholds
    HEALTH_MIN_CACHE_HIT_RATE: float = 0.10
    HEALTH_MIN_CACHE_REQUESTS: int = 100
    HEALTH_MAX_CONSECUTIVE_FAILURES: int = 5
    HEALTH_MAX_HOURS_WITHOUT_SUCCESS: int = 6

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def uses_redis(self) -> bool:
        """True when either shared backend is configured for Redis."""
        return self.CACHE_BACKEND == "redis" or self.LOCK_BACKEND == "redis"

    def validate_required_secrets(self) -> list[str]:
        """Names of settings this environment needs but does not have."""
        missing = []

        if self.is_production() and self.DATABASE_URL.startswith("sqlite"):
            missing.append("DATABASE_URL")

        # Redis URL is required if either shared backend uses Redis
        if self.uses_redis() and not self.REDIS_URL:
            missing.append("REDIS_URL")

        return missing


def _load_env_file() -> Path:
    """Pick .env.{ENVIRONMENT} when present, else .env."""
    environment = os.getenv("ENVIRONMENT", "development")

    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
        return default_env

    logger.debug(f"No environment file found for '{environment}' (checked .env.{environment}, .env)")
    return default_env


_env_file = _load_env_file()


class _SettingsWithEnvFile(Settings):
    model_config = SettingsConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = _SettingsWithEnvFile()

missing_secrets = settings.validate_required_secrets()
if missing_secrets:
    logger.warning(f"Missing required settings for {settings.ENVIRONMENT}: {', '.join(missing_secrets)}")
    if settings.is_production():
        raise ValueError(
            f"Cannot start in production with missing settings: {', '.join(missing_secrets)}. "
            f"Set them in the environment or in .env.production"
        )
