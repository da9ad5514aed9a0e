import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Settings read directly from environment variables (and `.env`, if present).
    """
    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL")
    DB_POOL_MIN_SIZE: int = int(os.environ.get("DB_POOL_MIN_SIZE", 5))
    DB_POOL_MAX_SIZE: int = int(os.environ.get("DB_POOL_MAX_SIZE", 20))
    APPLY_SCHEMA_ON_STARTUP: bool = _as_bool(os.environ.get("APPLY_SCHEMA_ON_STARTUP"), True)

    # Redis: sessions and rate limiter storage are kept on separate databases
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL")
    RATE_LIMIT_ENABLED: bool = _as_bool(os.environ.get("RATE_LIMIT_ENABLED"), True)

    # JWT and sessions
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "change-me")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    SESSION_TTL_SECONDS: int = int(os.environ.get("SESSION_TTL_SECONDS", 3600))

    # Background jobs
    SCHEDULE_SWEEP_MINUTES: int = int(os.environ.get("SCHEDULE_SWEEP_MINUTES", 5))

    # Logging
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ORIGINS: list = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

# Single importable settings instance
settings = Config()
