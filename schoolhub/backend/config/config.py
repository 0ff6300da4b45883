import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Plain holder for settings read straight from environment variables.
    """
    # Database (Supabase Postgres)
    DATABASE_URL: str = os.environ.get("DATABASE_URL")
    DB_POOL_MIN_SIZE: int = int(os.environ.get("DB_POOL_MIN_SIZE", 2))
    DB_POOL_MAX_SIZE: int = int(os.environ.get("DB_POOL_MAX_SIZE", 10))
    DB_COMMAND_TIMEOUT: float = float(os.environ.get("DB_COMMAND_TIMEOUT", 10))

    # Auth provider (Supabase GoTrue)
    SUPABASE_URL: str = os.environ.get("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY: str = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
    AUTH_PROVIDER_TIMEOUT: float = float(os.environ.get("AUTH_PROVIDER_TIMEOUT", 10))

    # Rate limiter storage; slowapi falls back to in-memory storage when unset.
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL")

    # Logging
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Scheduled jobs
    SCHEDULER_ENABLED: bool = _as_bool(os.environ.get("SCHEDULER_ENABLED", "true"))
    OVERDUE_SWEEP_MINUTES: int = int(os.environ.get("OVERDUE_SWEEP_MINUTES", 60))
    STATS_SNAPSHOT_MINUTES: int = int(os.environ.get("STATS_SNAPSHOT_MINUTES", 15))

    # Apply schema.sql and the attendance migration when the app starts
    RUN_MIGRATIONS: bool = _as_bool(os.environ.get("RUN_MIGRATIONS", "false"))

    def has_backend_configuration(self) -> bool:
        """True when both the auth provider URL and its service key are present."""
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)


# Single importable instance of the settings
settings = Config()
