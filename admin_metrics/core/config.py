"""
Admin Metrics Configuration
Uses same environment variables as the admin console.
Loads .env.local first, then .env (from the project root).
"""

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional
from dotenv import load_dotenv
from pathlib import Path
import os

# Resolve paths: config.py is in admin_metrics/core/
CONFIG_DIR = Path(__file__).resolve().parent
PROJECT_DIR = CONFIG_DIR.parent.parent

env_local = PROJECT_DIR / ".env.local"
env_file = PROJECT_DIR / ".env"

if env_local.exists():
    load_dotenv(env_local)
elif env_file.exists():
    load_dotenv(env_file)


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Supabase (service role - full access)
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY", "")

    # JWT for admin sessions
    SECRET_KEY: str = os.getenv("SECRET_KEY", os.getenv("SUPABASE_JWT_SECRET", ""))
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")

    # Redis (stats cache + Celery broker)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() == "true"
    REDIS_URL: Optional[str] = os.getenv("REDIS_URL", None)

    @property
    def redis_connection_url(self) -> str:
        """Build Redis URL from components or use REDIS_URL if set."""
        if self.REDIS_URL:
            return self.REDIS_URL
        protocol = "rediss" if self.REDIS_SSL else "redis"
        if self.REDIS_PASSWORD:
            url = f"{protocol}://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}"
        else:
            url = f"{protocol}://{self.REDIS_HOST}:{self.REDIS_PORT}"
        if self.REDIS_DB != 0:
            url = f"{url}/{self.REDIS_DB}"
        return url

    # CORS
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")

    # Analytics
    ANALYTICS_TIMEZONE: str = os.getenv("ANALYTICS_TIMEZONE", "UTC")
    ANALYTICS_WINDOW_DAYS: int = int(os.getenv("ANALYTICS_WINDOW_DAYS", "30"))
    ANALYTICS_CACHE_TTL_SECONDS: int = int(
        os.getenv("ANALYTICS_CACHE_TTL_SECONDS", "300")  # 5 minutes
    )
    TOP_CHALLENGES_LIMIT: int = int(os.getenv("TOP_CHALLENGES_LIMIT", "5"))
    # Progress value at which a participant counts as having completed
    COMPLETION_THRESHOLD: float = float(os.getenv("COMPLETION_THRESHOLD", "100"))

    # Leaderboards and winner announcements
    LEADERBOARD_DISPLAY_LIMIT: int = int(os.getenv("LEADERBOARD_DISPLAY_LIMIT", "10"))
    LEADERBOARD_SCORE_FIELD: str = os.getenv("LEADERBOARD_SCORE_FIELD", "score")
    WINNER_TOP_K: int = int(os.getenv("WINNER_TOP_K", "3"))

    # Push delivery: "celery" (queue), "expo" (inline) or "none"
    PUSH_CHANNEL: str = os.getenv("PUSH_CHANNEL", "celery")
    PUSH_BODY_MAX_CHARS: int = int(os.getenv("PUSH_BODY_MAX_CHARS", "100"))

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    model_config = ConfigDict(
        env_file=[".env.local", ".env"],
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
