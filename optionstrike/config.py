"""
Configuration settings for the recommendation pipeline.

Uses environment variables (and an optional .env file) with sensible defaults.
API keys can also be read from config/secrets.yaml for local development.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings

from optionstrike.utils.config_loader import get_secret_api_key, load_secrets


@dataclass(frozen=True)
class CacheTTL:
    """Cache lifetimes in minutes."""
    earnings: int = 240
    stock: int = 5
    options: int = 15
    eps_growth: int = 1440
    profile: int = 1440
    recommendations: int = 60
    stale: int = 10080


class Settings(BaseSettings):
    """Application settings."""

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Database - SQLite locally, PostgreSQL in production
    DATABASE_URL: str = "sqlite:///./optionstrike.db"

    # Market data
    FMP_API_KEY: str = ""
    POLYGON_API_KEY: str = ""
    USE_MOCK_DATA: bool = False
    MOCK_LATENCY_SCALE: float = 1.0

    # HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0
    HTTP_MAX_RETRIES: int = 3
    RATE_LIMIT_MAX_RETRIES: int = 3
    # Per-source overrides; unset means the HTTP_* value above
    FMP_TIMEOUT_SECONDS: Optional[float] = None
    FMP_MAX_RETRIES: Optional[int] = None
    POLYGON_TIMEOUT_SECONDS: Optional[float] = None
    POLYGON_MAX_RETRIES: Optional[int] = None

    # Cache (minutes)
    CACHE_EARNINGS_MINUTES: int = 240
    CACHE_STOCK_MINUTES: int = 5
    CACHE_OPTIONS_MINUTES: int = 15
    CACHE_EPS_GROWTH_MINUTES: int = 1440
    CACHE_PROFILE_MINUTES: int = 1440
    CACHE_RECOMMENDATIONS_MINUTES: int = 60
    CACHE_STALE_MINUTES: int = 10080  # stale fallback copies are kept a week

    # Project root, used to locate config/secrets.yaml
    PLATFORM_ROOT: Path = Path(__file__).resolve().parent.parent

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        # Local dev convenience: read API keys from config/secrets.yaml (gitignored)
        # when they are not exported as env vars.
        if not self.FMP_API_KEY or not self.POLYGON_API_KEY:
            secrets = load_secrets(self.PLATFORM_ROOT / "config")
            if not self.FMP_API_KEY:
                self.FMP_API_KEY = get_secret_api_key(secrets, "fmp")
            if not self.POLYGON_API_KEY:
                self.POLYGON_API_KEY = get_secret_api_key(secrets, "polygon")

    @property
    def use_mock(self) -> bool:
        """Mock mode is forced when either API key is missing."""
        return self.USE_MOCK_DATA or not self.FMP_API_KEY or not self.POLYGON_API_KEY

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def http_config(self, source: str) -> Dict[str, Any]:
        """Timeout and retry count for one source ("fmp" or "polygon")."""
        prefix = source.upper()
        timeout = getattr(self, f"{prefix}_TIMEOUT_SECONDS")
        max_retries = getattr(self, f"{prefix}_MAX_RETRIES")
        return {
            "timeout": self.HTTP_TIMEOUT_SECONDS if timeout is None else timeout,
            "max_retries": self.HTTP_MAX_RETRIES if max_retries is None else max_retries,
        }

    def cache_ttl(self) -> CacheTTL:
        return CacheTTL(
            earnings=self.CACHE_EARNINGS_MINUTES,
            stock=self.CACHE_STOCK_MINUTES,
            options=self.CACHE_OPTIONS_MINUTES,
            eps_growth=self.CACHE_EPS_GROWTH_MINUTES,
            profile=self.CACHE_PROFILE_MINUTES,
            recommendations=self.CACHE_RECOMMENDATIONS_MINUTES,
            stale=self.CACHE_STALE_MINUTES,
        )


settings = Settings()
