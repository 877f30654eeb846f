"""
Service settings, read from the environment and `.env`.

Analytics defaults (lookback bounds, symmetry tiers) live here too so they
can be tuned per deployment.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Upper-case environment keys; unknown keys are ignored."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration (the workout log store we read from)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="workout_log")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)
    # Full URL override, e.g. a read replica or sqlite for local runs
    DATABASE_URL: Optional[str] = Field(default=None)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=5)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://redis:6379/0")

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    CORS_ORIGINS: Optional[str] = Field(default=None)  # Comma-separated

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Cache Configuration
    CACHE_TTL_DEFAULT: int = Field(default=300)  # 5 minutes
    # Analytics keys carry the input high-water mark, so a long TTL is safe
    CACHE_TTL_ANALYTICS: int = Field(default=3600)

    # Analytics Engine
    ANALYTICS_DEFAULT_LOOKBACK_WEEKS: int = Field(default=12, ge=1)
    ANALYTICS_MAX_LOOKBACK_WEEKS: int = Field(default=156, ge=1)  # 3 years
    # Left/right symmetry tiers: low < IMBALANCE <= moderate < HIGH_RISK <= high
    SYMMETRY_IMBALANCE_THRESHOLD: float = Field(default=15.0, ge=0)
    SYMMETRY_HIGH_RISK_THRESHOLD: float = Field(default=25.0, ge=0)

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:"
            f"{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )


settings = Settings()
