"""
Application configuration using Pydantic Settings
"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """
    # Database (subscription store)
    DATABASE_URL: str = "sqlite:///./subtrack.db"

    # Application
    DEBUG: bool = False
    DEFAULT_CURRENCY: str = "CNY"

    # Supported calendar range (inclusive years)
    MIN_SUPPORTED_YEAR: int = 2024
    MAX_SUPPORTED_YEAR: int = 2030

    # Zoom: pixels per calendar day
    MIN_DAY_WIDTH: float = 1.0
    MAX_DAY_WIDTH: float = 32.0
    DEFAULT_DAY_WIDTH: float = 2.0
    ZOOM_STEP: float = 0.5
    BUTTON_ZOOM_STEP: float = 0.5

    # Level of detail thresholds (px/day, inclusive)
    SHOW_DAY_SCALE_AT_OR_ABOVE: float = 15.0
    SHOW_MONTH_SCALE_AT_OR_ABOVE: float = 1.5

    # Materialized range growth
    RANGE_EXTEND_DAYS: int = 365
    RANGE_MARGIN_DAYS: int = 30
    SCROLL_EXTEND_THRESHOLD_DAYS: int = 140

    # Guard against malformed cycle data
    MAX_BILLING_PERIODS: int = 6000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def get_sqlalchemy_url(self) -> str:
        """
        Convert DATABASE_URL to SQLAlchemy format (postgresql+psycopg://)
        """
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance (singleton)
    """
    return Settings()
