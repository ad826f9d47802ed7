"""Aggregator Settings using Pydantic.

Environment-based configuration with validation.

Environment Variables:
    ENVIRONMENT: development | staging | production
    FETCH_TIMEOUT_SECONDS: Per-fetch timeout for Loader and polling
    TICKER_POLL_INTERVAL: Seconds between ticker refreshes
    MARKET_DATA_ENABLED: Use CoinGecko for market endpoints

Example .env file:
    ENVIRONMENT=production
    LOG_FORMAT=json
    FETCH_TIMEOUT_SECONDS=8
    MARKET_DATA_ENABLED=true
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Aggregator settings.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==================== Core ====================
    app_name: str = "cryptodesk"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # ==================== Loader / Mutations ====================
    fetch_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-fetch timeout; timeout is treated as a slice failure",
    )
    mutation_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for remote calls made by the mutation gateway",
    )
    news_limit: int = Field(default=20, ge=1, le=100)

    # ==================== Polling ====================
    ticker_poll_interval: float = Field(default=5.0, description="Seconds between ticker refreshes")
    order_book_poll_interval: float = Field(default=2.0, description="Seconds between order book refreshes")
    trades_poll_interval: float = Field(default=3.0, description="Seconds between recent trades refreshes")
    recent_trades_limit: int = Field(default=50, ge=1, le=500)

    # ==================== Market data (CoinGecko) ====================
    market_data_enabled: bool = Field(
        default=False,
        description="Fetch market endpoints from CoinGecko instead of seeded data",
    )
    coingecko_api_base: str = "https://api.coingecko.com/api/v3"
    coingecko_cache_ttl: float = Field(default=30.0, ge=0, description="Cache TTL in seconds")
    coingecko_request_delay: float = Field(
        default=0.1,
        ge=0,
        description="Delay before each request to stay under rate limits",
    )
    coingecko_timeout: float = Field(default=10.0, gt=0)

    # Retry settings
    coingecko_max_retries: int = Field(default=2, ge=0, le=10)
    coingecko_retry_base_delay: float = Field(default=0.5, ge=0, description="Base delay in seconds")
    coingecko_retry_max_delay: float = Field(default=8.0, ge=0, description="Max delay in seconds")

    # ==================== In-memory service ====================
    service_latency_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Artificial latency of the in-memory service (demo mode)",
    )

    # ==================== Logging ====================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # ==================== Validators ====================

    @field_validator("ticker_poll_interval", "order_book_poll_interval", "trades_poll_interval")
    @classmethod
    def check_poll_interval(cls, v: float) -> float:
        """Poll intervals must be positive."""
        if v <= 0:
            raise ValueError("Poll interval must be positive")
        return v

    @model_validator(mode="after")
    def check_retry_delays(self) -> "Settings":
        """Base retry delay can't exceed max delay."""
        if self.coingecko_retry_base_delay > self.coingecko_retry_max_delay:
            raise ValueError("coingecko_retry_base_delay must be <= coingecko_retry_max_delay")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings instance.
    """
    return Settings()
