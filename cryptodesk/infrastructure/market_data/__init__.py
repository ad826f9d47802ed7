"""Market data provider (CoinGecko) with cache and retry."""

from .client import COIN_IDS, CoinGeckoClient, base_asset
from .retry import RetryableError, backoff_delay, retry_with_backoff

__all__ = [
    "COIN_IDS",
    "CoinGeckoClient",
    "base_asset",
    "RetryableError",
    "backoff_delay",
    "retry_with_backoff",
]
