"""Crypto service factory - builds the backend from Settings.

MARKET_DATA_ENABLED=true підключає CoinGeckoClient для market endpoints;
інакше все віддається з seed data.
"""

import logging

from cryptodesk.config import Settings, get_settings
from cryptodesk.infrastructure.market_data import CoinGeckoClient

from .in_memory_crypto_service import InMemoryCryptoService

logger = logging.getLogger(__name__)


def create_crypto_service(settings: Settings | None = None) -> InMemoryCryptoService:
    """Create the crypto backend for one process.

    Example:
        >>> service = create_crypto_service()
        >>> async with CryptoAggregator(service, identity, notifier) as desk:
        ...     await desk.start()
    """
    settings = settings or get_settings()
    market_data = CoinGeckoClient(settings) if settings.market_data_enabled else None

    logger.info(
        "crypto_service.created",
        extra={
            "market_data": "coingecko" if market_data else "seed",
            "latency_seconds": settings.service_latency_seconds,
        },
    )
    return InMemoryCryptoService(settings, market_data=market_data)
