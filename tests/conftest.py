"""Pytest configuration and fixtures."""

from decimal import Decimal

import pytest

from cryptodesk.config import Settings
from cryptodesk.domain.crypto.models import OrderRequest, OrderSide, OrderType
from cryptodesk.infrastructure.identity import SessionIdentityProvider
from cryptodesk.infrastructure.messaging import EventBus
from cryptodesk.infrastructure.notifications import LoggingNotifier
from cryptodesk.infrastructure.services import InMemoryCryptoService


@pytest.fixture
def settings():
    """Settings без .env і без штучних затримок."""
    return Settings(
        _env_file=None,
        fetch_timeout_seconds=2.0,
        mutation_timeout_seconds=2.0,
        ticker_poll_interval=0.01,
        order_book_poll_interval=0.01,
        trades_poll_interval=0.01,
        recent_trades_limit=5,
        coingecko_request_delay=0.0,
        coingecko_retry_base_delay=0.0,
        coingecko_retry_max_delay=0.0,
        service_latency_seconds=0.0,
    )


@pytest.fixture
def identity():
    """Signed-out identity."""
    return SessionIdentityProvider()


@pytest.fixture
def signed_in_identity():
    return SessionIdentityProvider("user-1")


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def notifier():
    return LoggingNotifier()


@pytest.fixture
def service(settings):
    return InMemoryCryptoService(settings, latency=0.0)


@pytest.fixture
def market_order_request():
    """BUY 1 BTCUSDT at market."""
    return OrderRequest("BTCUSDT", OrderSide.BUY, OrderType.MARKET, Decimal("1"))
