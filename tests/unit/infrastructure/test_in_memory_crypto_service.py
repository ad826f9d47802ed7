"""Tests для InMemoryCryptoService."""

from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

from cryptodesk.domain.crypto import (
    MarketDataUnavailableError,
    OrderNotFoundError,
    StakingProductNotFoundError,
)
from cryptodesk.domain.crypto.models import (
    AlertCondition,
    AlertRequest,
    OrderStatus,
    P2POfferRequest,
    P2POfferType,
    Ticker,
)
from cryptodesk.infrastructure.market_data import CoinGeckoClient
from cryptodesk.infrastructure.services import InMemoryCryptoService, create_crypto_service


class TestMarket:
    @pytest.mark.asyncio
    async def test_seeded_catalogue(self, service):
        coins = await service.get_cryptocurrencies()
        pairs = await service.get_trading_pairs()
        products = await service.get_staking_products()

        assert coins[0].id == "bitcoin"
        assert coins[0].current_price == Decimal("43250.5")
        assert [p.symbol for p in pairs] == ["BTCUSDT", "ETHUSDT"]
        assert {p.id for p in products} == {"eth-staking-1", "bnb-staking-1"}

    @pytest.mark.asyncio
    async def test_news_pagination(self, service):
        page = await service.get_news(limit=1, offset=1)

        assert [n.id for n in page] == ["news-2"]

    @pytest.mark.asyncio
    async def test_order_book_shape(self, service):
        # Act
        book = await service.get_order_book("BTCUSDT")

        # Assert
        assert len(book.bids) == 20
        assert len(book.asks) == 20
        assert book.best_bid.price == Decimal("43250.5")
        assert book.spread == Decimal("1")
        assert [b.price for b in book.bids] == sorted((b.price for b in book.bids), reverse=True)

    @pytest.mark.asyncio
    async def test_synthetic_data_deterministic_per_seed(self, settings):
        first = InMemoryCryptoService(settings, latency=0, seed=7)
        second = InMemoryCryptoService(settings, latency=0, seed=7)

        first_book = await first.get_order_book("ETHUSDT")
        second_book = await second.get_order_book("ETHUSDT")

        assert first_book.bids == second_book.bids
        assert first_book.asks == second_book.asks

    @pytest.mark.asyncio
    async def test_recent_trades_limit(self, service):
        trades = await service.get_recent_trades("BTCUSDT", limit=7)

        assert len(trades) == 7
        assert len({t.id for t in trades}) == 7

    @pytest.mark.asyncio
    async def test_market_data_client_used_when_available(self, settings):
        # Arrange
        client = Mock()
        client.get_ticker = AsyncMock(return_value=Ticker("BTCUSDT", Decimal("50000")))
        service = InMemoryCryptoService(settings, market_data=client, latency=0)

        # Act
        ticker = await service.get_ticker("BTCUSDT")

        # Assert
        assert ticker.price == Decimal("50000")

    @pytest.mark.asyncio
    async def test_falls_back_to_seed_when_market_data_unavailable(self, settings):
        # Arrange
        client = Mock()
        client.get_cryptocurrencies = AsyncMock(side_effect=MarketDataUnavailableError("down"))
        client.get_market_overview = AsyncMock(side_effect=MarketDataUnavailableError("down"))
        service = InMemoryCryptoService(settings, market_data=client, latency=0)

        # Act
        coins = await service.get_cryptocurrencies(limit=2)
        overview = await service.get_market_overview()

        # Assert
        assert [c.id for c in coins] == ["bitcoin", "ethereum"]
        assert [c.id for c in overview.top_gainers] == ["solana", "bitcoin"]
        assert [c.id for c in overview.top_losers] == ["ethereum"]

    @pytest.mark.asyncio
    async def test_p2p_offers_include_user_offers_first(self, service):
        # Arrange
        request = P2POfferRequest(P2POfferType.BUY, "ETH", "EUR", Decimal("2600"), Decimal("50"), Decimal("500"))
        created = await service.create_p2p_offer("user-1", request)

        # Act
        all_offers = await service.get_p2p_offers()
        eth_offers = await service.get_p2p_offers(asset="ETH")

        # Assert
        assert all_offers[0] == created
        assert len(all_offers) == 13
        assert eth_offers == (created,)


class TestAccount:
    @pytest.mark.asyncio
    async def test_new_user_gets_seeded_account(self, service):
        portfolio = await service.get_portfolio("user-1")
        watchlist = await service.get_watchlist("user-1")
        positions = await service.get_staking_positions("user-1")

        assert [a.asset for a in portfolio.assets] == ["BTC", "ETH", "USDT"]
        assert watchlist[0].id == "watch-1"
        assert positions[0].id == "position-1"

    @pytest.mark.asyncio
    async def test_accounts_are_isolated(self, service, market_order_request):
        await service.place_order("user-1", market_order_request)

        assert len(await service.get_open_orders("user-1")) == 1
        assert await service.get_open_orders("user-2") == ()


class TestActions:
    @pytest.mark.asyncio
    async def test_place_and_cancel_order(self, service, market_order_request):
        # Act
        order = await service.place_order("user-1", market_order_request)
        await service.cancel_order("user-1", order.id)

        # Assert
        assert order.status == OrderStatus.NEW
        assert await service.get_open_orders("user-1") == ()
        history = await service.get_order_history("user-1")
        assert history[0].id == order.id
        assert history[0].status == OrderStatus.CANCELED

    @pytest.mark.asyncio
    async def test_cancel_unknown_order(self, service):
        with pytest.raises(OrderNotFoundError):
            await service.cancel_order("user-1", "order-404")

    @pytest.mark.asyncio
    async def test_watchlist_add_remove(self, service):
        item = await service.add_to_watchlist("user-1", "ETH", notes="L2")

        await service.remove_from_watchlist("user-1", "watch-1")

        assert await service.get_watchlist("user-1") == (item,)

    @pytest.mark.asyncio
    async def test_create_alert(self, service):
        alert = await service.create_alert("user-1", AlertRequest("BTC", AlertCondition.ABOVE, Decimal("45000")))

        assert await service.get_alerts("user-1") == (alert,)

    @pytest.mark.asyncio
    async def test_stake_locked_product(self, service):
        position = await service.stake_asset("user-1", "bnb-staking-1", Decimal("2"))

        assert position.asset == "BNB"
        assert position.end_date is not None
        assert position in await service.get_staking_positions("user-1")

    @pytest.mark.asyncio
    async def test_stake_unknown_product(self, service):
        with pytest.raises(StakingProductNotFoundError):
            await service.stake_asset("user-1", "doge-staking", Decimal("1"))


class TestFailureControls:
    @pytest.mark.asyncio
    async def test_offline_service_raises_connection_error(self, service, market_order_request):
        service.set_offline(True)

        with pytest.raises(ConnectionError):
            await service.place_order("user-1", market_order_request)

        service.set_offline(False)
        assert (await service.place_order("user-1", market_order_request)).status == OrderStatus.NEW

    @pytest.mark.asyncio
    async def test_injected_failure_until_restored(self, service):
        service.fail("get_news", TimeoutError("slow"))

        with pytest.raises(TimeoutError):
            await service.get_news()

        service.restore("get_news")
        assert len(await service.get_news()) == 2


class TestFactory:
    def test_seed_only_by_default(self, settings):
        service = create_crypto_service(settings)

        assert service.market_data is None

    @pytest.mark.asyncio
    async def test_market_data_enabled(self, settings):
        enabled = settings.model_copy(update={"market_data_enabled": True})

        service = create_crypto_service(enabled)

        assert isinstance(service.market_data, CoinGeckoClient)
        await service.aclose()
