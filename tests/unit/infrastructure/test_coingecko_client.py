"""Tests для CoinGeckoClient (httpx.MockTransport, без мережі)."""

from decimal import Decimal

import httpx
import pytest

from cryptodesk.domain.crypto import MarketDataUnavailableError
from cryptodesk.infrastructure.market_data import CoinGeckoClient, base_asset

BTC_MARKET = {
    "id": "bitcoin",
    "symbol": "btc",
    "name": "Bitcoin",
    "current_price": 43250.5,
    "market_cap": 846789123456,
    "market_cap_rank": 1,
    "high_24h": 43950.75,
    "price_change_percentage_24h": 2.94,
    "sparkline_in_7d": {"price": [41000, 43250]},
}

ETH_MARKET = {
    "id": "ethereum",
    "symbol": "eth",
    "name": "Ethereum",
    "current_price": 2645.89,
    "price_change_percentage_24h": -1.22,
}


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class Router:
    """MockTransport handler: path → queue of responses, records requests."""

    def __init__(self, routes):
        self.routes = {path: list(responses) for path, responses in routes.items()}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes[request.url.path.removeprefix("/api/v3")]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    def count(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path.endswith(path))


def make_client(settings, router, clock=None):
    return CoinGeckoClient(settings, transport=httpx.MockTransport(router), clock=clock or FakeClock())


class TestFetchWithCache:
    @pytest.mark.asyncio
    async def test_second_call_within_ttl_served_from_cache(self, settings):
        # Arrange
        router = Router({"/coins/markets": [httpx.Response(200, json=[BTC_MARKET])]})
        client = make_client(settings, router)

        # Act
        first = await client.get_cryptocurrencies(limit=1)
        second = await client.get_cryptocurrencies(limit=1)

        # Assert
        assert first == second
        assert router.count("/coins/markets") == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self, settings):
        # Arrange
        clock = FakeClock()
        router = Router({"/coins/markets": [httpx.Response(200, json=[BTC_MARKET])]})
        client = make_client(settings, router, clock)
        await client.get_cryptocurrencies(limit=1)

        # Act
        clock.now += settings.coingecko_cache_ttl + 1
        await client.get_cryptocurrencies(limit=1)

        # Assert
        assert router.count("/coins/markets") == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_clear_cache_forces_refetch(self, settings):
        router = Router({"/coins/markets": [httpx.Response(200, json=[BTC_MARKET])]})
        client = make_client(settings, router)
        await client.get_cryptocurrencies(limit=1)

        client.clear_cache()
        await client.get_cryptocurrencies(limit=1)

        assert router.count("/coins/markets") == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_failure_returns_stale_cache(self, settings):
        # Arrange
        clock = FakeClock()
        router = Router(
            {"/coins/markets": [httpx.Response(200, json=[BTC_MARKET]), httpx.Response(503)]}
        )
        client = make_client(settings, router, clock)
        fresh = await client.get_cryptocurrencies(limit=1)

        # Act
        clock.now += settings.coingecko_cache_ttl + 1
        stale = await client.get_cryptocurrencies(limit=1)

        # Assert
        assert stale == fresh
        # 1 success + first attempt + retries
        assert router.count("/coins/markets") == 2 + settings.coingecko_max_retries
        await client.aclose()

    @pytest.mark.asyncio
    async def test_failure_without_cache_raises(self, settings):
        router = Router({"/global": [httpx.Response(500)]})
        client = make_client(settings, router)

        with pytest.raises(MarketDataUnavailableError):
            await client.fetch_with_cache("/global")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, settings):
        # Arrange
        router = Router(
            {"/coins/markets": [httpx.Response(429), httpx.Response(200, json=[BTC_MARKET])]}
        )
        client = make_client(settings, router)

        # Act
        coins = await client.get_cryptocurrencies(limit=1)

        # Assert
        assert coins[0].id == "bitcoin"
        assert router.count("/coins/markets") == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, settings):
        router = Router(
            {"/coins/markets": [httpx.ConnectError("refused"), httpx.Response(200, json=[BTC_MARKET])]}
        )
        client = make_client(settings, router)

        coins = await client.get_cryptocurrencies(limit=1)

        assert len(coins) == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, settings):
        router = Router({"/global": [httpx.Response(404)]})
        client = make_client(settings, router)

        with pytest.raises(MarketDataUnavailableError):
            await client.fetch_with_cache("/global")
        assert router.count("/global") == 1
        await client.aclose()


class TestMapping:
    @pytest.mark.asyncio
    async def test_missing_fields_get_defaults(self, settings):
        # Arrange
        router = Router({"/coins/markets": [httpx.Response(200, json=[BTC_MARKET, ETH_MARKET])]})
        client = make_client(settings, router)

        # Act
        btc, eth = await client.get_cryptocurrencies(limit=2)

        # Assert
        assert btc.current_price == Decimal("43250.5")
        assert btc.high_24h == Decimal("43950.75")
        assert btc.low_24h == btc.current_price
        assert btc.sparkline_7d == (Decimal("41000"), Decimal("43250"))
        assert eth.market_cap == 0
        assert eth.ath == eth.current_price
        assert eth.market_cap_rank == 0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_market_overview(self, settings):
        # Arrange
        router = Router(
            {
                "/global": [
                    httpx.Response(
                        200,
                        json={
                            "data": {
                                "total_market_cap": {"usd": 1.8e12},
                                "market_cap_percentage": {"btc": 50.1},
                                "active_cryptocurrencies": 9000,
                            }
                        },
                    )
                ],
                "/search/trending": [
                    httpx.Response(
                        200,
                        json={"coins": [{"item": {"id": "pepe", "name": "Pepe", "symbol": "PEPE", "thumb": "t.png"}}]},
                    )
                ],
                "/coins/markets": [httpx.Response(200, json=[BTC_MARKET, ETH_MARKET])],
            }
        )
        client = make_client(settings, router)

        # Act
        overview = await client.get_market_overview()

        # Assert
        assert overview.btc_dominance == Decimal("50.1")
        assert overview.active_cryptocurrencies == 9000
        assert overview.total_volume_24h == Decimal("85000000000")
        assert [c.id for c in overview.top_gainers] == ["bitcoin"]
        assert [c.id for c in overview.top_losers] == ["ethereum"]
        assert overview.trending[0].id == "pepe"
        assert overview.trending[0].current_price == 0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_ticker(self, settings):
        router = Router(
            {"/simple/price": [httpx.Response(200, json={"bitcoin": {"usd": 43300.0, "usd_24h_change": 1.5}})]}
        )
        client = make_client(settings, router)

        ticker = await client.get_ticker("BTCUSDT")

        assert ticker.symbol == "BTCUSDT"
        assert ticker.price == Decimal("43300.0")
        assert ticker.price_change_percent_24h == Decimal("1.5")
        assert router.requests[0].url.params["ids"] == "bitcoin"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_ticker_unknown_asset(self, settings):
        client = make_client(settings, Router({}))

        with pytest.raises(MarketDataUnavailableError):
            await client.get_ticker("XYZUSDT")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unexpected_payload(self, settings):
        router = Router({"/coins/markets": [httpx.Response(200, json={"error": "nope"})]})
        client = make_client(settings, router)

        with pytest.raises(MarketDataUnavailableError):
            await client.get_cryptocurrencies()
        await client.aclose()


@pytest.mark.parametrize(
    "symbol,expected",
    [("BTCUSDT", "BTC"), ("ethusdc", "ETH"), ("SOLUSD", "SOL"), ("BTC", "BTC"), ("USDT", "USDT")],
)
def test_base_asset(symbol, expected):
    assert base_asset(symbol) == expected
