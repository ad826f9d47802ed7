"""CoinGecko client - public market data over httpx.

Request flow:
    fetch_with_cache(path) → fresh cache hit? return
                           → sleep(request_delay) → GET (retry 429/5xx/transport)
                           → success: cache + return
                           → failure: stale cache if any, else MarketDataUnavailableError

Payloads are validated with pydantic and mapped to domain records.
Відсутні числа стають 0; high/low/ATH за замовчуванням = current price.
"""

import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Callable

import httpx
from pydantic import BaseModel, Field, ValidationError

from cryptodesk.config import Settings, get_settings
from cryptodesk.domain.crypto import MarketDataUnavailableError
from cryptodesk.domain.crypto.models import Cryptocurrency, MarketOverview, Ticker

from .retry import RetryableError, retry_with_backoff

logger = logging.getLogger(__name__)

# Base asset → CoinGecko coin id
COIN_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "BNB": "binancecoin",
    "SOL": "solana",
    "ADA": "cardano",
    "AVAX": "avalanche-2",
    "DOT": "polkadot",
    "LINK": "chainlink",
}

QUOTE_ASSETS = ("USDT", "USDC", "BUSD", "USD")

# Used when /global omits a field
DEFAULT_TOTAL_MARKET_CAP = Decimal("1750000000000")
DEFAULT_TOTAL_VOLUME = Decimal("85000000000")
DEFAULT_BTC_DOMINANCE = Decimal("48.5")
DEFAULT_ACTIVE_COINS = 8924

TOP_MOVERS_COUNT = 5


def _dec(value: float | int | None, default: Decimal = Decimal("0")) -> Decimal:
    if not value:
        return default
    return Decimal(str(value))


def base_asset(symbol: str) -> str:
    """BTCUSDT → BTC (symbol without a known quote suffix)."""
    symbol = symbol.upper()
    for quote in QUOTE_ASSETS:
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return symbol[: -len(quote)]
    return symbol


# ==================== Payloads ====================


class SparklinePayload(BaseModel):
    price: list[float] = Field(default_factory=list)


class CoinMarketPayload(BaseModel):
    """Item of /coins/markets."""

    id: str
    symbol: str
    name: str
    current_price: float | None = None
    market_cap: float | None = None
    market_cap_rank: int | None = None
    total_volume: float | None = None
    high_24h: float | None = None
    low_24h: float | None = None
    price_change_24h: float | None = None
    price_change_percentage_24h: float | None = None
    circulating_supply: float | None = None
    ath: float | None = None
    image: str | None = None
    sparkline_in_7d: SparklinePayload | None = None

    def to_domain(self) -> Cryptocurrency:
        price = _dec(self.current_price)
        return Cryptocurrency(
            id=self.id,
            symbol=self.symbol,
            name=self.name,
            current_price=price,
            market_cap=_dec(self.market_cap),
            market_cap_rank=self.market_cap_rank or 0,
            total_volume=_dec(self.total_volume),
            high_24h=_dec(self.high_24h, price),
            low_24h=_dec(self.low_24h, price),
            price_change_24h=_dec(self.price_change_24h),
            price_change_percentage_24h=_dec(self.price_change_percentage_24h),
            circulating_supply=_dec(self.circulating_supply),
            ath=_dec(self.ath, price),
            image=self.image or "",
            sparkline_7d=tuple(
                Decimal(str(p)) for p in (self.sparkline_in_7d.price if self.sparkline_in_7d else [])
            ),
        )


class GlobalDataPayload(BaseModel):
    total_market_cap: dict[str, float] = Field(default_factory=dict)
    total_volume: dict[str, float] = Field(default_factory=dict)
    market_cap_percentage: dict[str, float] = Field(default_factory=dict)
    market_cap_change_percentage_24h_usd: float | None = None
    active_cryptocurrencies: int | None = None


class GlobalPayload(BaseModel):
    """/global response."""

    data: GlobalDataPayload


class TrendingItemPayload(BaseModel):
    id: str
    name: str
    symbol: str
    market_cap_rank: int | None = None
    thumb: str | None = None


class TrendingCoinPayload(BaseModel):
    item: TrendingItemPayload


class TrendingPayload(BaseModel):
    """/search/trending response."""

    coins: list[TrendingCoinPayload] = Field(default_factory=list)


# ==================== Client ====================


class CoinGeckoClient:
    """Async CoinGecko client з TTL cache і retry.

    Example:
        >>> client = CoinGeckoClient()
        >>> coins = await client.get_cryptocurrencies(limit=10)
        >>> ticker = await client.get_ticker("BTCUSDT")
        >>> await client.aclose()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize client.

        Args:
            settings: Settings (base URL, TTL, delay, retry policy).
            transport: Custom httpx transport (tests use httpx.MockTransport).
            clock: Monotonic clock for cache expiry.
        """
        settings = settings or get_settings()
        self._cache_ttl = settings.coingecko_cache_ttl
        self._request_delay = settings.coingecko_request_delay
        self._clock = clock
        # cache_key -> (stored_at, payload)
        self._cache: dict[str, tuple[float, Any]] = {}

        self._client = httpx.AsyncClient(
            base_url=settings.coingecko_api_base,
            timeout=settings.coingecko_timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._request = retry_with_backoff(
            max_retries=settings.coingecko_max_retries,
            base_delay=settings.coingecko_retry_base_delay,
            max_delay=settings.coingecko_retry_max_delay,
        )(self._request_once)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "CoinGeckoClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def clear_cache(self) -> None:
        self._cache.clear()

    # --- Transport ---

    async def _request_once(self, path: str, params: dict[str, Any] | None) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TransportError as e:
            raise RetryableError(f"{type(e).__name__} on {path}: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableError(f"HTTP {response.status_code} from {path}")
        response.raise_for_status()
        return response.json()

    async def fetch_with_cache(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        cache_key: str | None = None,
    ) -> Any:
        """GET path with TTL cache and stale fallback.

        Raises:
            MarketDataUnavailableError: Request failed and nothing is cached.
        """
        key = cache_key or path
        cached = self._cache.get(key)
        if cached is not None and self._clock() - cached[0] < self._cache_ttl:
            return cached[1]

        if self._request_delay:
            await asyncio.sleep(self._request_delay)

        try:
            payload = await self._request(path, params)
        except (RetryableError, httpx.HTTPError, ValueError) as e:
            logger.warning(
                "coingecko.request_failed",
                extra={
                    "path": path,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "stale_cache": cached is not None,
                },
            )
            if cached is not None:
                return cached[1]
            raise MarketDataUnavailableError(
                "Market data request failed", path=path, error=str(e)
            ) from e

        self._cache[key] = (self._clock(), payload)
        return payload

    def _parse(self, model: type[BaseModel], payload: Any, path: str) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise MarketDataUnavailableError(
                "Unexpected market data payload", path=path, error=str(e)
            ) from e

    # --- Endpoints ---

    async def get_cryptocurrencies(
        self, limit: int = 100, order: str = "market_cap_desc"
    ) -> tuple[Cryptocurrency, ...]:
        per_page = min(limit, 250)
        payload = await self.fetch_with_cache(
            "/coins/markets",
            params={
                "vs_currency": "usd",
                "order": order,
                "per_page": per_page,
                "page": 1,
                "sparkline": "true",
            },
            cache_key=f"cryptocurrencies_{per_page}_{order}",
        )
        if not isinstance(payload, list):
            raise MarketDataUnavailableError("Unexpected market data payload", path="/coins/markets")
        coins = [self._parse(CoinMarketPayload, item, "/coins/markets") for item in payload]
        return tuple(coin.to_domain() for coin in coins)

    async def get_market_overview(self) -> MarketOverview:
        """Global stats, trending coins, top gainers / losers."""
        global_payload = self._parse(
            GlobalPayload,
            await self.fetch_with_cache("/global", cache_key="global_market_data"),
            "/global",
        )
        trending_payload = self._parse(
            TrendingPayload,
            await self.fetch_with_cache("/search/trending", cache_key="trending_coins"),
            "/search/trending",
        )
        top = await self.get_cryptocurrencies(50)

        data = global_payload.data
        gainers = sorted(
            (c for c in top if c.price_change_percentage_24h > 0),
            key=lambda c: c.price_change_percentage_24h,
            reverse=True,
        )
        losers = sorted(
            (c for c in top if c.price_change_percentage_24h < 0),
            key=lambda c: c.price_change_percentage_24h,
        )
        # Trending API doesn't include prices
        trending = tuple(
            Cryptocurrency(
                id=coin.item.id,
                symbol=coin.item.symbol,
                name=coin.item.name,
                current_price=Decimal("0"),
                market_cap_rank=coin.item.market_cap_rank or 0,
                image=coin.item.thumb or "",
            )
            for coin in trending_payload.coins[:TOP_MOVERS_COUNT]
        )

        return MarketOverview(
            total_market_cap=_dec(data.total_market_cap.get("usd"), DEFAULT_TOTAL_MARKET_CAP),
            total_volume_24h=_dec(data.total_volume.get("usd"), DEFAULT_TOTAL_VOLUME),
            market_cap_change_percentage_24h=_dec(data.market_cap_change_percentage_24h_usd),
            btc_dominance=_dec(data.market_cap_percentage.get("btc"), DEFAULT_BTC_DOMINANCE),
            active_cryptocurrencies=data.active_cryptocurrencies or DEFAULT_ACTIVE_COINS,
            trending=trending,
            top_gainers=tuple(gainers[:TOP_MOVERS_COUNT]),
            top_losers=tuple(losers[:TOP_MOVERS_COUNT]),
        )

    async def get_ticker(self, symbol: str) -> Ticker:
        """Last USD price of the symbol's base asset.

        Raises:
            MarketDataUnavailableError: Unknown asset or request failed.
        """
        asset = base_asset(symbol)
        coin_id = COIN_IDS.get(asset)
        if coin_id is None:
            raise MarketDataUnavailableError("No market data source for asset", symbol=symbol)

        payload = await self.fetch_with_cache(
            "/simple/price",
            params={"ids": coin_id, "vs_currencies": "usd", "include_24hr_change": "true"},
            cache_key=f"realtime_prices_{coin_id}",
        )
        quote = payload.get(coin_id) if isinstance(payload, dict) else None
        if not quote or quote.get("usd") is None:
            raise MarketDataUnavailableError("Price missing in response", symbol=symbol)

        return Ticker(
            symbol=symbol,
            price=_dec(quote["usd"]),
            price_change_percent_24h=_dec(quote.get("usd_24h_change")),
        )
