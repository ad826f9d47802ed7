"""InMemoryCryptoService - CryptoServicePort implementation для demo і tests.

Seeded with the demo catalogue (BTC/ETH/SOL, BTCUSDT/ETHUSDT, two staking
products, news, one course) and keeps per-user accounts in memory.

Market endpoints (cryptocurrencies, overview, ticker) can be delegated to
a CoinGeckoClient; on MarketDataUnavailableError the seeded data is used.
Order book і trades синтетичні, генеруються з seeded RNG, тому
детерміновані для одного seed.
"""

import asyncio
import itertools
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from cryptodesk.config import Settings, get_settings
from cryptodesk.domain.crypto import (
    CryptoServicePort,
    MarketDataUnavailableError,
    OrderNotFoundError,
    StakingProductNotFoundError,
)
from cryptodesk.domain.crypto.models import (
    AlertRequest,
    Cryptocurrency,
    EducationContent,
    MarketOverview,
    MarketTrade,
    NewsItem,
    Order,
    OrderBook,
    OrderBookLevel,
    OrderRequest,
    P2POffer,
    P2POfferRequest,
    P2POfferType,
    Portfolio,
    PortfolioAsset,
    PriceAlert,
    StakingPosition,
    StakingProduct,
    StakingStatus,
    StakingType,
    Ticker,
    TradingPair,
    Transaction,
    TransactionType,
    WatchlistItem,
)
from cryptodesk.infrastructure.market_data import CoinGeckoClient, base_asset

logger = logging.getLogger(__name__)


def _d(value: str) -> Decimal:
    return Decimal(value)


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


# ==================== Seed catalogue ====================

SEED_CRYPTOCURRENCIES: tuple[Cryptocurrency, ...] = (
    Cryptocurrency(
        id="bitcoin",
        symbol="btc",
        name="Bitcoin",
        current_price=_d("43250.5"),
        market_cap=_d("846789123456"),
        market_cap_rank=1,
        total_volume=_d("25847123456"),
        high_24h=_d("43950.75"),
        low_24h=_d("42150.25"),
        price_change_24h=_d("1234.25"),
        price_change_percentage_24h=_d("2.94"),
        circulating_supply=_d("19578431"),
        ath=_d("69045"),
        image="https://assets.coingecko.com/coins/images/1/large/bitcoin.png",
        sparkline_7d=tuple(_d(p) for p in ("41000", "41500", "42000", "42500", "43000", "43250")),
    ),
    Cryptocurrency(
        id="ethereum",
        symbol="eth",
        name="Ethereum",
        current_price=_d("2645.89"),
        market_cap=_d("318234567890"),
        market_cap_rank=2,
        total_volume=_d("15234567890"),
        high_24h=_d("2689.45"),
        low_24h=_d("2598.32"),
        price_change_24h=_d("-32.56"),
        price_change_percentage_24h=_d("-1.22"),
        circulating_supply=_d("120291451"),
        ath=_d("4878.26"),
        image="https://assets.coingecko.com/coins/images/279/large/ethereum.png",
        sparkline_7d=tuple(_d(p) for p in ("2500", "2550", "2600", "2620", "2640", "2645")),
    ),
    Cryptocurrency(
        id="solana",
        symbol="sol",
        name="Solana",
        current_price=_d("98.45"),
        market_cap=_d("42567890123"),
        market_cap_rank=5,
        total_volume=_d("2345678901"),
        high_24h=_d("102.34"),
        low_24h=_d("96.78"),
        price_change_24h=_d("5.67"),
        price_change_percentage_24h=_d("6.12"),
        circulating_supply=_d("432567890"),
        ath=_d("259.96"),
        image="https://assets.coingecko.com/coins/images/4128/large/solana.png",
        sparkline_7d=tuple(_d(p) for p in ("90", "92", "95", "97", "99", "98.45")),
    ),
)

SEED_TRADING_PAIRS: tuple[TradingPair, ...] = (
    TradingPair(
        symbol="BTCUSDT",
        base_asset="BTC",
        quote_asset="USDT",
        price=_d("43250.5"),
        price_change_percent_24h=_d("2.94"),
        volume_24h=_d("12345.67"),
    ),
    TradingPair(
        symbol="ETHUSDT",
        base_asset="ETH",
        quote_asset="USDT",
        price=_d("2645.89"),
        price_change_percent_24h=_d("-1.22"),
        volume_24h=_d("45678.9"),
    ),
)

SEED_STAKING_PRODUCTS: tuple[StakingProduct, ...] = (
    StakingProduct(
        id="eth-staking-1",
        asset="ETH",
        reward_asset="ETH",
        type=StakingType.FLEXIBLE,
        apy=_d("4.5"),
        min_amount=_d("0.1"),
    ),
    StakingProduct(
        id="bnb-staking-1",
        asset="BNB",
        reward_asset="BNB",
        type=StakingType.LOCKED,
        apy=_d("8.2"),
        min_amount=_d("1"),
        duration_days=30,
    ),
)

SEED_NEWS: tuple[NewsItem, ...] = (
    NewsItem(
        id="news-1",
        title="Bitcoin Reaches New All-Time High Above $43,000",
        source="CryptoDaily",
        published_at=_ts("2024-01-15T14:30:00"),
        summary="Bitcoin surges to new heights as institutional adoption continues to grow.",
        tags=("Bitcoin", "ATH", "Institutional"),
    ),
    NewsItem(
        id="news-2",
        title="Ethereum Layer 2 Solutions See Massive Growth",
        source="BlockchainWeekly",
        published_at=_ts("2024-01-15T12:00:00"),
        summary="Layer 2 scaling solutions for Ethereum are experiencing unprecedented adoption.",
        tags=("Ethereum", "Layer2", "Scaling"),
    ),
)

SEED_EDUCATION: tuple[EducationContent, ...] = (
    EducationContent(
        id="edu-1",
        title="Introduction to Cryptocurrency Trading",
        category="Trading",
        level="BEGINNER",
        duration_minutes=45,
    ),
)

SEED_PORTFOLIO = Portfolio(
    assets=(
        PortfolioAsset(
            asset="BTC",
            free=_d("0.15"),
            locked=_d("0.05"),
            usd_value=_d("8650"),
            price=_d("43250"),
            change_24h=_d("1234.25"),
            change_percent_24h=_d("2.94"),
        ),
        PortfolioAsset(
            asset="ETH",
            free=_d("2.5"),
            locked=_d("0.5"),
            usd_value=_d("7937.67"),
            price=_d("2645.89"),
            change_24h=_d("-32.56"),
            change_percent_24h=_d("-1.22"),
        ),
        PortfolioAsset(
            asset="USDT",
            free=_d("2412.45"),
            locked=_d("0"),
            usd_value=_d("2412.45"),
            price=_d("1.0"),
        ),
    )
)

# Global stats used when CoinGecko is off or unavailable
SEED_TOTAL_MARKET_CAP = _d("1750000000000")
SEED_TOTAL_VOLUME = _d("85000000000")
SEED_BTC_DOMINANCE = _d("48.5")
SEED_ACTIVE_COINS = 8924

DEFAULT_MID_PRICE = _d("43250")
ORDER_BOOK_DEPTH = 20
ORDER_BOOK_STEP = _d("0.5")
P2P_OFFER_COUNT = 12
ERR_SERVICE_OFFLINE = "Crypto service is offline"


@dataclass
class _UserAccount:
    """Mutable per-user state (records inside are immutable)."""

    portfolio: Portfolio = SEED_PORTFOLIO
    open_orders: list[Order] = field(default_factory=list)
    order_history: list[Order] = field(default_factory=list)
    watchlist: list[WatchlistItem] = field(default_factory=list)
    alerts: list[PriceAlert] = field(default_factory=list)
    staking_positions: list[StakingPosition] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)

    @classmethod
    def seeded(cls) -> "_UserAccount":
        return cls(
            watchlist=[
                WatchlistItem(
                    id="watch-1",
                    asset="BTC",
                    added_at=_ts("2024-01-10T10:00:00"),
                    notes="Watching for breakout above $45k",
                )
            ],
            staking_positions=[
                StakingPosition(
                    id="position-1",
                    product_id="eth-staking-1",
                    asset="ETH",
                    amount=_d("5.0"),
                    apy=_d("4.5"),
                    status=StakingStatus.ACTIVE,
                    start_date=_ts("2024-01-01T00:00:00"),
                    total_rewards=_d("0.125"),
                    auto_renew=True,
                )
            ],
            transactions=[
                Transaction(
                    id="tx-1",
                    type=TransactionType.TRADE,
                    asset="BTC",
                    amount=_d("0.05"),
                    status="CONFIRMED",
                    created_at=_ts("2024-01-15T10:30:00"),
                    fee=_d("0.0001"),
                )
            ],
        )


class InMemoryCryptoService(CryptoServicePort):
    """In-memory crypto backend.

    Example:
        >>> service = InMemoryCryptoService(latency=0.05)
        >>> order = await service.place_order("user-1", request)
        >>> service.set_offline(True)  # every call now raises ConnectionError
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        market_data: CoinGeckoClient | None = None,
        latency: float | None = None,
        seed: int = 42,
    ) -> None:
        """Initialize service.

        Args:
            settings: Settings (latency default).
            market_data: Optional CoinGecko client for market endpoints.
            latency: Artificial delay per call in seconds (overrides settings).
            seed: RNG seed for synthetic order book / trades / P2P offers.
        """
        settings = settings or get_settings()
        self._latency = settings.service_latency_seconds if latency is None else latency
        self._market_data = market_data
        self._rng = random.Random(seed)
        # Seeded records use small ids (watch-1, position-1)
        self._ids = itertools.count(1000)
        self._update_ids = itertools.count(1)
        self._accounts: dict[str, _UserAccount] = {}
        self._p2p_offers: list[P2POffer] = []
        self._offline = False
        self._failures: dict[str, Exception] = {}

    # ==================== Test / demo controls ====================

    def set_offline(self, offline: bool) -> None:
        """Make every call fail with ConnectionError (or restore)."""
        self._offline = offline

    def fail(self, method: str, error: Exception) -> None:
        """Make one method raise error until restore() is called."""
        self._failures[method] = error

    def restore(self, method: str | None = None) -> None:
        if method is None:
            self._failures.clear()
        else:
            self._failures.pop(method, None)

    @property
    def market_data(self) -> CoinGeckoClient | None:
        return self._market_data

    async def aclose(self) -> None:
        """Close the market data client (if any)."""
        if self._market_data is not None:
            await self._market_data.aclose()

    async def _call(self, method: str) -> None:
        await asyncio.sleep(self._latency)
        if self._offline:
            raise ConnectionError(ERR_SERVICE_OFFLINE)
        error = self._failures.get(method)
        if error is not None:
            raise error

    def _account(self, user_id: str) -> _UserAccount:
        if user_id not in self._accounts:
            self._accounts[user_id] = _UserAccount.seeded()
        return self._accounts[user_id]

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _mid_price(self, symbol: str) -> Decimal:
        for pair in SEED_TRADING_PAIRS:
            if pair.symbol == symbol:
                return pair.price
        asset = base_asset(symbol).lower()
        for coin in SEED_CRYPTOCURRENCIES:
            if coin.symbol == asset:
                return coin.current_price
        return DEFAULT_MID_PRICE

    def _random(self, low: float, high: float, places: str = "0.0001") -> Decimal:
        return Decimal(str(self._rng.uniform(low, high))).quantize(Decimal(places))

    # ==================== Market ====================

    async def get_market_overview(self) -> MarketOverview:
        await self._call("get_market_overview")
        if self._market_data is not None:
            try:
                return await self._market_data.get_market_overview()
            except MarketDataUnavailableError as e:
                logger.warning(
                    "crypto_service.market_data_fallback",
                    extra={"endpoint": "overview", "error": str(e)},
                )

        coins = SEED_CRYPTOCURRENCIES
        return MarketOverview(
            total_market_cap=SEED_TOTAL_MARKET_CAP,
            total_volume_24h=SEED_TOTAL_VOLUME,
            market_cap_change_percentage_24h=Decimal("0"),
            btc_dominance=SEED_BTC_DOMINANCE,
            active_cryptocurrencies=SEED_ACTIVE_COINS,
            top_gainers=tuple(
                sorted(
                    (c for c in coins if c.price_change_percentage_24h > 0),
                    key=lambda c: c.price_change_percentage_24h,
                    reverse=True,
                )
            ),
            top_losers=tuple(
                sorted(
                    (c for c in coins if c.price_change_percentage_24h < 0),
                    key=lambda c: c.price_change_percentage_24h,
                )
            ),
        )

    async def get_cryptocurrencies(self, limit: int = 100) -> tuple[Cryptocurrency, ...]:
        await self._call("get_cryptocurrencies")
        if self._market_data is not None:
            try:
                return await self._market_data.get_cryptocurrencies(limit)
            except MarketDataUnavailableError as e:
                logger.warning(
                    "crypto_service.market_data_fallback",
                    extra={"endpoint": "cryptocurrencies", "error": str(e)},
                )
        return SEED_CRYPTOCURRENCIES[:limit]

    async def get_trading_pairs(self) -> tuple[TradingPair, ...]:
        await self._call("get_trading_pairs")
        return SEED_TRADING_PAIRS

    async def get_order_book(self, symbol: str) -> OrderBook:
        await self._call("get_order_book")
        mid = self._mid_price(symbol)
        bids = tuple(
            OrderBookLevel(price=mid - i * ORDER_BOOK_STEP, quantity=self._random(0, 10))
            for i in range(ORDER_BOOK_DEPTH)
        )
        asks = tuple(
            OrderBookLevel(price=mid + 1 + i * ORDER_BOOK_STEP, quantity=self._random(0, 10))
            for i in range(ORDER_BOOK_DEPTH)
        )
        return OrderBook(symbol=symbol, bids=bids, asks=asks, last_update_id=next(self._update_ids))

    async def get_recent_trades(self, symbol: str, limit: int = 50) -> tuple[MarketTrade, ...]:
        await self._call("get_recent_trades")
        mid = self._mid_price(symbol)
        now = datetime.now(timezone.utc)
        batch = next(self._update_ids)
        return tuple(
            MarketTrade(
                id=f"trade-{symbol}-{batch}-{i}",
                symbol=symbol,
                price=mid + self._random(-50, 50, "0.01"),
                quantity=self._random(0, 5),
                time=now - timedelta(seconds=i),
                is_buyer_maker=self._rng.random() > 0.5,
            )
            for i in range(limit)
        )

    async def get_ticker(self, symbol: str) -> Ticker:
        await self._call("get_ticker")
        if self._market_data is not None:
            try:
                return await self._market_data.get_ticker(symbol)
            except MarketDataUnavailableError as e:
                logger.warning(
                    "crypto_service.market_data_fallback",
                    extra={"endpoint": "ticker", "error": str(e)},
                )

        for pair in SEED_TRADING_PAIRS:
            if pair.symbol == symbol:
                return Ticker(
                    symbol=symbol,
                    price=pair.price,
                    price_change_percent_24h=pair.price_change_percent_24h,
                )
        return Ticker(symbol=symbol, price=self._mid_price(symbol))

    async def get_staking_products(self) -> tuple[StakingProduct, ...]:
        await self._call("get_staking_products")
        return SEED_STAKING_PRODUCTS

    async def get_p2p_offers(self, asset: str | None = None) -> tuple[P2POffer, ...]:
        await self._call("get_p2p_offers")
        generated = [
            P2POffer(
                id=f"offer-{i + 1}",
                user_id=f"user-{i + 1}",
                type=P2POfferType.SELL,
                asset="BTC",
                fiat_currency="USD",
                price=Decimal("43200") + self._random(0, 200, "0.01"),
                min_amount=Decimal("1000"),
                max_amount=Decimal("50000"),
                payment_methods=("Bank Transfer",),
                terms="Fast and reliable trader. Payment within 15 minutes required.",
                completion_rate=self._random(90, 100, "0.1"),
                total_trades=self._rng.randint(0, 2000),
                created_at=_ts("2024-01-15T10:30:00"),
            )
            for i in range(P2P_OFFER_COUNT)
        ]
        offers = [*reversed(self._p2p_offers), *generated]
        if asset is not None:
            offers = [o for o in offers if o.asset == asset]
        return tuple(offers)

    async def get_news(self, limit: int = 20, offset: int = 0) -> tuple[NewsItem, ...]:
        await self._call("get_news")
        return SEED_NEWS[offset:offset + limit]

    async def get_education_content(self) -> tuple[EducationContent, ...]:
        await self._call("get_education_content")
        return SEED_EDUCATION

    # ==================== Account ====================

    async def get_portfolio(self, user_id: str) -> Portfolio:
        await self._call("get_portfolio")
        return self._account(user_id).portfolio

    async def get_open_orders(self, user_id: str) -> tuple[Order, ...]:
        await self._call("get_open_orders")
        return tuple(self._account(user_id).open_orders)

    async def get_order_history(self, user_id: str, limit: int = 50) -> tuple[Order, ...]:
        await self._call("get_order_history")
        return tuple(self._account(user_id).order_history[-limit:])

    async def get_watchlist(self, user_id: str) -> tuple[WatchlistItem, ...]:
        await self._call("get_watchlist")
        return tuple(self._account(user_id).watchlist)

    async def get_alerts(self, user_id: str) -> tuple[PriceAlert, ...]:
        await self._call("get_alerts")
        return tuple(self._account(user_id).alerts)

    async def get_staking_positions(self, user_id: str) -> tuple[StakingPosition, ...]:
        await self._call("get_staking_positions")
        return tuple(self._account(user_id).staking_positions)

    async def get_transactions(self, user_id: str, limit: int = 50) -> tuple[Transaction, ...]:
        await self._call("get_transactions")
        return tuple(self._account(user_id).transactions[:limit])

    # ==================== Actions ====================

    async def place_order(self, user_id: str, request: OrderRequest) -> Order:
        await self._call("place_order")
        order = Order.from_request(self._next_id("order"), request)
        self._account(user_id).open_orders.append(order)
        logger.info(
            "crypto_service.order_placed",
            extra={"order_id": order.id, "symbol": order.symbol, "side": order.side.value},
        )
        return order

    async def cancel_order(self, user_id: str, order_id: str) -> None:
        await self._call("cancel_order")
        account = self._account(user_id)
        for order in account.open_orders:
            if order.id == order_id:
                account.open_orders.remove(order)
                account.order_history.append(order.canceled())
                logger.info("crypto_service.order_canceled", extra={"order_id": order_id})
                return
        raise OrderNotFoundError("Order not found", order_id=order_id)

    async def add_to_watchlist(
        self, user_id: str, asset: str, notes: str | None = None
    ) -> WatchlistItem:
        await self._call("add_to_watchlist")
        item = WatchlistItem(id=self._next_id("watch"), asset=asset, notes=notes)
        self._account(user_id).watchlist.append(item)
        return item

    async def remove_from_watchlist(self, user_id: str, item_id: str) -> None:
        await self._call("remove_from_watchlist")
        account = self._account(user_id)
        account.watchlist = [item for item in account.watchlist if item.id != item_id]

    async def create_alert(self, user_id: str, request: AlertRequest) -> PriceAlert:
        await self._call("create_alert")
        alert = PriceAlert.from_request(self._next_id("alert"), request)
        self._account(user_id).alerts.append(alert)
        return alert

    async def create_p2p_offer(self, user_id: str, request: P2POfferRequest) -> P2POffer:
        await self._call("create_p2p_offer")
        offer = P2POffer.from_request(self._next_id("offer"), user_id, request)
        self._p2p_offers.append(offer)
        return offer

    async def stake_asset(self, user_id: str, product_id: str, amount: Decimal) -> StakingPosition:
        await self._call("stake_asset")
        product = next((p for p in SEED_STAKING_PRODUCTS if p.id == product_id), None)
        if product is None:
            raise StakingProductNotFoundError("Staking product not found", product_id=product_id)

        position = StakingPosition.open(self._next_id("position"), product, amount)
        self._account(user_id).staking_positions.append(position)
        logger.info(
            "crypto_service.asset_staked",
            extra={"position_id": position.id, "product_id": product_id, "amount": str(amount)},
        )
        return position
