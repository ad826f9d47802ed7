"""Market records - public data shared by every user."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from cryptodesk.domain.shared import ValueObject, validate_value_object


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Cryptocurrency(ValueObject):
    """One coin in the market listing."""

    id: str
    symbol: str
    name: str
    current_price: Decimal
    market_cap: Decimal = Decimal("0")
    market_cap_rank: int = 0
    total_volume: Decimal = Decimal("0")
    high_24h: Decimal = Decimal("0")
    low_24h: Decimal = Decimal("0")
    price_change_24h: Decimal = Decimal("0")
    price_change_percentage_24h: Decimal = Decimal("0")
    circulating_supply: Decimal = Decimal("0")
    ath: Decimal = Decimal("0")
    image: str = ""
    sparkline_7d: tuple[Decimal, ...] = ()
    last_updated: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class MarketOverview(ValueObject):
    """Global market statistics + top movers."""

    total_market_cap: Decimal
    total_volume_24h: Decimal
    market_cap_change_percentage_24h: Decimal
    btc_dominance: Decimal
    active_cryptocurrencies: int = 0
    trending: tuple[Cryptocurrency, ...] = ()
    top_gainers: tuple[Cryptocurrency, ...] = ()
    top_losers: tuple[Cryptocurrency, ...] = ()


@dataclass(frozen=True)
class TradingPair(ValueObject):
    """Tradable symbol, e.g. BTCUSDT = BTC/USDT."""

    symbol: str
    base_asset: str
    quote_asset: str
    price: Decimal = Decimal("0")
    price_change_percent_24h: Decimal = Decimal("0")
    volume_24h: Decimal = Decimal("0")
    is_active: bool = True


@dataclass(frozen=True)
class OrderBookLevel(ValueObject):
    """One price level of the order book."""

    price: Decimal
    quantity: Decimal

    @property
    def total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class OrderBook(ValueObject):
    """Order book snapshot for one symbol.

    Bids sorted by price descending, asks ascending.
    """

    symbol: str
    bids: tuple[OrderBookLevel, ...]
    asks: tuple[OrderBookLevel, ...]
    last_update_id: int
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def best_bid(self) -> OrderBookLevel | None:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> OrderBookLevel | None:
        return self.asks[0] if self.asks else None

    @property
    def spread(self) -> Decimal | None:
        """Різниця між best ask і best bid (None if one side is empty)."""
        if self.best_bid is None or self.best_ask is None:
            return None
        return self.best_ask.price - self.best_bid.price


@dataclass(frozen=True)
class MarketTrade(ValueObject):
    """Public trade print."""

    id: str
    symbol: str
    price: Decimal
    quantity: Decimal
    time: datetime
    is_buyer_maker: bool = False

    @property
    def quote_quantity(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class Ticker(ValueObject):
    """Last price of a symbol."""

    symbol: str
    price: Decimal
    price_change_percent_24h: Decimal = Decimal("0")
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        validate_value_object(self.price >= 0, "Ticker price cannot be negative")


@dataclass(frozen=True)
class NewsItem(ValueObject):
    id: str
    title: str
    source: str
    published_at: datetime
    summary: str = ""
    url: str = ""
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class EducationContent(ValueObject):
    id: str
    title: str
    category: str
    level: str
    duration_minutes: int = 0
    url: str = ""
