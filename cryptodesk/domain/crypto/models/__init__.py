"""Crypto domain records (immutable, safe to place into state slices)."""

from .account import (
    AlertRequest,
    P2POffer,
    P2POfferRequest,
    Portfolio,
    PortfolioAsset,
    PriceAlert,
    StakingPosition,
    StakingProduct,
    Transaction,
    WatchlistItem,
)
from .enums import (
    AlertCondition,
    OrderSide,
    OrderStatus,
    OrderType,
    P2POfferType,
    StakingStatus,
    StakingType,
    TransactionType,
)
from .market import (
    Cryptocurrency,
    EducationContent,
    MarketOverview,
    MarketTrade,
    NewsItem,
    OrderBook,
    OrderBookLevel,
    Ticker,
    TradingPair,
)
from .trading import Order, OrderRequest, is_provisional_id, provisional_id

__all__ = [
    # Enums
    "AlertCondition",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    "P2POfferType",
    "StakingStatus",
    "StakingType",
    "TransactionType",
    # Market
    "Cryptocurrency",
    "EducationContent",
    "MarketOverview",
    "MarketTrade",
    "NewsItem",
    "OrderBook",
    "OrderBookLevel",
    "Ticker",
    "TradingPair",
    # Trading
    "Order",
    "OrderRequest",
    "is_provisional_id",
    "provisional_id",
    # Account
    "AlertRequest",
    "P2POffer",
    "P2POfferRequest",
    "Portfolio",
    "PortfolioAsset",
    "PriceAlert",
    "StakingPosition",
    "StakingProduct",
    "Transaction",
    "WatchlistItem",
]
