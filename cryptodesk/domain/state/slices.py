"""Slice names and their empty values."""

from enum import Enum
from typing import Any


class SliceName(str, Enum):
    """Named, independently replaceable part of DomainState."""

    MARKET_DATA = "market_data"
    CRYPTOCURRENCIES = "cryptocurrencies"
    TRADING_PAIRS = "trading_pairs"
    ORDER_BOOK = "order_book"
    RECENT_TRADES = "recent_trades"
    TICKER = "ticker"
    OPEN_ORDERS = "open_orders"
    ORDER_HISTORY = "order_history"
    PORTFOLIO = "portfolio"
    WATCHLIST = "watchlist"
    ALERTS = "alerts"
    TRANSACTIONS = "transactions"
    STAKING_PRODUCTS = "staking_products"
    STAKING_POSITIONS = "staking_positions"
    P2P_OFFERS = "p2p_offers"
    NEWS = "news"
    EDUCATION_CONTENT = "education_content"

    @property
    def is_private(self) -> bool:
        """User-scoped slice (cleared on sign-out)."""
        return self in PRIVATE_SLICES

    @property
    def empty_value(self) -> Any:
        """Value of the slice before it was loaded (or after it was cleared)."""
        return None if self in SCALAR_SLICES else ()


SCALAR_SLICES = frozenset({
    SliceName.MARKET_DATA,
    SliceName.ORDER_BOOK,
    SliceName.TICKER,
    SliceName.PORTFOLIO,
})

PRIVATE_SLICES = frozenset({
    SliceName.PORTFOLIO,
    SliceName.OPEN_ORDERS,
    SliceName.ORDER_HISTORY,
    SliceName.WATCHLIST,
    SliceName.ALERTS,
    SliceName.TRANSACTIONS,
    SliceName.STAKING_POSITIONS,
})
