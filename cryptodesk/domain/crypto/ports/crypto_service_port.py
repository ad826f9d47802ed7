"""CryptoServicePort - abstract interface до remote crypto backend.

Це PORT в Hexagonal Architecture: application layer визначає ЩО потрібно,
infrastructure (InMemoryCryptoService, HTTP clients) визначає ЯК.

Every method returns immutable domain records (tuples for collections) or
raises. User-scoped methods take the user id explicitly.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from ..models import (
    AlertRequest,
    Cryptocurrency,
    EducationContent,
    MarketOverview,
    MarketTrade,
    NewsItem,
    Order,
    OrderBook,
    OrderRequest,
    P2POffer,
    P2POfferRequest,
    Portfolio,
    PriceAlert,
    StakingPosition,
    StakingProduct,
    Ticker,
    TradingPair,
    Transaction,
    WatchlistItem,
)


class CryptoServicePort(ABC):
    """Abstract interface для crypto data + actions.

    Example (Application uses):
        >>> async def load(service: CryptoServicePort):
        ...     book = await service.get_order_book("BTCUSDT")
        ...     # book завжди OrderBook (normalized)
    """

    # --- MARKET (public) ---

    @abstractmethod
    async def get_market_overview(self) -> MarketOverview:
        pass

    @abstractmethod
    async def get_cryptocurrencies(self, limit: int = 100) -> tuple[Cryptocurrency, ...]:
        pass

    @abstractmethod
    async def get_trading_pairs(self) -> tuple[TradingPair, ...]:
        pass

    @abstractmethod
    async def get_order_book(self, symbol: str) -> OrderBook:
        pass

    @abstractmethod
    async def get_recent_trades(self, symbol: str, limit: int = 50) -> tuple[MarketTrade, ...]:
        pass

    @abstractmethod
    async def get_ticker(self, symbol: str) -> Ticker:
        pass

    @abstractmethod
    async def get_staking_products(self) -> tuple[StakingProduct, ...]:
        pass

    @abstractmethod
    async def get_p2p_offers(self, asset: str | None = None) -> tuple[P2POffer, ...]:
        pass

    @abstractmethod
    async def get_news(self, limit: int = 20, offset: int = 0) -> tuple[NewsItem, ...]:
        pass

    @abstractmethod
    async def get_education_content(self) -> tuple[EducationContent, ...]:
        pass

    # --- ACCOUNT (user-scoped) ---

    @abstractmethod
    async def get_portfolio(self, user_id: str) -> Portfolio:
        pass

    @abstractmethod
    async def get_open_orders(self, user_id: str) -> tuple[Order, ...]:
        pass

    @abstractmethod
    async def get_order_history(self, user_id: str, limit: int = 50) -> tuple[Order, ...]:
        pass

    @abstractmethod
    async def get_watchlist(self, user_id: str) -> tuple[WatchlistItem, ...]:
        pass

    @abstractmethod
    async def get_alerts(self, user_id: str) -> tuple[PriceAlert, ...]:
        pass

    @abstractmethod
    async def get_staking_positions(self, user_id: str) -> tuple[StakingPosition, ...]:
        pass

    @abstractmethod
    async def get_transactions(self, user_id: str, limit: int = 50) -> tuple[Transaction, ...]:
        pass

    # --- ACTIONS ---

    @abstractmethod
    async def place_order(self, user_id: str, request: OrderRequest) -> Order:
        """Place order.

        Returns:
            Order as accepted by the server (status NEW).
        """
        pass

    @abstractmethod
    async def cancel_order(self, user_id: str, order_id: str) -> None:
        pass

    @abstractmethod
    async def add_to_watchlist(
        self, user_id: str, asset: str, notes: str | None = None
    ) -> WatchlistItem:
        pass

    @abstractmethod
    async def remove_from_watchlist(self, user_id: str, item_id: str) -> None:
        pass

    @abstractmethod
    async def create_alert(self, user_id: str, request: AlertRequest) -> PriceAlert:
        pass

    @abstractmethod
    async def create_p2p_offer(self, user_id: str, request: P2POfferRequest) -> P2POffer:
        pass

    @abstractmethod
    async def stake_asset(self, user_id: str, product_id: str, amount: Decimal) -> StakingPosition:
        """Stake amount into product.

        Raises:
            StakingProductNotFoundError: If product id is unknown.
        """
        pass
