"""CryptoAggregator - state layer behind one trading screen.

Control flow:
    view mounts → start() → Loader fills DomainState → view renders
    → subscribe_to_order_book("BTCUSDT") → PollingSubscription refreshes one slice
    → place_order(...) → MutationGateway: optimistic → remote → confirm / rollback
    view unmounts → close()

Один instance на один UI view; нічого не шариться між views.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Coroutine, Iterable

from cryptodesk.config import Settings, bind_view_context, clear_view_context, get_settings
from cryptodesk.domain.crypto import CryptoServicePort, IdentityProvider, NotifierPort
from cryptodesk.domain.crypto.models import (
    AlertRequest,
    Order,
    OrderRequest,
    P2POffer,
    P2POfferRequest,
    PriceAlert,
    StakingPosition,
    StakingProduct,
    WatchlistItem,
)
from cryptodesk.domain.state import PRIVATE_SLICES, DomainState, SliceName
from cryptodesk.infrastructure.messaging import EventBus

from .notifications import MutationNotificationHandlers
from .state import (
    LoadReport,
    LoadScope,
    Loader,
    MutationGateway,
    SliceFetch,
    StateListener,
    StateStore,
    SubscriptionHandle,
    SubscriptionRegistry,
)

logger = logging.getLogger(__name__)


# ============================================================================
# PURE SLICE HELPERS (used as optimistic_update / reconcile)
# ============================================================================


def append_item(items: Iterable[Any], item: Any) -> tuple[Any, ...]:
    return (*items, item)


def prepend_item(items: Iterable[Any], item: Any) -> tuple[Any, ...]:
    return (item, *items)


def remove_by_id(items: Iterable[Any], item_id: str) -> tuple[Any, ...]:
    return tuple(i for i in items if i.id != item_id)


def replace_by_id(items: Iterable[Any], old_id: str, new: Any) -> tuple[Any, ...]:
    """Replace the record with old_id by new.

    If old_id is gone (slice was refreshed meanwhile) new is appended, unless
    a record with new.id is already present.
    """
    items = tuple(items)
    if any(i.id == old_id for i in items):
        return tuple(new if i.id == old_id else i for i in items)
    if any(i.id == new.id for i in items):
        return items
    return (*items, new)


# ============================================================================
# FETCH PLAN
# ============================================================================


def default_fetch_plan(service: CryptoServicePort, settings: Settings) -> list[SliceFetch]:
    """Slices loaded by CryptoAggregator.

    Public slices always; private slices (portfolio, orders, watchlist, ...)
    only when somebody is signed in. P2P offers are on demand.
    """

    def public(fetch: Callable[[], Awaitable[Any]]) -> Callable[[str | None], Awaitable[Any]]:
        return lambda _user_id: fetch()

    return [
        # Public
        SliceFetch(SliceName.MARKET_DATA, public(service.get_market_overview)),
        SliceFetch(SliceName.CRYPTOCURRENCIES, public(service.get_cryptocurrencies)),
        SliceFetch(SliceName.NEWS, public(lambda: service.get_news(limit=settings.news_limit))),
        SliceFetch(SliceName.TRADING_PAIRS, public(service.get_trading_pairs)),
        SliceFetch(SliceName.STAKING_PRODUCTS, public(service.get_staking_products)),
        SliceFetch(SliceName.EDUCATION_CONTENT, public(service.get_education_content)),
        SliceFetch(SliceName.P2P_OFFERS, public(service.get_p2p_offers), on_demand=True),
        # Private (user_id is never None here)
        SliceFetch(SliceName.PORTFOLIO, service.get_portfolio),
        SliceFetch(SliceName.WATCHLIST, service.get_watchlist),
        SliceFetch(SliceName.ALERTS, service.get_alerts),
        SliceFetch(SliceName.STAKING_POSITIONS, service.get_staking_positions),
        SliceFetch(SliceName.TRANSACTIONS, service.get_transactions),
        SliceFetch(SliceName.OPEN_ORDERS, service.get_open_orders),
        SliceFetch(SliceName.ORDER_HISTORY, service.get_order_history),
    ]


# ============================================================================
# AGGREGATOR
# ============================================================================


class CryptoAggregator:
    """Domain state aggregator with polling-based live updates.

    Example:
        >>> async with CryptoAggregator(service, identity, notifier) as desk:
        ...     await desk.start()
        ...     cancel = desk.subscribe_to_order_book("BTCUSDT")
        ...     order = await desk.place_order(
        ...         OrderRequest("BTCUSDT", OrderSide.BUY, OrderType.MARKET, Decimal("1"))
        ...     )
        ...     cancel()
    """

    def __init__(
        self,
        service: CryptoServicePort,
        identity: IdentityProvider,
        notifier: NotifierPort,
        *,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
        plan: list[SliceFetch] | None = None,
        view_id: str | None = None,
    ) -> None:
        """Initialize aggregator (nothing is fetched until start()).

        Args:
            service: Remote crypto backend.
            identity: Current user source.
            notifier: Toast collaborator for user-visible outcomes.
            settings: Settings (defaults to get_settings()).
            event_bus: Bus for mutation events (a private one by default).
            plan: Fetch plan override (defaults to default_fetch_plan()).
            view_id: Bound to log context while the view is mounted.
        """
        self._settings = settings or get_settings()
        self._service = service
        self._identity = identity

        self._store = StateStore()
        self._events = event_bus or EventBus()
        self._loader = Loader(
            self._store,
            plan if plan is not None else default_fetch_plan(service, self._settings),
            identity,
            timeout=self._settings.fetch_timeout_seconds,
        )
        self._subscriptions = SubscriptionRegistry(
            self._store, timeout=self._settings.fetch_timeout_seconds
        )
        self._gateway = MutationGateway(
            self._store,
            identity,
            self._events,
            timeout=self._settings.mutation_timeout_seconds,
        )
        MutationNotificationHandlers(notifier).register(self._events)

        self._current_user_id = identity.current_user_id
        self._identity_unsubscribe: Callable[[], None] | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._reload_pending = False
        self._closed = False
        self._view_id = view_id

    # ==================== Read side ====================

    @property
    def state(self) -> DomainState:
        """Read-only snapshot of the current DomainState."""
        return self._store.get()

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def loader(self) -> Loader:
        return self._loader

    @property
    def gateway(self) -> MutationGateway:
        return self._gateway

    @property
    def subscriptions(self) -> SubscriptionRegistry:
        return self._subscriptions

    @property
    def event_bus(self) -> EventBus:
        return self._events

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Re-render hook: listener(state, changed_slice) after every slice update."""
        return self._store.subscribe(listener)

    # ==================== Lifecycle ====================

    async def start(self) -> LoadReport:
        """Watch identity transitions and run the initial load."""
        if self._closed:
            raise RuntimeError("Aggregator is closed")
        if self._identity_unsubscribe is None:
            self._identity_unsubscribe = self._identity.subscribe(self._on_identity_changed)
            # Identity may have changed since __init__; the initial load covers it
            self._current_user_id = self._identity.current_user_id
            self._reload_pending = False
        if self._view_id is not None:
            bind_view_context(self._view_id, self._current_user_id)
        logger.info("aggregator.started", extra={"signed_in": self._current_user_id is not None})
        return await self._loader.load_all()

    async def close(self) -> None:
        """Tear down: cancel subscriptions, detach identity, stop background reloads.

        Idempotent.
        """
        if self._closed:
            return
        self._closed = True

        self._subscriptions.cancel_all()
        if self._identity_unsubscribe is not None:
            self._identity_unsubscribe()
            self._identity_unsubscribe = None

        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._reload_pending = False

        await self._subscriptions.aclose()

        self._events.clear()
        logger.info("aggregator.closed")
        if self._view_id is not None:
            clear_view_context()

    async def __aenter__(self) -> "CryptoAggregator":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def drain(self) -> None:
        """Wait for background reloads started by identity transitions.

        A sign-in reported outside the event loop only marks the reload as
        pending; it runs here.
        """
        if self._reload_pending and not self._closed:
            self._reload_pending = False
            if self._current_user_id is not None:
                self._spawn(self.refresh_user_data())
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ==================== Loading ====================

    async def refresh(self) -> LoadReport:
        """Full reload (public + user slices)."""
        return await self._loader.load_all(LoadScope.ALL)

    async def refresh_user_data(self) -> LoadReport:
        """Reload user-scoped slices only."""
        return await self._loader.load_all(LoadScope.PRIVATE)

    async def load_p2p_offers(self) -> LoadReport:
        """Load the P2P marketplace slice (not part of the initial load)."""
        return await self._loader.load_slices([SliceName.P2P_OFFERS])

    # ==================== Identity ====================

    def _on_identity_changed(self, previous: str | None, current: str | None) -> None:
        if self._closed or current == self._current_user_id:
            return
        previous = self._current_user_id
        self._current_user_id = current

        logger.info(
            "aggregator.identity_changed",
            extra={"signed_in_before": previous is not None, "signed_in": current is not None},
        )

        if previous is not None:
            self._clear_user_data()
        if current is not None:
            self._spawn(self.refresh_user_data())

    def _clear_user_data(self) -> None:
        # Order matters: stale in-flight loads and mutations must not refill cleared slices
        self._loader.invalidate(PRIVATE_SLICES)
        self._gateway.abandon(PRIVATE_SLICES)
        self._store.reset(sorted(PRIVATE_SLICES, key=lambda s: s.value))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Identity changed off the event loop thread; drain() runs the reload
            coro.close()
            self._reload_pending = True
            logger.info("aggregator.reload_deferred")
            return
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ==================== Subscriptions ====================

    def subscribe_to_trades(self, symbol: str) -> SubscriptionHandle:
        limit = self._settings.recent_trades_limit
        return self._start_polling(
            SliceName.RECENT_TRADES,
            symbol,
            self._settings.trades_poll_interval,
            lambda: self._service.get_recent_trades(symbol, limit),
        )

    def subscribe_to_order_book(self, symbol: str) -> SubscriptionHandle:
        return self._start_polling(
            SliceName.ORDER_BOOK,
            symbol,
            self._settings.order_book_poll_interval,
            lambda: self._service.get_order_book(symbol),
        )

    def subscribe_to_ticker(self, symbol: str) -> SubscriptionHandle:
        return self._start_polling(
            SliceName.TICKER,
            symbol,
            self._settings.ticker_poll_interval,
            lambda: self._service.get_ticker(symbol),
        )

    def _start_polling(
        self,
        target: SliceName,
        symbol: str,
        interval: float,
        fetch: Callable[[], Awaitable[Any]],
    ) -> SubscriptionHandle:
        """Start polling; one focused symbol per slice.

        Returns:
            Handle; calling it (or handle.cancel()) stops polling.
        """
        if self._closed:
            raise RuntimeError("Aggregator is closed")
        key = f"{target.value}:{symbol}"
        # Another symbol on the same slice would overwrite this one's writes
        self._subscriptions.cancel_where(lambda s: s.target == target and s.key != key)
        return self._subscriptions.start(key, interval, fetch, target)

    # ==================== Actions ====================

    async def place_order(self, request: OrderRequest) -> Order:
        user_id = self._identity.current_user_id
        provisional = Order.provisional(request)
        result = await self._gateway.mutate(
            "place_order",
            SliceName.OPEN_ORDERS,
            optimistic_update=lambda orders: append_item(orders, provisional),
            remote_call=lambda: self._service.place_order(user_id, request),
            reconcile=lambda orders, order: replace_by_id(orders, provisional.id, order),
        )
        return result.value

    async def cancel_order(self, order_id: str) -> None:
        user_id = self._identity.current_user_id
        await self._gateway.mutate(
            "cancel_order",
            SliceName.OPEN_ORDERS,
            optimistic_update=lambda orders: remove_by_id(orders, order_id),
            remote_call=lambda: self._service.cancel_order(user_id, order_id),
        )

    async def add_to_watchlist(self, asset: str, notes: str | None = None) -> WatchlistItem:
        user_id = self._identity.current_user_id
        provisional = WatchlistItem.provisional(asset, notes)
        result = await self._gateway.mutate(
            "add_to_watchlist",
            SliceName.WATCHLIST,
            optimistic_update=lambda items: append_item(items, provisional),
            remote_call=lambda: self._service.add_to_watchlist(user_id, asset, notes),
            reconcile=lambda items, item: replace_by_id(items, provisional.id, item),
        )
        return result.value

    async def remove_from_watchlist(self, item_id: str) -> None:
        user_id = self._identity.current_user_id
        await self._gateway.mutate(
            "remove_from_watchlist",
            SliceName.WATCHLIST,
            optimistic_update=lambda items: remove_by_id(items, item_id),
            remote_call=lambda: self._service.remove_from_watchlist(user_id, item_id),
        )

    async def create_alert(self, request: AlertRequest) -> PriceAlert:
        user_id = self._identity.current_user_id
        provisional = PriceAlert.provisional(request)
        result = await self._gateway.mutate(
            "create_alert",
            SliceName.ALERTS,
            optimistic_update=lambda alerts: append_item(alerts, provisional),
            remote_call=lambda: self._service.create_alert(user_id, request),
            reconcile=lambda alerts, alert: replace_by_id(alerts, provisional.id, alert),
        )
        return result.value

    async def create_p2p_offer(self, request: P2POfferRequest) -> P2POffer:
        user_id = self._identity.current_user_id
        provisional = P2POffer.provisional(user_id or "", request)
        result = await self._gateway.mutate(
            "create_p2p_offer",
            SliceName.P2P_OFFERS,
            optimistic_update=lambda offers: prepend_item(offers, provisional),
            remote_call=lambda: self._service.create_p2p_offer(user_id, request),
            reconcile=lambda offers, offer: replace_by_id(offers, provisional.id, offer),
        )
        return result.value

    async def stake_asset(self, product_id: str, amount: Decimal) -> StakingPosition:
        user_id = await self._gateway.ensure_identity("stake_asset")
        if amount <= 0:
            raise ValueError("Stake amount must be positive")
        provisional = StakingPosition.provisional(product_id, amount, self._staking_product(product_id))
        result = await self._gateway.mutate(
            "stake_asset",
            SliceName.STAKING_POSITIONS,
            optimistic_update=lambda positions: append_item(positions, provisional),
            remote_call=lambda: self._service.stake_asset(user_id, product_id, amount),
            reconcile=lambda positions, position: replace_by_id(positions, provisional.id, position),
        )
        return result.value

    def _staking_product(self, product_id: str) -> StakingProduct | None:
        for product in self._store.value(SliceName.STAKING_PRODUCTS):
            if product.id == product_id:
                return product
        return None
