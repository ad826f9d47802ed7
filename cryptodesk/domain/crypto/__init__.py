"""Crypto Bounded Context - Domain Layer.

Exports:
    Models: Order, OrderBook, Portfolio, WatchlistItem, PriceAlert, ... (immutable records)
    Exceptions: SliceLoadError, MutationError, AuthRequiredError, StaleWriteDiscarded, ...
    Events: MutationConfirmedEvent, MutationRolledBackEvent, MutationRejectedEvent
    Ports: CryptoServicePort, NotifierPort, IdentityProvider (interfaces)
"""

from .events import (
    MutationConfirmedEvent,
    MutationRejectedEvent,
    MutationRolledBackEvent,
)
from .exceptions import (
    AuthRequiredError,
    FetchTimeoutError,
    MarketDataUnavailableError,
    MutationError,
    OrderNotFoundError,
    SliceLoadError,
    StakingProductNotFoundError,
    StaleWriteDiscarded,
)
from .ports import CryptoServicePort, IdentityListener, IdentityProvider, NotifierPort

__all__ = [
    # Events
    "MutationConfirmedEvent",
    "MutationRejectedEvent",
    "MutationRolledBackEvent",
    # Exceptions
    "AuthRequiredError",
    "FetchTimeoutError",
    "MarketDataUnavailableError",
    "MutationError",
    "OrderNotFoundError",
    "SliceLoadError",
    "StakingProductNotFoundError",
    "StaleWriteDiscarded",
    # Ports
    "CryptoServicePort",
    "IdentityListener",
    "IdentityProvider",
    "NotifierPort",
]
