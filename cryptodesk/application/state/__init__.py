"""State management building blocks: store, loader, polling, mutations."""

from .loader import LoadReport, LoadScope, Loader, SliceFetch, SliceFetchFn
from .mutations import (
    MutationGateway,
    MutationResult,
    MutationStatus,
    PendingMutation,
)
from .polling import PollingSubscription, SubscriptionHandle, SubscriptionRegistry
from .store import StateListener, StateStore

__all__ = [
    # Store
    "StateStore",
    "StateListener",
    # Loader
    "Loader",
    "LoadReport",
    "LoadScope",
    "SliceFetch",
    "SliceFetchFn",
    # Polling
    "PollingSubscription",
    "SubscriptionHandle",
    "SubscriptionRegistry",
    # Mutations
    "MutationGateway",
    "MutationResult",
    "MutationStatus",
    "PendingMutation",
]
