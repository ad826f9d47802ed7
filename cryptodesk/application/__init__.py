"""Application Layer - state aggregation over the crypto domain.

Exports:
    CryptoAggregator: facade used by one UI view
    state: StateStore, Loader, PollingSubscription, MutationGateway
"""

from .aggregator import (
    CryptoAggregator,
    append_item,
    default_fetch_plan,
    prepend_item,
    remove_by_id,
    replace_by_id,
)
from .notifications import ACTION_MESSAGES, ActionMessages, MutationNotificationHandlers

__all__ = [
    "CryptoAggregator",
    "default_fetch_plan",
    "append_item",
    "prepend_item",
    "remove_by_id",
    "replace_by_id",
    "ACTION_MESSAGES",
    "ActionMessages",
    "MutationNotificationHandlers",
]
