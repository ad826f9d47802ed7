"""Event handlers що перетворюють mutation events на toasts.

MutationError / AuthRequiredError are user-visible: the gateway publishes
an event, these handlers show the message through NotifierPort.
"""

import logging
from typing import Mapping, NamedTuple

from cryptodesk.domain.crypto import (
    MutationConfirmedEvent,
    MutationRejectedEvent,
    MutationRolledBackEvent,
    NotifierPort,
)
from cryptodesk.infrastructure.messaging import EventBus

logger = logging.getLogger(__name__)


class ActionMessages(NamedTuple):
    success_title: str
    success_message: str
    failure_title: str
    failure_message: str


ACTION_MESSAGES: Mapping[str, ActionMessages] = {
    "place_order": ActionMessages(
        "Order Placed", "Your order has been submitted.",
        "Order Failed", "Failed to place order. Please try again.",
    ),
    "cancel_order": ActionMessages(
        "Order Cancelled", "Your order has been cancelled.",
        "Cancel Failed", "Failed to cancel order. Please try again.",
    ),
    "add_to_watchlist": ActionMessages(
        "Added to Watchlist", "Asset has been added to your watchlist.",
        "Error", "Failed to add to watchlist.",
    ),
    "remove_from_watchlist": ActionMessages(
        "Removed from Watchlist", "Asset has been removed from your watchlist.",
        "Error", "Failed to remove from watchlist.",
    ),
    "create_alert": ActionMessages(
        "Alert Created", "You will be notified when the price target is hit.",
        "Error", "Failed to create price alert.",
    ),
    "create_p2p_offer": ActionMessages(
        "Offer Created", "Your P2P offer is now live.",
        "Error", "Failed to create P2P offer.",
    ),
    "stake_asset": ActionMessages(
        "Staking Successful", "Your assets have been staked.",
        "Staking Failed", "Failed to stake assets. Please try again.",
    ),
}

_FALLBACK = ActionMessages("Done", "Action completed.", "Error", "Action failed.")


class MutationNotificationHandlers:
    """Subscribes to mutation events and calls the notifier.

    Example:
        >>> handlers = MutationNotificationHandlers(notifier)
        >>> handlers.register(event_bus)
    """

    def __init__(
        self,
        notifier: NotifierPort,
        messages: Mapping[str, ActionMessages] = ACTION_MESSAGES,
    ) -> None:
        self._notifier = notifier
        self._messages = messages

    def register(self, event_bus: EventBus) -> None:
        event_bus.subscribe(MutationConfirmedEvent, self.on_confirmed)
        event_bus.subscribe(MutationRolledBackEvent, self.on_rolled_back)
        event_bus.subscribe(MutationRejectedEvent, self.on_rejected)

    def _for(self, action: str) -> ActionMessages:
        return self._messages.get(action, _FALLBACK)

    async def on_confirmed(self, event: MutationConfirmedEvent) -> None:
        messages = self._for(event.action)
        self._notifier.success(messages.success_title, messages.success_message)

    async def on_rolled_back(self, event: MutationRolledBackEvent) -> None:
        messages = self._for(event.action)
        self._notifier.error(messages.failure_title, messages.failure_message)

    async def on_rejected(self, event: MutationRejectedEvent) -> None:
        self._notifier.error(
            "Verification Required",
            f"Please sign in to {event.action.replace('_', ' ')}.",
        )
