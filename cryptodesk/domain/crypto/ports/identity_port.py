"""IdentityProvider - current signed-in user, or None."""

from abc import ABC, abstractmethod
from typing import Callable

# listener(previous_user_id, current_user_id)
IdentityListener = Callable[[str | None, str | None], None]


class IdentityProvider(ABC):
    """Exposes the current user id and notifies on transitions."""

    @property
    @abstractmethod
    def current_user_id(self) -> str | None:
        pass

    @abstractmethod
    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Register listener for identity transitions.

        Returns:
            Function that removes the listener.
        """
        pass
