"""SessionIdentityProvider - in-process identity for one client session."""

import logging
from typing import Callable

from cryptodesk.domain.crypto import IdentityListener, IdentityProvider

logger = logging.getLogger(__name__)


class SessionIdentityProvider(IdentityProvider):
    """Holds the signed-in user id and notifies listeners on transitions.

    Listeners are called synchronously, in registration order, only when
    the user id actually changes.

    Example:
        >>> identity = SessionIdentityProvider()
        >>> unsubscribe = identity.subscribe(lambda prev, cur: print(prev, cur))
        >>> identity.login("user-1")
        None user-1
    """

    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = user_id
        self._listeners: list[IdentityListener] = []

    @property
    def current_user_id(self) -> str | None:
        return self._user_id

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def login(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id is required")
        self._set(user_id)

    def logout(self) -> None:
        self._set(None)

    def _set(self, user_id: str | None) -> None:
        previous = self._user_id
        if previous == user_id:
            return
        self._user_id = user_id
        logger.info(
            "identity.changed",
            extra={"signed_in_before": previous is not None, "signed_in": user_id is not None},
        )
        for listener in list(self._listeners):
            listener(previous, user_id)
