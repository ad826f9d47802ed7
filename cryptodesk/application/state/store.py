"""StateStore - in-memory container of DomainState for one UI view.

Single writer (the aggregator), many readers (UI renders). Всі зміни
відбуваються на одному event loop між await points, тому lock не потрібен.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from cryptodesk.domain.state import DomainState, SliceName, SliceState

logger = logging.getLogger(__name__)

# listener(new_state, changed_slice)
StateListener = Callable[[DomainState, SliceName], None]


class StateStore:
    """Holds named slices; each write replaces one slice whole.

    No validation: callers are responsible for the shape of values.

    Example:
        >>> store = StateStore()
        >>> unsubscribe = store.subscribe(lambda state, name: render(state))
        >>> store.set_slice(SliceName.TICKER, Ticker("BTCUSDT", Decimal("43250")))
        >>> store.get().value(SliceName.TICKER).price
        Decimal('43250')
    """

    def __init__(self) -> None:
        self._slices: dict[SliceName, SliceState] = {
            name: SliceState.empty(name) for name in SliceName
        }
        self._version = 0
        self._snapshot = DomainState.build(self._slices, self._version)
        self._listeners: list[StateListener] = []

    @property
    def version(self) -> int:
        return self._version

    def get(self) -> DomainState:
        """Current snapshot (immutable, safe to keep across awaits)."""
        return self._snapshot

    def get_slice(self, name: SliceName) -> SliceState:
        return self._slices[name]

    def value(self, name: SliceName) -> Any:
        return self._slices[name].value

    def set_slice(self, name: SliceName, value: Any) -> SliceState:
        """Replace one slice with a full new value and notify listeners.

        Clears the slice's error flag.
        """
        current = self._slices[name]
        new_slice = SliceState(
            name=name,
            value=value,
            loaded=True,
            error=None,
            version=current.version + 1,
            updated_at=datetime.now(timezone.utc),
        )
        self._commit(new_slice)
        return new_slice

    def mark_error(self, name: SliceName, message: str) -> SliceState:
        """Flag a failed refresh on one slice, keeping its previous value."""
        current = self._slices[name]
        new_slice = SliceState(
            name=name,
            value=current.value,
            loaded=current.loaded,
            error=message,
            version=current.version + 1,
            updated_at=current.updated_at,
        )
        self._commit(new_slice)
        return new_slice

    def reset(self, names: Iterable[SliceName]) -> None:
        """Replace slices with their empty value (e.g. user signed out)."""
        for name in names:
            current = self._slices[name]
            self._commit(
                SliceState(
                    name=name,
                    value=name.empty_value,
                    version=current.version + 1,
                )
            )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register listener called after every slice write.

        Returns:
            Function that removes the listener (safe to call twice).
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, new_slice: SliceState) -> None:
        self._slices[new_slice.name] = new_slice
        self._version += 1
        self._snapshot = DomainState.build(self._slices, self._version)

        for listener in list(self._listeners):
            try:
                listener(self._snapshot, new_slice.name)
            except Exception as e:
                # One broken render must not block the others
                logger.error(
                    "state_store.listener_failed",
                    extra={"slice": new_slice.name.value, "error": str(e)},
                    exc_info=True,
                )
