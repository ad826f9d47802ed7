"""PollingSubscription - cancellable repeating refresh of one slice.

Timeline (interval = 1s, fetch takes 1.5s):

    t=0   tick → fetch #1 starts
    t=1   tick → fetch #1 still pending → skipped (not queued)
    t=1.5 fetch #1 done → written
    t=2   tick → fetch #2 starts

Cancellation is cooperative: cancel() stops the timer, an in-flight fetch
is not aborted, its result is dropped on arrival.

Polling stands in for push updates; a socket/stream source can replace it
behind the same SubscriptionHandle interface.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from cryptodesk.domain.crypto import FetchTimeoutError
from cryptodesk.domain.state import SliceName

from .store import StateStore

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]


class SubscriptionHandle:
    """Opaque cancellation token returned by SubscriptionRegistry.start().

    cancel() is idempotent: calling it N times == calling it once.
    """

    def __init__(self, subscription: "PollingSubscription") -> None:
        self._subscription = subscription

    @property
    def key(self) -> str:
        return self._subscription.key

    @property
    def cancelled(self) -> bool:
        return self._subscription.cancelled

    def cancel(self) -> None:
        self._subscription.cancel()

    def __call__(self) -> None:
        """Handle itself is the cancel function handed to the UI."""
        self.cancel()

    def __repr__(self) -> str:
        return f"SubscriptionHandle(key={self.key!r}, cancelled={self.cancelled})"


class PollingSubscription:
    """Runs fetch_fn immediately, then every interval; writes into target.

    Invariants:
        - at most one in-flight fetch (ticks while pending are skipped)
        - no writes after cancel()
    """

    def __init__(
        self,
        key: str,
        interval: float,
        fetch_fn: FetchFn,
        store: StateStore,
        target: SliceName,
        *,
        timeout: float | None = None,
        on_cancel: Callable[["PollingSubscription"], None] | None = None,
    ) -> None:
        """Initialize subscription (not started).

        Args:
            key: Subscription key, e.g. "order_book:BTCUSDT".
            interval: Seconds between ticks.
            fetch_fn: Async function returning the new slice value.
            store: Target store.
            target: Slice the results are written to.
            timeout: Per-fetch timeout in seconds.
            on_cancel: Called exactly once when the subscription is cancelled.
        """
        if interval <= 0:
            raise ValueError("Polling interval must be positive")

        self.key = key
        self.interval = interval
        self.target = target
        self._fetch_fn = fetch_fn
        self._store = store
        self._timeout = timeout
        self._on_cancel = on_cancel

        self._cancelled = False
        self._timer: asyncio.Task[None] | None = None
        self._in_flight: asyncio.Task[None] | None = None

        # Counters (read by tests and debug logging)
        self.ticks = 0
        self.skipped_ticks = 0
        self.writes = 0
        self.discarded_results = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def in_flight(self) -> asyncio.Task[None] | None:
        return self._in_flight

    @property
    def fetch_pending(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def start(self) -> SubscriptionHandle:
        """Schedule the timer on the running event loop.

        Raises:
            RuntimeError: If called twice or without a running loop.
        """
        if self._timer is not None or self._cancelled:
            raise RuntimeError(f"Subscription {self.key} already started")
        self._timer = asyncio.get_running_loop().create_task(
            self._run(), name=f"poll:{self.key}"
        )
        logger.debug(
            "polling.started",
            extra={"key": self.key, "interval": self.interval, "slice": self.target.value},
        )
        return SubscriptionHandle(self)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True

        if self._timer is not None:
            self._timer.cancel()

        logger.debug(
            "polling.cancelled",
            extra={
                "key": self.key,
                "ticks": self.ticks,
                "skipped_ticks": self.skipped_ticks,
                "fetch_pending": self.fetch_pending,
            },
        )

        if self._on_cancel is not None:
            self._on_cancel(self)

    async def _run(self) -> None:
        while not self._cancelled:
            self.ticks += 1
            if self.fetch_pending:
                self.skipped_ticks += 1
                logger.debug(
                    "polling.tick_skipped",
                    extra={"key": self.key, "skipped_ticks": self.skipped_ticks},
                )
            else:
                self._in_flight = asyncio.get_running_loop().create_task(
                    self._fetch_once(), name=f"poll-fetch:{self.key}"
                )
            await asyncio.sleep(self.interval)

    async def _fetch_once(self) -> None:
        try:
            if self._timeout is None:
                value = await self._fetch_fn()
            else:
                try:
                    value = await asyncio.wait_for(self._fetch_fn(), timeout=self._timeout)
                except asyncio.TimeoutError as e:
                    raise FetchTimeoutError(
                        "Polling fetch timed out", key=self.key, timeout_seconds=self._timeout
                    ) from e
        except Exception as e:
            if self._cancelled:
                self.discarded_results += 1
                return
            logger.warning(
                "polling.fetch_failed",
                extra={"key": self.key, "slice": self.target.value, "error": str(e)},
            )
            self._store.mark_error(self.target, str(e))
            return

        if self._cancelled:
            # Arrived after cancel() - drop it
            self.discarded_results += 1
            logger.debug("polling.result_discarded", extra={"key": self.key})
            return

        self._store.set_slice(self.target, value)
        self.writes += 1


class SubscriptionRegistry:
    """Owns the PollingSubscriptions of one aggregator.

    - start() with an active key cancels the previous subscription first
    - cancel_all() on view teardown, aclose() also waits for fetches still in flight
    """

    def __init__(self, store: StateStore, *, timeout: float | None = None) -> None:
        self._store = store
        self._timeout = timeout
        self._active: dict[str, PollingSubscription] = {}
        # Fetches of cancelled subscriptions that have not finished yet
        self._leftover: set[asyncio.Task[None]] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    def active_keys(self) -> list[str]:
        return list(self._active)

    def get(self, key: str) -> PollingSubscription | None:
        return self._active.get(key)

    def start(
        self,
        key: str,
        interval: float,
        fetch_fn: FetchFn,
        target: SliceName,
    ) -> SubscriptionHandle:
        """Start polling fetch_fn into target.

        Returns:
            SubscriptionHandle; call cancel() (or the handle itself) on teardown.
        """
        previous = self._active.get(key)
        if previous is not None:
            previous.cancel()

        subscription = PollingSubscription(
            key,
            interval,
            fetch_fn,
            self._store,
            target,
            timeout=self._timeout,
            on_cancel=self._forget,
        )
        handle = subscription.start()
        self._active[key] = subscription
        return handle

    def cancel_where(self, predicate: Callable[[PollingSubscription], bool]) -> int:
        """Cancel active subscriptions matching predicate. Returns count."""
        matching = [s for s in self._active.values() if predicate(s)]
        for subscription in matching:
            subscription.cancel()
        return len(matching)

    def cancel_all(self) -> None:
        for subscription in list(self._active.values()):
            subscription.cancel()

    async def aclose(self) -> None:
        """Cancel everything and wait until leftover fetches have settled."""
        self.cancel_all()
        while self._leftover:
            await asyncio.gather(*list(self._leftover), return_exceptions=True)

    def _forget(self, subscription: PollingSubscription) -> None:
        # Only drop the entry if it still points at this subscription
        if self._active.get(subscription.key) is subscription:
            del self._active[subscription.key]
        task = subscription.in_flight
        if task is not None and not task.done():
            self._leftover.add(task)
            task.add_done_callback(self._leftover.discard)
