"""Tests для PollingSubscription / SubscriptionRegistry."""

import asyncio
from unittest.mock import Mock

import pytest

from cryptodesk.application.state import (
    PollingSubscription,
    StateStore,
    SubscriptionRegistry,
)
from cryptodesk.domain.state import SliceName

INTERVAL = 0.01


class TestPollingSubscription:
    @pytest.mark.asyncio
    async def test_fetches_immediately_then_every_interval(self):
        # Arrange
        store = StateStore()
        counter = 0

        async def fetch():
            nonlocal counter
            counter += 1
            return (counter,)

        subscription = PollingSubscription("trades:BTCUSDT", INTERVAL, fetch, store, SliceName.RECENT_TRADES)

        # Act
        handle = subscription.start()
        await asyncio.sleep(INTERVAL * 5)
        handle.cancel()

        # Assert
        assert subscription.writes >= 2
        assert store.value(SliceName.RECENT_TRADES)[0] >= 2

    @pytest.mark.asyncio
    async def test_no_overlapping_fetches(self):
        """Test: tick while a fetch is pending is skipped, not queued."""
        # Arrange
        store = StateStore()
        gate = asyncio.Event()
        in_flight = 0
        max_in_flight = 0
        calls = 0

        async def slow_fetch():
            nonlocal in_flight, max_in_flight, calls
            calls += 1
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await gate.wait()
            in_flight -= 1
            return ("book",)

        subscription = PollingSubscription("order_book:BTCUSDT", INTERVAL, slow_fetch, store, SliceName.ORDER_BOOK)

        # Act
        handle = subscription.start()
        await asyncio.sleep(INTERVAL * 6)
        calls_while_blocked = calls
        gate.set()
        await asyncio.sleep(INTERVAL * 3)
        handle.cancel()

        # Assert
        assert calls_while_blocked == 1
        assert subscription.skipped_ticks >= 1
        assert max_in_flight == 1

    @pytest.mark.asyncio
    async def test_result_arriving_after_cancel_is_discarded(self):
        # Arrange
        store = StateStore()
        gate = asyncio.Event()

        async def fetch():
            await gate.wait()
            return ("late",)

        subscription = PollingSubscription("ticker:BTCUSDT", INTERVAL, fetch, store, SliceName.TICKER)
        handle = subscription.start()
        await asyncio.sleep(0)

        # Act
        handle.cancel()
        gate.set()
        await asyncio.sleep(INTERVAL)

        # Assert
        assert store.value(SliceName.TICKER) is None
        assert subscription.discarded_results == 1
        assert subscription.writes == 0

    @pytest.mark.asyncio
    async def test_fetch_failure_marks_slice_error_and_keeps_polling(self):
        # Arrange
        store = StateStore()
        store.set_slice(SliceName.TICKER, "last good")
        calls = 0

        async def flaky():
            nonlocal calls
            calls += 1
            raise ConnectionError("down")

        subscription = PollingSubscription("ticker:BTCUSDT", INTERVAL, flaky, store, SliceName.TICKER)

        # Act
        handle = subscription.start()
        await asyncio.sleep(INTERVAL * 4)
        handle.cancel()

        # Assert
        assert calls >= 2
        assert store.value(SliceName.TICKER) == "last good"
        assert store.get().error(SliceName.TICKER) == "down"

    @pytest.mark.asyncio
    async def test_timed_out_fetch_marks_slice_error(self):
        # Arrange
        store = StateStore()
        store.set_slice(SliceName.TICKER, "last good")
        gate = asyncio.Event()

        async def hanging_fetch():
            await gate.wait()
            return "too late"

        subscription = PollingSubscription(
            "ticker:BTCUSDT", INTERVAL, hanging_fetch, store, SliceName.TICKER, timeout=INTERVAL
        )

        # Act
        handle = subscription.start()
        await asyncio.sleep(INTERVAL * 6)
        handle.cancel()
        gate.set()
        await asyncio.sleep(INTERVAL)

        # Assert
        assert "timed out" in store.get().error(SliceName.TICKER)
        assert store.value(SliceName.TICKER) == "last good"
        assert subscription.writes == 0

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self):
        # Arrange
        on_cancel = Mock()

        async def fetch():
            return ()

        subscription = PollingSubscription(
            "trades:ETHUSDT", INTERVAL, fetch, StateStore(), SliceName.RECENT_TRADES, on_cancel=on_cancel
        )
        handle = subscription.start()

        # Act
        handle()
        handle.cancel()
        handle()

        # Assert
        assert handle.cancelled
        on_cancel.assert_called_once_with(subscription)

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self):
        async def fetch():
            return ()

        subscription = PollingSubscription("k", INTERVAL, fetch, StateStore(), SliceName.NEWS)
        subscription.start()

        with pytest.raises(RuntimeError):
            subscription.start()
        subscription.cancel()

    def test_interval_must_be_positive(self):
        async def fetch():
            return ()

        with pytest.raises(ValueError):
            PollingSubscription("k", 0, fetch, StateStore(), SliceName.NEWS)


class TestSubscriptionRegistry:
    @pytest.mark.asyncio
    async def test_start_same_key_replaces_previous(self):
        # Arrange
        registry = SubscriptionRegistry(StateStore())

        async def fetch():
            return ()

        first = registry.start("order_book:BTCUSDT", INTERVAL, fetch, SliceName.ORDER_BOOK)

        # Act
        second = registry.start("order_book:BTCUSDT", INTERVAL, fetch, SliceName.ORDER_BOOK)

        # Assert
        assert first.cancelled
        assert not second.cancelled
        assert registry.active_keys() == ["order_book:BTCUSDT"]
        registry.cancel_all()

    @pytest.mark.asyncio
    async def test_cancel_where_and_cancel_all(self):
        # Arrange
        registry = SubscriptionRegistry(StateStore())

        async def fetch():
            return ()

        registry.start("ticker:BTCUSDT", INTERVAL, fetch, SliceName.TICKER)
        registry.start("trades:BTCUSDT", INTERVAL, fetch, SliceName.RECENT_TRADES)

        # Act
        cancelled = registry.cancel_where(lambda s: s.target == SliceName.TICKER)

        # Assert
        assert cancelled == 1
        assert registry.active_keys() == ["trades:BTCUSDT"]

        registry.cancel_all()
        assert registry.active_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_handle_removes_entry(self):
        registry = SubscriptionRegistry(StateStore())

        async def fetch():
            return ()

        handle = registry.start("ticker:BTCUSDT", INTERVAL, fetch, SliceName.TICKER)
        handle()

        assert registry.get("ticker:BTCUSDT") is None

    @pytest.mark.asyncio
    async def test_aclose_waits_for_fetch_still_in_flight(self):
        # Arrange
        store = StateStore()
        registry = SubscriptionRegistry(store)
        gate = asyncio.Event()

        async def slow_fetch():
            await gate.wait()
            return ("book",)

        registry.start("order_book:BTCUSDT", INTERVAL, slow_fetch, SliceName.ORDER_BOOK)
        await asyncio.sleep(INTERVAL / 2)
        subscription = registry.get("order_book:BTCUSDT")
        in_flight = subscription.in_flight
        asyncio.get_running_loop().call_later(0.05, gate.set)

        # Act
        await registry.aclose()

        # Assert
        assert in_flight is not None and in_flight.done()
        assert subscription.discarded_results == 1
        assert not store.get().is_loaded(SliceName.ORDER_BOOK)
        assert registry.active_count == 0
