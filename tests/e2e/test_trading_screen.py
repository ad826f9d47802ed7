"""End-to-end tests for one trading screen session.

Tests the full view lifecycle:
    mount → initial load → live subscriptions → actions → identity change → unmount

Backend is InMemoryCryptoService with failure injection; nothing is mocked
inside the aggregator.
"""

import asyncio
from decimal import Decimal

import pytest

from cryptodesk.application import CryptoAggregator
from cryptodesk.domain.crypto import MutationError
from cryptodesk.domain.crypto.models import OrderRequest, OrderSide, OrderType
from cryptodesk.domain.state import SliceName
from cryptodesk.infrastructure.identity import SessionIdentityProvider
from cryptodesk.infrastructure.notifications import LoggingNotifier, Notification
from cryptodesk.infrastructure.services import InMemoryCryptoService


@pytest.fixture
def slow_service(settings):
    """Service whose calls take long enough to observe optimistic state."""
    return InMemoryCryptoService(settings, latency=0.02)


class TestNewsFailure:
    """One failing public fetch must not block the other slices."""

    @pytest.mark.asyncio
    async def test_news_down_other_slices_render(self, service, identity, notifier, settings):
        # Arrange
        service.fail("get_news", ConnectionError("news backend down"))

        async with CryptoAggregator(service, identity, notifier, settings=settings) as desk:
            # Act
            report = await desk.start()

            # Assert
            assert len(report.loaded) == 5
            assert list(report.failed) == [SliceName.NEWS]
            assert desk.state.value(SliceName.NEWS) == ()
            assert "news backend down" in desk.state.error(SliceName.NEWS)
            assert desk.state.value(SliceName.MARKET_DATA) is not None
            assert len(desk.state.value(SliceName.TRADING_PAIRS)) == 2

            # Recovery on the next refresh clears the error
            service.restore("get_news")
            await desk.refresh()
            assert desk.state.error(SliceName.NEWS) is None
            assert len(desk.state.value(SliceName.NEWS)) == 2

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_value(self, service, identity, notifier, settings):
        async with CryptoAggregator(service, identity, notifier, settings=settings) as desk:
            await desk.start()
            news = desk.state.value(SliceName.NEWS)

            service.fail("get_news", TimeoutError("slow"))
            await desk.refresh()

            assert desk.state.value(SliceName.NEWS) == news
            assert desk.state.error(SliceName.NEWS) is not None


class TestOfflineOrder:
    @pytest.mark.asyncio
    async def test_order_shown_then_rolled_back(self, slow_service, signed_in_identity, notifier, settings):
        # Arrange
        request = OrderRequest("BTCUSDT", OrderSide.BUY, OrderType.LIMIT, Decimal("0.5"), Decimal("43000"))
        async with CryptoAggregator(slow_service, signed_in_identity, notifier, settings=settings) as desk:
            await desk.start()
            slow_service.set_offline(True)

            # Act
            task = asyncio.create_task(desk.place_order(request))
            await asyncio.sleep(0)
            during = desk.state.value(SliceName.OPEN_ORDERS)

            with pytest.raises(MutationError) as exc_info:
                await task

            # Assert
            assert len(during) == 1
            assert during[0].is_provisional
            assert during[0].price == Decimal("43000")
            assert desk.state.value(SliceName.OPEN_ORDERS) == ()
            assert isinstance(exc_info.value.cause, ConnectionError)
            assert notifier.history[-1] == Notification(
                "error", "Order Failed", "Failed to place order. Please try again."
            )

    @pytest.mark.asyncio
    async def test_overlapping_actions_one_fails(self, slow_service, signed_in_identity, notifier, settings):
        """Order confirms while a later cancel on the same slice fails: the order stays."""
        async with CryptoAggregator(slow_service, signed_in_identity, notifier, settings=settings) as desk:
            await desk.start()
            request = OrderRequest("ETHUSDT", OrderSide.SELL, OrderType.MARKET, Decimal("2"))

            placing = asyncio.create_task(desk.place_order(request))
            await asyncio.sleep(0)
            cancelling = asyncio.create_task(desk.cancel_order("order-404"))
            order, failure = await asyncio.gather(placing, cancelling, return_exceptions=True)

            assert isinstance(failure, MutationError)
            assert not order.is_provisional
            assert desk.state.value(SliceName.OPEN_ORDERS) == (order,)


class TestFullSession:
    @pytest.mark.asyncio
    async def test_session(self, settings):
        # Arrange
        service = InMemoryCryptoService(settings, latency=0.0)
        identity = SessionIdentityProvider()
        notifier = LoggingNotifier()
        renders = []

        async with CryptoAggregator(
            service, identity, notifier, settings=settings, view_id="trade-screen"
        ) as desk:
            desk.subscribe(lambda state, name: renders.append(name))

            # Mount signed out
            await desk.start()
            desk.subscribe_to_order_book("BTCUSDT")
            desk.subscribe_to_ticker("BTCUSDT")

            # Sign in
            identity.login("user-7")
            await desk.drain()
            assert desk.state.is_loaded(SliceName.PORTFOLIO)

            # Trade
            order = await desk.place_order(
                OrderRequest("BTCUSDT", OrderSide.BUY, OrderType.MARKET, Decimal("0.1"))
            )
            await desk.cancel_order(order.id)
            await desk.refresh_user_data()
            assert desk.state.value(SliceName.ORDER_HISTORY)[-1].id == order.id

            # Sign out
            identity.logout()
            assert desk.state.value(SliceName.ORDER_HISTORY) == ()

            # Live data kept flowing
            await asyncio.sleep(0.05)
            assert desk.state.value(SliceName.ORDER_BOOK).symbol == "BTCUSDT"
            assert desk.state.value(SliceName.TICKER).symbol == "BTCUSDT"

        # Unmount
        assert desk.subscriptions.active_count == 0
        assert [n.title for n in notifier.history] == ["Order Placed", "Order Cancelled"]
        assert SliceName.ORDER_BOOK in renders
