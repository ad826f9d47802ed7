"""Tests для SliceName / DomainState."""

import pytest

from cryptodesk.domain.state import PRIVATE_SLICES, DomainState, SliceName, SliceState


class TestSliceName:
    @pytest.mark.parametrize(
        "name",
        [SliceName.PORTFOLIO, SliceName.OPEN_ORDERS, SliceName.WATCHLIST, SliceName.STAKING_POSITIONS],
    )
    def test_user_slices_are_private(self, name):
        assert name.is_private

    def test_market_slices_are_public(self):
        public = [n for n in SliceName if not n.is_private]

        assert SliceName.NEWS in public
        assert SliceName.ORDER_BOOK in public
        assert len(public) + len(PRIVATE_SLICES) == len(SliceName)

    def test_empty_values(self):
        assert SliceName.TICKER.empty_value is None
        assert SliceName.MARKET_DATA.empty_value is None
        assert SliceName.RECENT_TRADES.empty_value == ()


class TestDomainState:
    def test_snapshot_is_read_only(self):
        # Arrange
        state = DomainState.build({SliceName.NEWS: SliceState.empty(SliceName.NEWS)}, version=1)

        # Act / Assert
        with pytest.raises(TypeError):
            state.slices[SliceName.NEWS] = SliceState(name=SliceName.NEWS, value=("x",))

    def test_build_copies_source_mapping(self):
        source = {SliceName.NEWS: SliceState.empty(SliceName.NEWS)}
        state = DomainState.build(source, version=1)

        source[SliceName.NEWS] = SliceState(name=SliceName.NEWS, value=("x",))

        assert state.value(SliceName.NEWS) == ()

    def test_values_mapping(self):
        state = DomainState.build(
            {SliceName.NEWS: SliceState(name=SliceName.NEWS, value=("n",), loaded=True)}, version=3
        )

        assert state.values() == {SliceName.NEWS: ("n",)}
        assert state[SliceName.NEWS].loaded
        assert state.version == 3
