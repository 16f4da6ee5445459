"""Tests for HighLowTracker."""

import asyncio
from datetime import timedelta

from conftest import FIXED_NOW, tickers
from portfolio_monitor.models import Position, PositionExtrema
from portfolio_monitor.services.high_low_tracker import HighLowTracker
from portfolio_monitor.store import InMemoryStateStore, MonitorRepository, StateKeys
from portfolio_monitor.store.repository import dump_extrema, dump_positions


def position(symbol="BTC", average=60000.0):
    return Position(
        symbol=symbol,
        average_buy_price=average,
        total_amount_bought=1.0,
        total_cost=average,
        open_date=FIXED_NOW - timedelta(days=3),
    )


def extrema(symbol="BTC", high=62000.0, low=58000.0):
    return PositionExtrema(symbol=symbol, high=high, low=low, since_date=FIXED_NOW - timedelta(days=3))


def seed(store, positions, current_extrema):
    async def write():
        await store.set(StateKeys.POSITIONS, dump_positions(positions))
        await store.set(StateKeys.POSITION_EXTREMA, dump_extrema(current_extrema))
    asyncio.run(write())


class TestUpdate:

    def test_new_high(self):
        updated = HighLowTracker.update("BTC", 63000, extrema())
        assert (updated.high, updated.low) == (63000, 58000)

    def test_new_low(self):
        updated = HighLowTracker.update("BTC", 57000, extrema())
        assert (updated.high, updated.low) == (62000, 57000)

    def test_price_inside_range_changes_nothing(self):
        assert HighLowTracker.update("BTC", 60000, extrema()) == extrema()


class TestRunCycle:

    def test_updates_open_positions(self):
        store = InMemoryStateStore()
        tracker = HighLowTracker(MonitorRepository(store))
        seed(store, {"BTC": position()}, {"BTC": extrema()})

        asyncio.run(tracker.run_cycle(tickers(BTC=64000)))

        stored = asyncio.run(MonitorRepository(store).get_position_extrema())
        assert stored["BTC"].high == 64000
        assert stored["BTC"].low == 58000

    def test_seeds_missing_extrema_from_average_price(self):
        store = InMemoryStateStore()
        tracker = HighLowTracker(MonitorRepository(store))
        seed(store, {"ETH": position("ETH", 2000)}, {})

        result = asyncio.run(tracker.run_cycle(tickers(ETH=2100)))

        assert result["ETH"].low == 2000
        assert result["ETH"].high == 2100

    def test_drops_extrema_of_closed_positions(self):
        store = InMemoryStateStore()
        tracker = HighLowTracker(MonitorRepository(store))
        seed(store, {}, {"BTC": extrema()})

        assert asyncio.run(tracker.run_cycle(tickers(BTC=70000))) == {}

    def test_position_closed_mid_cycle_is_not_resurrected(self):
        store = InMemoryStateStore()
        repository = MonitorRepository(store)
        tracker = HighLowTracker(repository)
        seed(store, {"BTC": position()}, {"BTC": extrema()})

        async def scenario():
            original_commit = store.commit

            async def close_then_commit(writes, expected_versions):
                # Another writer closes the position between read and commit
                store.commit = original_commit
                await store.set(StateKeys.POSITIONS, {})
                await store.set(StateKeys.POSITION_EXTREMA, {})
                await original_commit(writes, expected_versions)

            store.commit = close_then_commit
            await tracker.run_cycle(tickers(BTC=70000))
            return await repository.get_position_extrema()

        assert asyncio.run(scenario()) == {}
