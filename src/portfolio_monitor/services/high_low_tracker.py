"""
High/Low Tracker - running price extrema of open positions
"""
from datetime import datetime
from typing import Callable, Dict, Optional

from portfolio_monitor.exceptions import ConflictError
from portfolio_monitor.logger import AppLogger
from portfolio_monitor.models import PositionExtrema, TickerPrice, utcnow
from portfolio_monitor.store.repository import (
    MonitorRepository,
    StateKeys,
    dump_extrema,
    load_extrema,
    load_positions,
)

app_logger = AppLogger(__name__)


class HighLowTracker:
    def __init__(self, repository: MonitorRepository, quote_currency: str = "USDT",
                 clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.store = repository.store
        self.quote_currency = quote_currency.upper()
        self.clock = clock

    @staticmethod
    def update(symbol: str, current_price: float, extrema: PositionExtrema) -> PositionExtrema:
        return PositionExtrema(
            symbol=symbol,
            high=max(extrema.high, current_price),
            low=min(extrema.low, current_price),
            since_date=extrema.since_date,
        )

    async def run_cycle(self, prices: Dict[str, TickerPrice]) -> Dict[str, PositionExtrema]:
        for attempt in range(2):
            try:
                return await self._update_and_commit(prices)
            except ConflictError as e:
                if attempt == 1:
                    raise
                app_logger.log_warning(f"Positions or extrema changed concurrently, retrying: {e}")

    async def _update_and_commit(self, prices: Dict[str, TickerPrice]) -> Dict[str, PositionExtrema]:
        positions_versioned = await self.store.get_versioned(StateKeys.POSITIONS)
        extrema_versioned = await self.store.get_versioned(StateKeys.POSITION_EXTREMA)
        positions = load_positions(positions_versioned.value)
        current = load_extrema(extrema_versioned.value)

        # Extrema of positions that no longer exist are dropped
        updated: Dict[str, PositionExtrema] = {}
        for symbol, position in positions.items():
            extrema: Optional[PositionExtrema] = current.get(symbol)
            if extrema is None:
                seed = position.average_buy_price
                extrema = PositionExtrema(symbol=symbol, high=seed, low=seed, since_date=position.open_date)

            ticker = prices.get(f"{symbol}-{self.quote_currency}")
            if ticker is not None and ticker.price > 0:
                extrema = self.update(symbol, ticker.price, extrema)
            updated[symbol] = extrema

        if updated == current:
            return current

        await self.store.commit(
            {StateKeys.POSITION_EXTREMA: dump_extrema(updated)},
            {
                StateKeys.POSITIONS: positions_versioned.version,
                StateKeys.POSITION_EXTREMA: extrema_versioned.version,
            }
        )
        app_logger.log_debug(f"Updated extrema for {len(updated)} positions")
        return updated
