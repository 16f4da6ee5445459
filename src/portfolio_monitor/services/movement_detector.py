"""
Movement Detector - notifies when a held asset moves past its percent threshold
"""
from typing import Dict, List, Optional

from portfolio_monitor.exceptions import ConflictError
from portfolio_monitor.logger import AppLogger
from portfolio_monitor.models import MovementAlertSettings, MovementEvent, TickerPrice, normalize_symbol
from portfolio_monitor.services.message_formatter import format_movement_event
from portfolio_monitor.store.repository import MonitorRepository, StateKeys

app_logger = AppLogger(__name__)


class MovementDetector:
    """Compares each held asset's price to the price of its last notification"""

    def __init__(self, repository: MonitorRepository, notifier, quote_currency: str = "USDT"):
        self.repository = repository
        self.store = repository.store
        self.notifier = notifier
        self.quote_currency = quote_currency.upper()

    @staticmethod
    def evaluate(
        symbol: str,
        current_price: float,
        settings: MovementAlertSettings,
        baselines: Dict[str, float]
    ) -> Optional[MovementEvent]:
        """
        Evaluate one symbol against its baseline.

        baselines is updated in place: seeded with the current price when the
        symbol has none, and reset to the current price when an event fires.
        """
        threshold = settings.threshold_for(symbol)
        baseline = baselines.get(symbol)

        if baseline is None or baseline <= 0:
            baselines[symbol] = current_price
            return None
        if threshold <= 0:
            return None

        percent_change = (current_price - baseline) / baseline * 100
        if abs(percent_change) < threshold:
            return None

        baselines[symbol] = current_price
        return MovementEvent(
            symbol=symbol,
            direction="up" if percent_change > 0 else "down",
            percent_change=percent_change,
            baseline_price=baseline,
            current_price=current_price,
            threshold=threshold,
        )

    def held_symbols(self, snapshot: Optional[Dict[str, float]]) -> List[str]:
        return sorted(
            normalize_symbol(asset) for asset, amount in (snapshot or {}).items()
            if amount > 0 and normalize_symbol(asset) != self.quote_currency
        )

    async def run_cycle(self, prices: Dict[str, TickerPrice]) -> List[MovementEvent]:
        if not prices:
            app_logger.log_warning("Price feed returned no tickers, skipping movement check")
            return []

        for attempt in range(2):
            try:
                events = await self._evaluate_and_commit(prices)
                break
            except ConflictError as e:
                if attempt == 1:
                    raise
                app_logger.log_warning(f"Movement baselines changed concurrently, retrying: {e}")

        if events:
            positions = await self.repository.get_positions()
            for event in events:
                position = positions.get(event.symbol)
                average = position.average_buy_price if position else None
                await self.notifier.dispatch(format_movement_event(event, average))
        return events

    async def _evaluate_and_commit(self, prices: Dict[str, TickerPrice]) -> List[MovementEvent]:
        settings = await self.repository.get_movement_settings()
        snapshot = await self.repository.get_balance_snapshot()
        versioned = await self.store.get_versioned(StateKeys.MOVEMENT_BASELINES)
        baselines = dict(versioned.value or {})

        events = []
        held = self.held_symbols(snapshot)
        updated = dict(baselines)
        if snapshot is not None:
            for symbol in set(updated) - set(held):
                app_logger.log_debug(f"{symbol} no longer held, dropping its movement baseline")
                del updated[symbol]

        for symbol in held:
            ticker = prices.get(f"{symbol}-{self.quote_currency}")
            if ticker is None or ticker.price <= 0:
                app_logger.log_debug(f"No price for {symbol}, movement check skipped")
                continue

            event = self.evaluate(symbol, ticker.price, settings, updated)
            if event:
                app_logger.log_info(
                    f"{symbol} moved {event.percent_change:+.2f}% "
                    f"({event.baseline_price:g} -> {event.current_price:g}, threshold {event.threshold:g}%)"
                )
                events.append(event)

        if updated != baselines:
            await self.store.commit(
                {StateKeys.MOVEMENT_BASELINES: updated},
                {StateKeys.MOVEMENT_BASELINES: versioned.version}
            )
        return events
