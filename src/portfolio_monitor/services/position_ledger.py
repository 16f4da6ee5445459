"""
Position Ledger - derives positions, cost basis and realized P&L from balance deltas
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from portfolio_monitor.exceptions import ConflictError, StaleDataError
from portfolio_monitor.gateways.base import AccountGateway, MarketDataGateway
from portfolio_monitor.logger import AppLogger
from portfolio_monitor.models import (
    Position,
    PositionEvent,
    PositionEventKind,
    PositionExtrema,
    TickerPrice,
    TradeHistoryEntry,
    normalize_symbol,
    utcnow,
)
from portfolio_monitor.services.message_formatter import format_position_event
from portfolio_monitor.store.repository import (
    MonitorRepository,
    StateKeys,
    dump_extrema,
    dump_history,
    dump_positions,
    load_extrema,
    load_history,
    load_positions,
)

app_logger = AppLogger(__name__)

SECONDS_PER_DAY = 86400.0


@dataclass
class ReconcileResult:
    """Everything one reconcile pass wants to persist"""
    positions: Dict[str, Position]
    extrema: Dict[str, PositionExtrema]
    new_history: List[TradeHistoryEntry] = field(default_factory=list)
    snapshot: Dict[str, float] = field(default_factory=dict)
    events: List[PositionEvent] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class PositionLedger:
    """Owns open positions and the trade history"""

    def __init__(
        self,
        repository: MonitorRepository,
        market_data: MarketDataGateway,
        account: AccountGateway,
        notifier,
        quote_currency: str = "USDT",
        epsilon: float = 1e-9,
        clock: Callable[[], datetime] = utcnow
    ):
        self.repository = repository
        self.store = repository.store
        self.market_data = market_data
        self.account = account
        self.notifier = notifier
        self.quote_currency = quote_currency.upper()
        self.epsilon = epsilon
        self.clock = clock

    def _clean(self, value: Optional[float]) -> float:
        return value if value is not None and value > self.epsilon else 0.0

    def _price_for(self, symbol: str, prices: Dict[str, TickerPrice]) -> float:
        ticker = prices.get(f"{symbol}-{self.quote_currency}")
        if ticker is None or ticker.price <= 0:
            raise StaleDataError(f"No usable {symbol}-{self.quote_currency} price")
        return ticker.price

    def reconcile(
        self,
        previous: Dict[str, float],
        current: Dict[str, float],
        prices: Dict[str, TickerPrice],
        positions: Dict[str, Position],
        extrema: Dict[str, PositionExtrema],
        now: Optional[datetime] = None
    ) -> ReconcileResult:
        """
        Apply the delta between two balance snapshots to the positions.

        Pure: the given mappings are not mutated. Symbols whose price is
        missing keep their previous balance in the returned snapshot so the
        same delta is seen again on the next pass.
        """
        now = now or self.clock()
        previous = {normalize_symbol(k): self._clean(v) for k, v in previous.items()}
        current = {normalize_symbol(k): self._clean(v) for k, v in current.items()}

        result = ReconcileResult(
            positions={symbol: p.model_copy() for symbol, p in positions.items()},
            extrema={symbol: e.model_copy() for symbol, e in extrema.items()},
            snapshot={symbol: amount for symbol, amount in current.items() if amount > 0},
        )

        for symbol in sorted(set(previous) | set(current)):
            if symbol == self.quote_currency:
                continue

            before = previous.get(symbol, 0.0)
            after = current.get(symbol, 0.0)
            delta = after - before
            if abs(delta) <= self.epsilon:
                continue

            try:
                price = self._price_for(symbol, prices)
            except StaleDataError as e:
                app_logger.log_warning(f"Skipping {symbol} balance change of {delta:+g}: {e}")
                result.skipped.append(symbol)
                if before > 0:
                    result.snapshot[symbol] = before
                else:
                    result.snapshot.pop(symbol, None)
                continue

            if delta > 0:
                self._apply_buy(result, symbol, delta, after, price, now)
            elif after > self.epsilon:
                self._apply_partial_sell(result, symbol, -delta, after, price, now)
            else:
                self._apply_full_sell(result, symbol, -delta, 0.0, price, now)

        return result

    def _apply_buy(self, result: ReconcileResult, symbol: str, quantity: float, balance: float,
                   price: float, now: datetime):
        position = result.positions.get(symbol)

        if position is None:
            position = Position(
                symbol=symbol,
                average_buy_price=price,
                total_amount_bought=quantity,
                total_cost=price * quantity,
                open_date=now,
            )
            result.extrema[symbol] = PositionExtrema(symbol=symbol, high=price, low=price, since_date=now)
            kind = PositionEventKind.OPENED
            app_logger.log_info(f"Opened {symbol} position: {quantity:g} @ {price:g}")
        else:
            held = position.held_amount
            position.average_buy_price = (position.average_buy_price * held + price * quantity) / (held + quantity)
            position.total_amount_bought += quantity
            position.total_cost += price * quantity
            kind = PositionEventKind.INCREASED
            app_logger.log_info(
                f"Increased {symbol} position by {quantity:g} @ {price:g}, "
                f"new average {position.average_buy_price:g}"
            )

        result.positions[symbol] = position
        result.events.append(PositionEvent(
            kind=kind, symbol=symbol, quantity=quantity, price=price, balance=balance,
            position=position.model_copy()
        ))

    def _apply_partial_sell(self, result: ReconcileResult, symbol: str, quantity: float, balance: float,
                            price: float, now: datetime):
        position = result.positions.get(symbol)
        if position is None:
            app_logger.log_info(f"{symbol} balance fell by {quantity:g} with no tracked position, ignoring")
            return

        # Selling every tracked unit closes the position even when untracked holdings remain
        if quantity >= position.held_amount - self.epsilon:
            self._apply_full_sell(result, symbol, quantity, balance, price, now)
            return

        sold = quantity
        pnl = (price - position.average_buy_price) * sold
        pnl_percent = (price - position.average_buy_price) / position.average_buy_price * 100
        position.total_amount_sold += sold
        position.realized_pnl += pnl

        result.new_history.append(TradeHistoryEntry(
            asset=symbol,
            pnl=pnl,
            pnl_percent=pnl_percent,
            quantity=sold,
            exit_price=price,
            average_buy_price=position.average_buy_price,
            duration_days=(now - position.open_date).total_seconds() / SECONDS_PER_DAY,
            closed_at=now,
            partial=True,
        ))
        result.events.append(PositionEvent(
            kind=PositionEventKind.REDUCED, symbol=symbol, quantity=quantity, price=price, balance=balance,
            position=position.model_copy(), realized_pnl=pnl, realized_pnl_percent=pnl_percent,
            total_realized_pnl=position.realized_pnl
        ))
        app_logger.log_info(f"Partial sell of {symbol}: {sold:g} @ {price:g}, pnl {pnl:.2f}")

    def _apply_full_sell(self, result: ReconcileResult, symbol: str, quantity: float, balance: float,
                         price: float, now: datetime):
        position = result.positions.pop(symbol, None)
        extrema = result.extrema.pop(symbol, None)
        if position is None:
            app_logger.log_info(f"{symbol} balance sold out with no tracked position, ignoring")
            return

        remaining = position.held_amount
        pnl = (price - position.average_buy_price) * remaining
        position.total_amount_sold += remaining
        position.realized_pnl += pnl

        duration_days = (now - position.open_date).total_seconds() / SECONDS_PER_DAY
        entry_percent = (price - position.average_buy_price) / position.average_buy_price * 100
        total_percent = position.realized_pnl / position.total_cost * 100 if position.total_cost > 0 else entry_percent

        result.new_history.append(TradeHistoryEntry(
            asset=symbol,
            pnl=pnl,
            pnl_percent=entry_percent,
            quantity=remaining,
            exit_price=price,
            average_buy_price=position.average_buy_price,
            duration_days=duration_days,
            closed_at=now,
            partial=False,
        ))
        result.events.append(PositionEvent(
            kind=PositionEventKind.CLOSED, symbol=symbol, quantity=quantity, price=price, balance=balance,
            position=position, realized_pnl=pnl, realized_pnl_percent=total_percent,
            total_realized_pnl=position.realized_pnl, duration_days=duration_days,
            highest_price=max(extrema.high, price) if extrema else None,
            lowest_price=min(extrema.low, price) if extrema else None,
        ))
        app_logger.log_info(
            f"Closed {symbol} position: {remaining:g} @ {price:g}, pnl {pnl:.2f} "
            f"(lifetime {position.realized_pnl:.2f}) after {duration_days:.1f} days"
        )

    async def run_cycle(self) -> List[PositionEvent]:
        """
        Poll balances and apply the delta against the stored snapshot.

        The new snapshot is committed in the same conditional write as the
        positions, extrema and history it produced. A lost race is retried
        once against fresh reads before giving up for this cycle.
        """
        balances = await self.account.get_balances()
        prices = await self.market_data.get_prices()
        if not prices:
            app_logger.log_warning("Price feed returned no tickers, skipping reconciliation")
            return []

        for attempt in range(2):
            try:
                events = await self._reconcile_and_commit(balances, prices)
                break
            except ConflictError as e:
                if attempt == 1:
                    raise
                app_logger.log_warning(f"Reconciliation lost a write race, retrying: {e}")

        for event in events:
            await self.notifier.dispatch(format_position_event(event))
        return events

    async def _reconcile_and_commit(self, balances: Dict[str, float], prices: Dict[str, TickerPrice]) -> List[PositionEvent]:
        snapshot = await self.store.get_versioned(StateKeys.BALANCE_SNAPSHOT)
        positions = await self.store.get_versioned(StateKeys.POSITIONS)
        extrema = await self.store.get_versioned(StateKeys.POSITION_EXTREMA)
        history = await self.store.get_versioned(StateKeys.TRADE_HISTORY)

        if snapshot.value is None:
            seed = {normalize_symbol(k): v for k, v in balances.items() if v > self.epsilon}
            await self.store.commit(
                {StateKeys.BALANCE_SNAPSHOT: seed},
                {StateKeys.BALANCE_SNAPSHOT: snapshot.version}
            )
            app_logger.log_info(f"Seeded balance snapshot with {len(seed)} assets")
            return []

        result = self.reconcile(
            previous=snapshot.value,
            current=balances,
            prices=prices,
            positions=load_positions(positions.value),
            extrema=load_extrema(extrema.value),
        )

        writes = {}
        if result.snapshot != snapshot.value:
            writes[StateKeys.BALANCE_SNAPSHOT] = result.snapshot
        if result.events:
            writes[StateKeys.POSITIONS] = dump_positions(result.positions)
            writes[StateKeys.POSITION_EXTREMA] = dump_extrema(result.extrema)
        if result.new_history:
            writes[StateKeys.TRADE_HISTORY] = dump_history(load_history(history.value) + result.new_history)

        if not writes:
            return []

        await self.store.commit(writes, {
            StateKeys.BALANCE_SNAPSHOT: snapshot.version,
            StateKeys.POSITIONS: positions.version,
            StateKeys.POSITION_EXTREMA: extrema.version,
            StateKeys.TRADE_HISTORY: history.version,
        })
        app_logger.log_debug(f"Committed reconciliation: {len(result.events)} events, {len(result.skipped)} skipped")
        return result.events
