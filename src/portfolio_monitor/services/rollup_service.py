"""
Rollup Service - hourly and daily portfolio value history
"""
from datetime import datetime
from typing import Callable, Optional

from portfolio_monitor.gateways.base import AccountGateway, MarketDataGateway
from portfolio_monitor.logger import AppLogger
from portfolio_monitor.models import PortfolioHistoryPoint, PortfolioSummary, utcnow
from portfolio_monitor.services.message_formatter import format_daily_summary
from portfolio_monitor.store.repository import MonitorRepository, StateKeys

app_logger = AppLogger(__name__)


class RollupService:
    def __init__(
        self,
        repository: MonitorRepository,
        market_data: MarketDataGateway,
        account: AccountGateway,
        notifier,
        daily_history_limit: int = 30,
        hourly_history_limit: int = 72,
        clock: Callable[[], datetime] = utcnow
    ):
        self.repository = repository
        self.market_data = market_data
        self.account = account
        self.notifier = notifier
        self.daily_history_limit = daily_history_limit
        self.hourly_history_limit = hourly_history_limit
        self.clock = clock

    async def _portfolio(self) -> Optional[PortfolioSummary]:
        prices = await self.market_data.get_prices()
        if not prices:
            app_logger.log_warning("Price feed returned no tickers, skipping rollup")
            return None
        return await self.account.get_portfolio(prices)

    async def run_hourly(self) -> Optional[PortfolioHistoryPoint]:
        portfolio = await self._portfolio()
        if portfolio is None:
            return None

        now = self.clock()
        point = PortfolioHistoryPoint(label=now.strftime("%Y-%m-%d %H:00"), total=portfolio.total, recorded_at=now)
        appended = await self.repository.append_history_point(
            StateKeys.HOURLY_HISTORY, point, self.hourly_history_limit
        )
        if appended:
            app_logger.log_info(f"Recorded hourly portfolio value {point.total:.2f} for {point.label}")
            return point
        return None

    async def run_daily(self) -> Optional[PortfolioHistoryPoint]:
        """Record today's portfolio value and send the daily summary when enabled"""
        portfolio = await self._portfolio()
        if portfolio is None:
            return None

        now = self.clock()
        point = PortfolioHistoryPoint(label=now.strftime("%Y-%m-%d"), total=portfolio.total, recorded_at=now)
        appended = await self.repository.append_history_point(
            StateKeys.DAILY_HISTORY, point, self.daily_history_limit
        )
        if not appended:
            app_logger.log_info(f"Daily point for {point.label} already recorded")
            return None

        app_logger.log_info(f"Recorded daily portfolio value {point.total:.2f} for {point.label}")

        settings = await self.repository.get_settings()
        if settings.daily_summary:
            capital = await self.repository.get_capital()
            history = await self.repository.get_daily_history()
            await self.notifier.dispatch(
                format_daily_summary(portfolio, capital, history, broadcast=settings.auto_post_to_channel)
            )
        return point
