"""Shared fakes for the monitor test suite."""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

from portfolio_monitor.gateways.base import AccountGateway, MarketDataGateway
from portfolio_monitor.models import PortfolioAsset, PortfolioSummary, TickerPrice
from portfolio_monitor.store import InMemoryStateStore

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def tickers(quote: str = "USDT", **prices: float) -> Dict[str, TickerPrice]:
    """tickers(BTC=60000) -> {'BTC-USDT': TickerPrice(price=60000)}"""
    return {f"{symbol}-{quote}": TickerPrice(price=price, open_24h=price) for symbol, price in prices.items()}


class FakeMarketData(MarketDataGateway):
    def __init__(self, prices: Optional[Dict[str, TickerPrice]] = None, closes: Optional[List[float]] = None):
        self.prices = prices or {}
        self.closes = closes or []
        self.error: Optional[Exception] = None
        self.candle_requests = []

    async def get_prices(self) -> Dict[str, TickerPrice]:
        if self.error:
            raise self.error
        return dict(self.prices)

    async def get_candles(self, inst_id: str, interval: str = "1D", limit: int = 100) -> List[float]:
        self.candle_requests.append((inst_id, interval, limit))
        return list(self.closes[-limit:])


class FakeAccount(AccountGateway):
    def __init__(self, balances: Optional[Dict[str, float]] = None):
        self.balances = balances or {}
        self.error: Optional[Exception] = None

    async def get_balances(self) -> Dict[str, float]:
        if self.error:
            raise self.error
        return dict(self.balances)

    async def get_portfolio(self, prices: Dict[str, TickerPrice]) -> PortfolioSummary:
        assets = []
        for asset, amount in (await self.get_balances()).items():
            ticker = prices.get(f"{asset}-USDT")
            price = 1.0 if asset == "USDT" else (ticker.price if ticker else 0.0)
            assets.append(PortfolioAsset(asset=asset, price=price, value=amount * price, amount=amount))
        assets.sort(key=lambda a: a.value, reverse=True)
        return PortfolioSummary(assets=assets, total=sum(a.value for a in assets))


class RecordingNotifier:
    def __init__(self):
        self.dispatched = []
        self.debug_messages = []

    async def dispatch(self, notification):
        self.dispatched.append(notification)

    async def send_debug(self, message: str):
        self.debug_messages.append(message)


class InterferingStore(InMemoryStateStore):
    """Bumps every guarded key right before the next `interferences` commits"""

    def __init__(self, interferences: int = 0):
        super().__init__()
        self.interferences = interferences
        self.commit_attempts = 0

    async def commit(self, writes, expected_versions):
        self.commit_attempts += 1
        if self.interferences > 0:
            self.interferences -= 1
            for key in expected_versions:
                await self.set(key, await self.get(key))
        await super().commit(writes, expected_versions)


class YieldingStore(InMemoryStateStore):
    """Suspends on every read so concurrent cycles interleave"""

    async def get_versioned(self, key):
        await asyncio.sleep(0)
        return await super().get_versioned(key)
