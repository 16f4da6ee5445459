from abc import ABC, abstractmethod
from typing import Dict, List
from portfolio_monitor.models import PortfolioSummary, TickerPrice

class MarketDataGateway(ABC):
    """Read-only access to exchange market data"""

    @abstractmethod
    async def get_prices(self) -> Dict[str, TickerPrice]:
        """Get last prices keyed by instrument id; an empty mapping means no update"""
        pass

    @abstractmethod
    async def get_candles(self, inst_id: str, interval: str = "1D", limit: int = 100) -> List[float]:
        """Get candle closes, oldest first"""
        pass

class AccountGateway(ABC):
    """Read-only access to account balances"""

    @abstractmethod
    async def get_balances(self) -> Dict[str, float]:
        """Get current quantity per asset"""
        pass

    @abstractmethod
    async def get_portfolio(self, prices: Dict[str, TickerPrice]) -> PortfolioSummary:
        """Get holdings valued with the given prices"""
        pass
