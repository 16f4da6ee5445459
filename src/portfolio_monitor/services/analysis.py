"""
Technical indicators and trade statistics used by the reporting layer
"""
from typing import List, Optional

from pydantic import BaseModel

from portfolio_monitor.exceptions import StaleDataError
from portfolio_monitor.gateways.base import MarketDataGateway
from portfolio_monitor.models import PortfolioHistoryPoint, TradeHistoryEntry, normalize_symbol

# SMA50 needs 50 closes, RSI(14) needs 15
TECHNICAL_ANALYSIS_CANDLES = 51


class TechnicalAnalysis(BaseModel):
    inst_id: str
    rsi: Optional[float]
    sma20: Optional[float]
    sma50: Optional[float]


class HistoricalPerformance(BaseModel):
    realized_pnl: float = 0.0
    trade_count: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    average_duration_days: float = 0.0


class PerformanceStats(BaseModel):
    start_value: float
    end_value: float
    pnl: float
    pnl_percent: float
    max_value: float
    min_value: float
    average_value: float


def calculate_sma(closes: List[float], period: int) -> Optional[float]:
    if period <= 0 or len(closes) < period:
        return None
    return sum(closes[-period:]) / period


def calculate_rsi(closes: List[float], period: int = 14) -> Optional[float]:
    """Relative strength index with Wilder smoothing"""
    if period <= 0 or len(closes) < period + 1:
        return None

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        diff = closes[i] - closes[i - 1]
        if diff > 0:
            gains += diff
        else:
            losses -= diff

    average_gain = gains / period
    average_loss = losses / period

    for i in range(period + 1, len(closes)):
        diff = closes[i] - closes[i - 1]
        gain = diff if diff > 0 else 0.0
        loss = -diff if diff < 0 else 0.0
        average_gain = (average_gain * (period - 1) + gain) / period
        average_loss = (average_loss * (period - 1) + loss) / period

    if average_loss == 0:
        return 100.0

    rs = average_gain / average_loss
    return 100 - (100 / (1 + rs))


async def get_technical_analysis(market_data: MarketDataGateway, inst_id: str) -> TechnicalAnalysis:
    """
    RSI(14), SMA20 and SMA50 from daily closes.

    Raises:
        StaleDataError: If the exchange returns fewer candles than needed
        UpstreamError: If the candle request fails
    """
    inst_id = normalize_symbol(inst_id)
    closes = await market_data.get_candles(inst_id, "1D", TECHNICAL_ANALYSIS_CANDLES)
    if len(closes) < TECHNICAL_ANALYSIS_CANDLES:
        raise StaleDataError(
            f"Only {len(closes)} daily candles for {inst_id}, {TECHNICAL_ANALYSIS_CANDLES} needed"
        )

    return TechnicalAnalysis(
        inst_id=inst_id,
        rsi=calculate_rsi(closes),
        sma20=calculate_sma(closes, 20),
        sma50=calculate_sma(closes, 50),
    )


def get_historical_performance(history: List[TradeHistoryEntry], asset: str) -> HistoricalPerformance:
    """Realized results for one asset; partial sells count towards pnl but not as trades"""
    asset = normalize_symbol(asset)
    entries = [entry for entry in history if entry.asset == asset]
    if not entries:
        return HistoricalPerformance()

    closes = [entry for entry in entries if not entry.partial]
    return HistoricalPerformance(
        realized_pnl=sum(entry.pnl for entry in entries),
        trade_count=len(closes),
        winning_trades=sum(1 for entry in closes if entry.pnl > 0),
        losing_trades=sum(1 for entry in closes if entry.pnl <= 0),
        average_duration_days=sum(entry.duration_days for entry in closes) / len(closes) if closes else 0.0,
    )


def calculate_performance_stats(history: List[PortfolioHistoryPoint]) -> Optional[PerformanceStats]:
    if len(history) < 2:
        return None

    values = [point.total for point in history]
    start_value = values[0]
    end_value = values[-1]
    pnl = end_value - start_value
    return PerformanceStats(
        start_value=start_value,
        end_value=end_value,
        pnl=pnl,
        pnl_percent=pnl / start_value * 100 if start_value > 0 else 0.0,
        max_value=max(values),
        min_value=min(values),
        average_value=sum(values) / len(values),
    )
