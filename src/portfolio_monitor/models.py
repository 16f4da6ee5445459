"""
Data models for the monitoring engine and the state it persists
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


# Market data models
class TickerPrice(BaseModel):
    """Last traded price of one instrument"""
    price: float
    open_24h: float = 0.0
    change_24h: float = 0.0  # Fraction, 0.05 == +5%


class PortfolioAsset(BaseModel):
    """One valued asset of the account"""
    asset: str
    price: float
    value: float
    amount: float
    change_24h: float = 0.0


class PortfolioSummary(BaseModel):
    """Valued account holdings"""
    assets: List[PortfolioAsset]
    total: float


# Persisted state models
class Position(BaseModel):
    """Open, continuously held asset with a weighted average cost basis"""
    symbol: str
    average_buy_price: float
    total_amount_bought: float
    total_amount_sold: float = 0.0
    total_cost: float = 0.0
    realized_pnl: float = 0.0
    open_date: datetime

    @property
    def held_amount(self) -> float:
        return max(self.total_amount_bought - self.total_amount_sold, 0.0)


class TradeHistoryEntry(BaseModel):
    """Realized result of a partial or full position close"""
    asset: str
    pnl: float
    pnl_percent: float
    quantity: float
    exit_price: float
    average_buy_price: float
    duration_days: float
    closed_at: datetime
    partial: bool = False


class AlertCondition(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class PriceAlert(BaseModel):
    """One-shot alert on a static price level"""
    id: str
    inst_id: str
    condition: AlertCondition
    price: float
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("inst_id")
    @classmethod
    def normalize_inst_id(cls, v: str) -> str:
        return normalize_symbol(v)

    @field_validator("condition", mode="before")
    @classmethod
    def parse_condition(cls, v):
        if v == ">":
            return AlertCondition.ABOVE
        if v == "<":
            return AlertCondition.BELOW
        return v


class MovementAlertSettings(BaseModel):
    """Percent thresholds for price movement notifications"""
    global_threshold: float = 5.0
    overrides: Dict[str, float] = Field(default_factory=dict)

    @field_validator("overrides")
    @classmethod
    def normalize_overrides(cls, v: Dict[str, float]) -> Dict[str, float]:
        return {normalize_symbol(symbol): percent for symbol, percent in v.items()}

    def threshold_for(self, symbol: str) -> float:
        return self.overrides.get(normalize_symbol(symbol), self.global_threshold)


class PositionExtrema(BaseModel):
    """Running high/low of an open position"""
    symbol: str
    high: float
    low: float
    since_date: datetime


class MonitorSettings(BaseModel):
    """User toggles that change how notifications are delivered"""
    daily_summary: bool = True
    auto_post_to_channel: bool = False
    debug_mode: bool = False


class PortfolioHistoryPoint(BaseModel):
    """Portfolio value at one rollup"""
    label: str
    total: float
    recorded_at: datetime = Field(default_factory=utcnow)


# Notification models
class Notification(BaseModel):
    """Fully formatted message handed to the dispatcher"""
    text: str
    parse_mode: Optional[str] = "Markdown"
    photo_url: Optional[str] = None
    broadcast: bool = False


# Event models
class PositionEventKind(str, Enum):
    OPENED = "opened"
    INCREASED = "increased"
    REDUCED = "reduced"
    CLOSED = "closed"


class PositionEvent(BaseModel):
    """Change to a position derived from a balance delta"""
    kind: PositionEventKind
    symbol: str
    quantity: float  # Absolute size of the balance change
    price: float
    balance: float  # Balance after the change
    position: Position
    realized_pnl: Optional[float] = None
    realized_pnl_percent: Optional[float] = None
    total_realized_pnl: Optional[float] = None
    duration_days: Optional[float] = None
    highest_price: Optional[float] = None
    lowest_price: Optional[float] = None


class MovementEvent(BaseModel):
    """Price moved past the effective threshold since the baseline"""
    symbol: str
    direction: Literal["up", "down"]
    percent_change: float
    baseline_price: float
    current_price: float
    threshold: float
