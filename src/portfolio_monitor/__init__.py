"""OKX portfolio monitoring engine."""

from .exceptions import (
    MonitorError,
    UpstreamError,
    StaleDataError,
    ConflictError,
    ConfigurationError,
)
from .models import (
    # Market data models
    TickerPrice,
    PortfolioAsset,
    PortfolioSummary,
    # Persisted state models
    Position,
    TradeHistoryEntry,
    PriceAlert,
    AlertCondition,
    MovementAlertSettings,
    PositionExtrema,
    MonitorSettings,
    PortfolioHistoryPoint,
    # Notification and event models
    Notification,
    PositionEvent,
    PositionEventKind,
    MovementEvent,
)

__version__ = "1.0.0"

__all__ = [
    "MonitorError",
    "UpstreamError",
    "StaleDataError",
    "ConflictError",
    "ConfigurationError",
    "TickerPrice",
    "PortfolioAsset",
    "PortfolioSummary",
    "Position",
    "TradeHistoryEntry",
    "PriceAlert",
    "AlertCondition",
    "MovementAlertSettings",
    "PositionExtrema",
    "MonitorSettings",
    "PortfolioHistoryPoint",
    "Notification",
    "PositionEvent",
    "PositionEventKind",
    "MovementEvent",
    "__version__",
]
