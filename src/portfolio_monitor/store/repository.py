"""
Typed access to the monitor state kept in the State Store
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from portfolio_monitor.exceptions import MonitorError
from portfolio_monitor.logger import AppLogger
from portfolio_monitor.models import (
    MonitorSettings,
    MovementAlertSettings,
    PortfolioHistoryPoint,
    Position,
    PositionExtrema,
    PriceAlert,
    TradeHistoryEntry,
)
from portfolio_monitor.store.base import StateStore

app_logger = AppLogger(__name__)


class StateKeys:
    """Names of every key the monitor persists"""
    BALANCE_SNAPSHOT = "balance_snapshot"
    POSITIONS = "positions"
    POSITION_EXTREMA = "position_extrema"
    TRADE_HISTORY = "trade_history"
    PRICE_ALERTS = "price_alerts"
    MOVEMENT_SETTINGS = "movement_settings"
    MOVEMENT_BASELINES = "movement_baselines"
    SETTINGS = "settings"
    CAPITAL = "capital"
    DAILY_HISTORY = "daily_history"
    HOURLY_HISTORY = "hourly_history"

    ALL = [
        BALANCE_SNAPSHOT, POSITIONS, POSITION_EXTREMA, TRADE_HISTORY, PRICE_ALERTS,
        MOVEMENT_SETTINGS, MOVEMENT_BASELINES, SETTINGS, CAPITAL, DAILY_HISTORY, HOURLY_HISTORY,
    ]


BACKUP_VERSION = "1.0"
BACKUP_BOT_NAME = "OKX Portfolio Monitor"


# Serialization helpers shared with the services that commit raw documents
def dump_positions(positions: Dict[str, Position]) -> Dict[str, Any]:
    return {symbol: position.model_dump(mode="json") for symbol, position in positions.items()}


def load_positions(raw: Optional[Dict[str, Any]]) -> Dict[str, Position]:
    return {symbol: Position.model_validate(data) for symbol, data in (raw or {}).items()}


def dump_extrema(extrema: Dict[str, PositionExtrema]) -> Dict[str, Any]:
    return {symbol: item.model_dump(mode="json") for symbol, item in extrema.items()}


def load_extrema(raw: Optional[Dict[str, Any]]) -> Dict[str, PositionExtrema]:
    return {symbol: PositionExtrema.model_validate(data) for symbol, data in (raw or {}).items()}


def dump_history(history: List[TradeHistoryEntry]) -> List[Dict[str, Any]]:
    return [entry.model_dump(mode="json") for entry in history]


def load_history(raw: Optional[List[Dict[str, Any]]]) -> List[TradeHistoryEntry]:
    return [TradeHistoryEntry.model_validate(data) for data in (raw or [])]


def dump_alerts(alerts: List[PriceAlert]) -> List[Dict[str, Any]]:
    return [alert.model_dump(mode="json") for alert in alerts]


def load_alerts(raw: Optional[List[Dict[str, Any]]]) -> List[PriceAlert]:
    return [PriceAlert.model_validate(data) for data in (raw or [])]


class MonitorRepository:
    """Reads and writes the persisted monitor entities"""

    def __init__(self, store: StateStore, default_movement_threshold: float = 5.0):
        self.store = store
        self.default_movement_threshold = default_movement_threshold

    # Balance snapshot
    async def get_balance_snapshot(self) -> Optional[Dict[str, float]]:
        return await self.store.get(StateKeys.BALANCE_SNAPSHOT)

    # Positions and extrema
    async def get_positions(self) -> Dict[str, Position]:
        return load_positions(await self.store.get(StateKeys.POSITIONS))

    async def get_position_extrema(self) -> Dict[str, PositionExtrema]:
        return load_extrema(await self.store.get(StateKeys.POSITION_EXTREMA))

    # Trade history
    async def get_trade_history(self) -> List[TradeHistoryEntry]:
        return load_history(await self.store.get(StateKeys.TRADE_HISTORY))

    # Price alerts
    async def get_price_alerts(self) -> List[PriceAlert]:
        return load_alerts(await self.store.get(StateKeys.PRICE_ALERTS))

    async def add_price_alert(self, alert: PriceAlert) -> None:
        versioned = await self.store.get_versioned(StateKeys.PRICE_ALERTS)
        alerts = load_alerts(versioned.value) + [alert]
        await self.store.commit(
            {StateKeys.PRICE_ALERTS: dump_alerts(alerts)},
            {StateKeys.PRICE_ALERTS: versioned.version}
        )
        app_logger.log_info(f"Added price alert {alert.id} for {alert.inst_id} {alert.condition.value} {alert.price}")

    async def delete_price_alert(self, alert_id: str) -> bool:
        versioned = await self.store.get_versioned(StateKeys.PRICE_ALERTS)
        alerts = load_alerts(versioned.value)
        remaining = [alert for alert in alerts if alert.id != alert_id]
        if len(remaining) == len(alerts):
            return False
        await self.store.commit(
            {StateKeys.PRICE_ALERTS: dump_alerts(remaining)},
            {StateKeys.PRICE_ALERTS: versioned.version}
        )
        app_logger.log_info(f"Deleted price alert {alert_id}")
        return True

    # Movement settings and baselines
    async def get_movement_settings(self) -> MovementAlertSettings:
        raw = await self.store.get(StateKeys.MOVEMENT_SETTINGS)
        if raw is None:
            return MovementAlertSettings(global_threshold=self.default_movement_threshold)
        return MovementAlertSettings.model_validate(raw)

    async def save_movement_settings(self, settings: MovementAlertSettings) -> None:
        await self.store.set(StateKeys.MOVEMENT_SETTINGS, settings.model_dump(mode="json"))

    async def get_movement_baselines(self) -> Dict[str, float]:
        return await self.store.get(StateKeys.MOVEMENT_BASELINES) or {}

    # Settings and capital
    async def get_settings(self) -> MonitorSettings:
        raw = await self.store.get(StateKeys.SETTINGS)
        return MonitorSettings.model_validate(raw) if raw is not None else MonitorSettings()

    async def save_settings(self, settings: MonitorSettings) -> None:
        await self.store.set(StateKeys.SETTINGS, settings.model_dump(mode="json"))

    async def get_capital(self) -> float:
        raw = await self.store.get(StateKeys.CAPITAL)
        return float(raw) if raw is not None else 0.0

    async def save_capital(self, amount: float) -> None:
        await self.store.set(StateKeys.CAPITAL, amount)

    # Portfolio value history
    async def get_daily_history(self) -> List[PortfolioHistoryPoint]:
        raw = await self.store.get(StateKeys.DAILY_HISTORY) or []
        return [PortfolioHistoryPoint.model_validate(point) for point in raw]

    async def get_hourly_history(self) -> List[PortfolioHistoryPoint]:
        raw = await self.store.get(StateKeys.HOURLY_HISTORY) or []
        return [PortfolioHistoryPoint.model_validate(point) for point in raw]

    async def append_history_point(self, key: str, point: PortfolioHistoryPoint, limit: int) -> bool:
        """Append a point unless the last point has the same label; keeps the newest `limit` points"""
        versioned = await self.store.get_versioned(key)
        history = list(versioned.value or [])
        if history and history[-1].get('label') == point.label:
            return False

        history.append(point.model_dump(mode="json"))
        history = history[-limit:]
        await self.store.commit({key: history}, {key: versioned.version})
        return True

    # Backup
    async def export_all(self) -> Dict[str, Any]:
        """Collect every stored key into one backup document"""
        document: Dict[str, Any] = {
            'metadata': {
                'export_date': datetime.now(timezone.utc).isoformat(),
                'version': BACKUP_VERSION,
                'bot_name': BACKUP_BOT_NAME,
            }
        }
        for key in StateKeys.ALL:
            value = await self.store.get(key)
            if value is not None:
                document[key] = value
        app_logger.log_info(f"Exported {len(document) - 1} keys")
        return document

    async def import_all(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Restore a backup document.

        Returns:
            The state that was replaced, in backup format, for rollback

        Raises:
            MonitorError: If the document is not a backup produced by export_all
        """
        metadata = document.get('metadata') if isinstance(document, dict) else None
        if not isinstance(metadata, dict) or not metadata.get('bot_name'):
            raise MonitorError("Backup document is invalid or corrupt")

        rollback = await self.export_all()

        restored = 0
        for key in StateKeys.ALL:
            if key in document:
                await self.store.set(key, document[key])
                restored += 1

        app_logger.log_info(f"Restored {restored} keys from backup dated {metadata.get('export_date')}")
        return rollback
