"""
Alert Evaluator - fires one-shot price alerts
"""
from typing import Dict, List

from portfolio_monitor.exceptions import ConflictError
from portfolio_monitor.logger import AppLogger
from portfolio_monitor.models import AlertCondition, PriceAlert, TickerPrice, normalize_symbol
from portfolio_monitor.services.message_formatter import format_price_alert
from portfolio_monitor.store.repository import MonitorRepository, StateKeys, dump_alerts, load_alerts

app_logger = AppLogger(__name__)


class AlertEvaluator:
    """Removes alerts whose level was crossed and notifies once per alert"""

    def __init__(self, repository: MonitorRepository, notifier):
        self.repository = repository
        self.store = repository.store
        self.notifier = notifier

    @staticmethod
    def is_triggered(alert: PriceAlert, current_price: float) -> bool:
        if alert.condition == AlertCondition.ABOVE:
            return current_price > alert.price
        return current_price < alert.price

    @classmethod
    def evaluate(cls, inst_id: str, current_price: float, alerts: List[PriceAlert]) -> List[PriceAlert]:
        inst_id = normalize_symbol(inst_id)
        return [
            alert for alert in alerts
            if alert.inst_id == inst_id and cls.is_triggered(alert, current_price)
        ]

    async def run_cycle(self, prices: Dict[str, TickerPrice]) -> List[PriceAlert]:
        """
        Fire every alert whose condition holds at the current prices.

        Fired alerts are removed with a conditional write before anything is
        sent, so an alert is only notified by the cycle whose write removed it.
        """
        for attempt in range(2):
            try:
                fired = await self._remove_fired(prices)
                break
            except ConflictError as e:
                if attempt == 1:
                    raise
                app_logger.log_warning(f"Price alerts changed concurrently, retrying: {e}")

        for alert in fired:
            await self.notifier.dispatch(format_price_alert(alert, prices[alert.inst_id].price))
        return fired

    async def _remove_fired(self, prices: Dict[str, TickerPrice]) -> List[PriceAlert]:
        versioned = await self.store.get_versioned(StateKeys.PRICE_ALERTS)
        alerts = load_alerts(versioned.value)
        if not alerts:
            return []

        fired = []
        for inst_id in sorted({alert.inst_id for alert in alerts}):
            ticker = prices.get(inst_id)
            if ticker is None:
                continue
            fired.extend(self.evaluate(inst_id, ticker.price, alerts))

        if not fired:
            return []

        fired_ids = {alert.id for alert in fired}
        remaining = [alert for alert in alerts if alert.id not in fired_ids]
        await self.store.commit(
            {StateKeys.PRICE_ALERTS: dump_alerts(remaining)},
            {StateKeys.PRICE_ALERTS: versioned.version}
        )
        for alert in fired:
            app_logger.log_info(f"Price alert {alert.id} fired: {alert.inst_id} {alert.condition.value} {alert.price:g}")
        return fired
