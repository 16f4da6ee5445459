from .alert_evaluator import AlertEvaluator
from .high_low_tracker import HighLowTracker
from .movement_detector import MovementDetector
from .notification_service import TelegramNotificationService
from .position_ledger import PositionLedger, ReconcileResult
from .rollup_service import RollupService

__all__ = [
    "AlertEvaluator",
    "HighLowTracker",
    "MovementDetector",
    "TelegramNotificationService",
    "PositionLedger",
    "ReconcileResult",
    "RollupService",
]
