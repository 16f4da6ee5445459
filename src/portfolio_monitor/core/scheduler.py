"""Scheduler - runs each monitoring task on its own fixed interval"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from portfolio_monitor.config import IntervalsConfig
from portfolio_monitor.context import TaskContext, clear_current_task, set_current_task
from portfolio_monitor.logger import AppLogger

app_logger = AppLogger(__name__)


class TaskState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class MonitorTask:
    """
    One monitoring task with an Idle/Running gate.

    A tick that arrives while the previous run is still in progress is
    skipped, never queued. Failures are logged and reported as a debug
    diagnostic; the next tick is the retry.
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        notifier=None,
        run_on_start: bool = False
    ):
        self.name = name
        self.action = action
        self.interval_seconds = interval_seconds
        self.notifier = notifier
        self.run_on_start = run_on_start
        self.state = TaskState.IDLE
        self.last_outcome: Optional[TaskState] = None
        self.last_error: Optional[str] = None
        self.last_run_at: Optional[datetime] = None
        self.skipped_ticks = 0

    async def run(self) -> Optional[TaskState]:
        """Run one cycle; returns the outcome, or None when the tick was skipped"""
        if self.state == TaskState.RUNNING:
            self.skipped_ticks += 1
            app_logger.log_info(f"Task {self.name} still running, skipping this tick")
            return None

        self.state = TaskState.RUNNING
        self.last_run_at = datetime.now(timezone.utc)
        set_current_task(TaskContext(task=self.name, cycle_id=uuid.uuid4().hex[:8]))
        outcome = TaskState.FAILED

        try:
            app_logger.log_debug(f"Task {self.name} started")
            await self.action()
            outcome = TaskState.SUCCEEDED
            self.last_error = None
            app_logger.log_debug(f"Task {self.name} succeeded")
        except Exception as e:
            self.last_error = str(e)
            app_logger.log_error(f"Task {self.name} failed: {e}", exc_info=True)
            if self.notifier:
                await self.notifier.send_debug(f"Task `{self.name}` failed: {e}")
        finally:
            self.last_outcome = outcome
            self.state = TaskState.IDLE
            clear_current_task()

        return outcome

    def status(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'state': self.state.value,
            'interval_seconds': self.interval_seconds,
            'last_outcome': self.last_outcome.value if self.last_outcome else None,
            'last_error': self.last_error,
            'last_run_at': self.last_run_at.isoformat() if self.last_run_at else None,
            'skipped_ticks': self.skipped_ticks,
        }


class MonitorScheduler:
    """Drives MonitorTasks from an APScheduler AsyncIOScheduler"""

    def __init__(self, tasks: List[MonitorTask]):
        self.tasks = {task.name: task for task in tasks}
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        """Start the scheduler."""
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)

        for task in self.tasks.values():
            job_options = {}
            if task.run_on_start:
                job_options['next_run_time'] = datetime.now(timezone.utc)

            # The task's own gate decides whether an overlapping tick is skipped
            self.scheduler.add_job(
                task.run,
                IntervalTrigger(seconds=task.interval_seconds),
                id=task.name,
                name=task.name,
                max_instances=2,
                coalesce=True,
                **job_options
            )
            app_logger.log_info(f"Scheduled task {task.name} every {task.interval_seconds:g}s")

        self.scheduler.start()
        self.running = True
        app_logger.log_info(f"Scheduler started with {len(self.tasks)} tasks")

    async def stop(self):
        """Stop the scheduler gracefully."""
        if self.scheduler and self.running:
            self.scheduler.shutdown(wait=False)
            self.running = False
            app_logger.log_info("Scheduler stopped")

    def get_next_run_time(self, task_name: str) -> Optional[str]:
        if self.scheduler and self.running:
            job = self.scheduler.get_job(task_name)
            if job and job.next_run_time:
                return job.next_run_time.isoformat()
        return None

    def status(self) -> List[Dict[str, Any]]:
        return [
            {**task.status(), 'next_run_time': self.get_next_run_time(name)}
            for name, task in self.tasks.items()
        ]


def build_monitor_tasks(
    intervals: IntervalsConfig,
    market_data,
    position_ledger,
    movement_detector,
    alert_evaluator,
    high_low_tracker,
    rollup_service,
    notifier
) -> List[MonitorTask]:
    """Create the six monitoring tasks; each price-driven task fetches its own tickers"""

    async def check_price_alerts():
        await alert_evaluator.run_cycle(await market_data.get_prices())

    async def check_price_movements():
        await movement_detector.run_cycle(await market_data.get_prices())

    async def track_position_extrema():
        await high_low_tracker.run_cycle(await market_data.get_prices())

    return [
        MonitorTask("balance_reconciliation", position_ledger.run_cycle,
                    intervals.balance_reconciliation, notifier, run_on_start=True),
        MonitorTask("price_alerts", check_price_alerts, intervals.price_alerts, notifier, run_on_start=True),
        MonitorTask("price_movements", check_price_movements, intervals.price_movements, notifier, run_on_start=True),
        MonitorTask("position_extrema", track_position_extrema, intervals.position_extrema, notifier, run_on_start=True),
        MonitorTask("hourly_rollup", rollup_service.run_hourly, intervals.hourly_rollup, notifier),
        MonitorTask("daily_rollup", rollup_service.run_daily, intervals.daily_rollup, notifier),
    ]
