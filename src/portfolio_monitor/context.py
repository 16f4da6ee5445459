"""
Task context management using ContextVar for async-safe context propagation.
"""

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TaskContext:
    """Identifies the monitoring cycle a log line belongs to"""
    task: str
    cycle_id: str


# Context variable to store the current cycle across async boundaries
current_task: ContextVar[Optional[TaskContext]] = ContextVar('current_task', default=None)


def set_current_task(context: TaskContext) -> None:
    """Set the current task cycle in the context."""
    current_task.set(context)


def get_current_task() -> Optional[TaskContext]:
    """Get the current task cycle from the context."""
    return current_task.get()


def clear_current_task() -> None:
    """Clear the current task cycle from the context."""
    current_task.set(None)
