from .base import StateStore, Versioned
from .memory_store import InMemoryStateStore
from .redis_store import RedisStateStore
from .repository import MonitorRepository, StateKeys

__all__ = [
    "StateStore",
    "Versioned",
    "InMemoryStateStore",
    "RedisStateStore",
    "MonitorRepository",
    "StateKeys",
]
