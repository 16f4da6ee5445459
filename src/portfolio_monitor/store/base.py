from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Versioned:
    """A stored value together with the version it was read at (0 when absent)"""
    value: Optional[Any]
    version: int


class StateStore(ABC):
    """Abstract key-value persistence with versioned conditional writes"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored JSON value or None"""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any):
        """Unconditionally store a JSON value"""
        pass

    @abstractmethod
    async def delete(self, key: str):
        """Remove a key"""
        pass

    @abstractmethod
    async def get_versioned(self, key: str) -> Versioned:
        """Return the value and the version to pass back to commit()"""
        pass

    @abstractmethod
    async def commit(self, writes: Dict[str, Any], expected_versions: Dict[str, int]):
        """
        Atomically write every key in writes if every key in expected_versions
        still has the version it was read at.

        Keys in expected_versions that are not written act as read guards.

        Raises:
            ConflictError: If any version changed since it was read
        """
        pass

    async def close(self):
        """Release connections"""
        pass
