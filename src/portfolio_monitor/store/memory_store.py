"""In-process state store for local runs and tests"""

import asyncio
import json
from typing import Any, Dict, Optional, Tuple

from portfolio_monitor.exceptions import ConflictError
from portfolio_monitor.store.base import StateStore, Versioned


class InMemoryStateStore(StateStore):
    """Dict-backed store; values round-trip through JSON like the redis store"""

    def __init__(self, namespace: str = ""):
        self.namespace = namespace
        self._data: Dict[str, Tuple[Optional[str], int]] = {}
        self._lock = asyncio.Lock()

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def get(self, key: str) -> Optional[Any]:
        return (await self.get_versioned(key)).value

    async def set(self, key: str, value: Any):
        async with self._lock:
            _, version = self._data.get(self._key(key), (None, 0))
            self._data[self._key(key)] = (json.dumps(value), version + 1)

    async def delete(self, key: str):
        # Versions stay monotonic across deletes so stale reads still conflict
        async with self._lock:
            _, version = self._data.get(self._key(key), (None, 0))
            self._data[self._key(key)] = (None, version + 1)

    async def get_versioned(self, key: str) -> Versioned:
        async with self._lock:
            raw, version = self._data.get(self._key(key), (None, 0))
        return Versioned(value=json.loads(raw) if raw is not None else None, version=version)

    async def commit(self, writes: Dict[str, Any], expected_versions: Dict[str, int]):
        async with self._lock:
            for key, expected in expected_versions.items():
                _, current = self._data.get(self._key(key), (None, 0))
                if current != expected:
                    raise ConflictError(f"Version of '{key}' changed ({expected} -> {current})")

            for key, value in writes.items():
                _, version = self._data.get(self._key(key), (None, 0))
                self._data[self._key(key)] = (json.dumps(value), version + 1)
