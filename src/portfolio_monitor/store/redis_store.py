"""
Redis State Store
Every key is a hash holding a JSON 'value' and an integer 'version'
"""
import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import redis.asyncio as redis

from portfolio_monitor.exceptions import ConflictError, UpstreamError
from portfolio_monitor.logger import AppLogger
from portfolio_monitor.store.base import StateStore, Versioned

app_logger = AppLogger(__name__)

T = TypeVar("T")

# KEYS: guarded keys followed by written keys
# ARGV: guarded key count, expected versions, then one JSON value per written key
_COMMIT_SCRIPT = """
local guarded = tonumber(ARGV[1])
for i = 1, guarded do
    local current = tonumber(redis.call('HGET', KEYS[i], 'version') or '0')
    if current ~= tonumber(ARGV[i + 1]) then
        return 0
    end
end
for i = guarded + 1, #KEYS do
    redis.call('HSET', KEYS[i], 'value', ARGV[i + 1])
    redis.call('HINCRBY', KEYS[i], 'version', 1)
end
return 1
"""


class RedisStateStore(StateStore):
    """State store backed by redis with Lua-scripted conditional commits"""

    def __init__(self, redis_url: str, namespace: str = "monitor:", max_retries: int = 3, retry_delay: float = 0.5):
        self.redis_url = redis_url
        self.namespace = namespace
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client: Optional[redis.Redis] = None
        self._commit_script = None

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.redis_url, decode_responses=True)
        if self._commit_script is None:
            self._commit_script = self._client.register_script(_COMMIT_SCRIPT)
        return self._client

    async def execute_with_retry(self, operation: Callable[[redis.Redis], Awaitable[T]]) -> T:
        """Run operation, retrying on connection errors with linear backoff"""
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                client = await self._get_client()
                return await operation(client)
            except (redis.ConnectionError, redis.TimeoutError) as e:
                last_error = e
                app_logger.log_warning(f"Redis operation failed (attempt {attempt}/{self.max_retries}): {e}")
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay * attempt)
        raise UpstreamError(f"Redis unavailable after {self.max_retries} attempts: {last_error}")

    async def get(self, key: str) -> Optional[Any]:
        return (await self.get_versioned(key)).value

    async def set(self, key: str, value: Any):
        async def set_operation(client):
            pipe = client.pipeline(transaction=True)
            pipe.hset(self._key(key), 'value', json.dumps(value))
            pipe.hincrby(self._key(key), 'version', 1)
            return await pipe.execute()

        await self.execute_with_retry(set_operation)
        app_logger.log_debug(f"Stored {key}")

    async def delete(self, key: str):
        # Keep the version field so a stale reader still conflicts
        async def delete_operation(client):
            pipe = client.pipeline(transaction=True)
            pipe.hdel(self._key(key), 'value')
            pipe.hincrby(self._key(key), 'version', 1)
            return await pipe.execute()

        await self.execute_with_retry(delete_operation)
        app_logger.log_debug(f"Deleted {key}")

    async def get_versioned(self, key: str) -> Versioned:
        async def get_operation(client):
            return await client.hmget(self._key(key), 'value', 'version')

        raw, version = await self.execute_with_retry(get_operation)
        return Versioned(
            value=json.loads(raw) if raw is not None else None,
            version=int(version) if version is not None else 0
        )

    async def commit(self, writes: Dict[str, Any], expected_versions: Dict[str, int]):
        guarded = list(expected_versions.keys())
        written = list(writes.keys())
        keys = [self._key(k) for k in guarded] + [self._key(k) for k in written]
        args = [len(guarded)] + [expected_versions[k] for k in guarded] + [json.dumps(writes[k]) for k in written]

        async def commit_operation(client):
            return await self._commit_script(keys=keys, args=args, client=client)

        applied = await self.execute_with_retry(commit_operation)
        if not int(applied):
            raise ConflictError(f"Conditional write lost a race on {', '.join(guarded)}")
        app_logger.log_debug(f"Committed {', '.join(written)}")

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._commit_script = None
