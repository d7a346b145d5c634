"""
cush/db/redis_client.py

Purpose: Key-value store connection setup

- Initializes the redis.asyncio client with retry logic
- Falls back to a process-local LocalStore when Redis is unreachable (if enabled)
- JSON record helpers shared by every service
- Translates store failures into ExternalServiceError
- Health checks and connection lifecycle management
"""

import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Set

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from cush.core.config import settings
from cush.core.exceptions import ExternalServiceError
from cush.core.logging import get_logger
from cush.db.memory_store import LocalStore

logger = get_logger(__name__)


class KeyValueStore:
    """
    Thin wrapper over a redis.asyncio client (or a LocalStore).

    Every call goes through _call() so a store outage surfaces as a single
    ExternalServiceError instead of leaking driver exceptions.
    """

    def __init__(self, client: Any, backend: str = "redis"):
        self._client = client
        self.backend = backend

    @property
    def is_fallback(self) -> bool:
        return self.backend == "memory"

    async def _call(self, operation: str, *args, **kwargs) -> Any:
        try:
            return await getattr(self._client, operation)(*args, **kwargs)
        except RedisError as e:
            logger.error(f"Key-value store {operation} failed: {e}")
            raise ExternalServiceError("Key-value store unavailable") from e

    # Strings
    async def get(self, key: str) -> Optional[str]:
        return await self._call("get", key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        return bool(await self._call("set", key, value, ex=ex))

    async def set_if_absent(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        """Atomic SET NX. Returns False when the key already exists."""
        return bool(await self._call("set", key, value, ex=ex, nx=True))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._call("delete", *keys)

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self._call("expire", key, seconds))

    # JSON records
    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set_json(self, key: str, value: Dict[str, Any], ex: Optional[int] = None) -> bool:
        return await self.set(key, json.dumps(value, default=str), ex=ex)

    # Prefix scans
    async def scan_keys(self, pattern: str) -> List[str]:
        """Enumerate keys matching a glob pattern with SCAN (never KEYS)."""
        try:
            return [key async for key in self._client.scan_iter(match=pattern, count=500)]
        except RedisError as e:
            logger.error(f"Key-value store scan failed for {pattern}: {e}")
            raise ExternalServiceError("Key-value store unavailable") from e

    # Lists
    async def lpush(self, key: str, *values: str) -> int:
        return await self._call("lpush", key, *values)

    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        return await self._call("lrange", key, start, end)

    async def ltrim(self, key: str, start: int, end: int) -> bool:
        return await self._call("ltrim", key, start, end)

    async def lrem(self, key: str, count: int, value: str) -> int:
        return await self._call("lrem", key, count, value)

    async def drain_list(self, key: str) -> List[str]:
        """Read and delete a list in one MULTI/EXEC transaction."""
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.lrange(key, 0, -1)
                pipe.delete(key)
                items, _ = await pipe.execute()
        except RedisError as e:
            logger.error(f"Key-value store drain failed for {key}: {e}")
            raise ExternalServiceError("Key-value store unavailable") from e
        return items

    # Sets
    async def sadd(self, key: str, *members: str) -> int:
        return await self._call("sadd", key, *members)

    async def smembers(self, key: str) -> Set[str]:
        return set(await self._call("smembers", key))

    async def srem(self, key: str, *members: str) -> int:
        return await self._call("srem", key, *members)

    # Connection
    async def ping(self) -> bool:
        return bool(await self._call("ping"))

    async def close(self) -> None:
        await self._client.aclose()


# Global store
_store: Optional[KeyValueStore] = None


def build_local_store() -> KeyValueStore:
    """Create a process-local store (non-durable, not shared between instances)."""
    return KeyValueStore(
        LocalStore(default_ttl=settings.FALLBACK_DEFAULT_TTL_SECONDS),
        backend="memory",
    )


async def connect_to_redis():
    """
    Establishes connection to Redis with retry logic.
    Called during application startup.
    """
    global _store

    if _store is not None:
        logger.warning("Key-value store already initialized")
        return

    max_retries = 3
    retry_delay = 1

    for attempt in range(1, max_retries + 1):
        client = aioredis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=10,
            health_check_interval=30,
        )
        try:
            logger.info(f"Attempting to connect to Redis (attempt {attempt}/{max_retries})")
            await client.ping()
            _store = KeyValueStore(client, backend="redis")
            logger.info("✅ Successfully connected to Redis")
            return

        except RedisError as e:
            await client.aclose()
            logger.error(f"Failed to connect to Redis (attempt {attempt}/{max_retries}): {e}")

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2

    if settings.REDIS_FALLBACK_ENABLED:
        logger.warning(
            "⚠️ Redis unreachable; using process-local fallback store. "
            "Data will not survive a restart and is not shared between instances."
        )
        _store = build_local_store()
        return

    logger.critical("Failed to connect to Redis after all retries")
    raise ConnectionError("Could not establish Redis connection")


async def close_redis_connection():
    """
    Closes the store connection.
    Called during application shutdown.
    """
    global _store

    if _store:
        logger.info(f"Closing key-value store ({_store.backend})")
        await _store.close()
        _store = None


async def check_store_health() -> bool:
    """
    Checks if the store connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    if _store is None:
        logger.error("Key-value store not initialized")
        return False
    try:
        return await _store.ping()
    except ExternalServiceError:
        return False


def get_store() -> KeyValueStore:
    """
    Returns the active key-value store.

    Raises:
        RuntimeError: If the store is not initialized
    """
    if _store is None:
        raise RuntimeError(
            "Key-value store not initialized. Call connect_to_redis() during startup."
        )
    return _store


def set_store(store: Optional[KeyValueStore]):
    """Install a store explicitly (scripts and tests)."""
    global _store
    _store = store


async def test_store_connection() -> Dict[str, Any]:
    """
    Round-trips a short-lived key to prove reads and writes work.

    Returns:
        Diagnostic dict; never raises for store failures
    """
    if _store is None:
        return {"success": False, "message": "Key-value store not initialized"}

    test_key = f"test:connection:{int(time.time() * 1000)}"
    test_value = f"connected-{int(time.time())}"
    try:
        ping_result = await _store.ping()
        await _store.set(test_key, test_value, ex=60)
        retrieved = await _store.get(test_key)
    except ExternalServiceError as e:
        return {
            "success": False,
            "message": "Key-value store connection failed",
            "backend": _store.backend,
            "error": str(e.__cause__ or e),
        }

    return {
        "success": retrieved == test_value,
        "message": "Key-value store connection successful",
        "backend": _store.backend,
        "pingResult": ping_result,
        "testKey": test_key,
        "testValue": test_value,
        "retrievedValue": retrieved,
    }
