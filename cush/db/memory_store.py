"""
cush/db/memory_store.py

Purpose: Process-local stand-in for Redis

- Mirrors the subset of the redis.asyncio API the application uses
- Strings, lists and sets with optional per-key expiry
- Expiry is evaluated lazily against an injected clock
- NOT durable and NOT shared: cleared on restart, invisible to other server instances
"""

import fnmatch
import time
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set, Tuple

from redis.exceptions import ResponseError

from cush.core.logging import get_logger

logger = get_logger(__name__)

WRONGTYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"


class LocalPipeline:
    """
    Queues LocalStore commands and runs them back to back on execute().

    LocalStore coroutines never suspend, so nothing can interleave with a
    queued batch; this gives the same all-at-once behaviour as MULTI/EXEC.
    """

    def __init__(self, store: "LocalStore"):
        self._store = store
        self._queued: List[Tuple[Callable, tuple, dict]] = []

    def __getattr__(self, name: str):
        command = getattr(self._store, name)

        def queue(*args, **kwargs) -> "LocalPipeline":
            self._queued.append((command, args, kwargs))
            return self
        return queue

    async def execute(self) -> List[Any]:
        queued, self._queued = self._queued, []
        return [await command(*args, **kwargs) for command, args, kwargs in queued]

    async def __aenter__(self) -> "LocalPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self._queued = []


class LocalStore:
    """
    In-memory key-value store used when Redis is unreachable, and in tests.

    Args:
        clock: Returns the current time in seconds (injectable for tests)
        default_ttl: Expiry applied to writes that don't set one; None keeps them forever
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, default_ttl: Optional[int] = None):
        self._clock = clock
        self._default_ttl = default_ttl
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _expiry(self, seconds: Optional[int]) -> Optional[float]:
        ttl = seconds if seconds is not None else self._default_ttl
        return self._clock() + ttl if ttl is not None else None

    def _live(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    def _typed(self, key: str, kind: type) -> Optional[Any]:
        value = self._live(key)
        if value is not None and not isinstance(value, kind):
            raise ResponseError(WRONGTYPE)
        return value

    def _keep_expiry(self, key: str) -> Optional[float]:
        entry = self._data.get(key)
        return entry[1] if entry else self._expiry(None)

    @staticmethod
    def _slice_bounds(length: int, start: int, end: int) -> Tuple[int, int]:
        if start < 0:
            start = max(length + start, 0)
        if end < 0:
            end = length + end
        return start, min(end, length - 1) + 1

    # ------------------------------------------------------------------
    # connection
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self._data.clear()

    async def flushdb(self) -> bool:
        self._data.clear()
        return True

    def pipeline(self, transaction: bool = True) -> LocalPipeline:
        return LocalPipeline(self)

    # ------------------------------------------------------------------
    # strings
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[str]:
        return self._typed(key, str)

    async def set(self, key: str, value: Any, ex: Optional[int] = None, nx: bool = False) -> Optional[bool]:
        if nx and self._live(key) is not None:
            return None
        self._data[key] = (str(value), self._expiry(ex))
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                removed += 1
        return removed

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._live(key) is not None)

    async def expire(self, key: str, seconds: int) -> bool:
        value = self._live(key)
        if value is None:
            return False
        self._data[key] = (value, self._clock() + seconds)
        return True

    async def scan_iter(self, match: Optional[str] = None, count: Optional[int] = None) -> AsyncIterator[str]:
        for key in list(self._data.keys()):
            if self._live(key) is None:
                continue
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def keys(self, pattern: str = "*") -> List[str]:
        return [key async for key in self.scan_iter(match=pattern)]

    # ------------------------------------------------------------------
    # lists
    # ------------------------------------------------------------------

    async def lpush(self, key: str, *values: Any) -> int:
        items: List[str] = self._typed(key, list) or []
        for value in values:
            items.insert(0, str(value))
        self._data[key] = (items, self._keep_expiry(key))
        return len(items)

    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        items: List[str] = self._typed(key, list) or []
        lo, hi = self._slice_bounds(len(items), start, end)
        return list(items[lo:hi])

    async def ltrim(self, key: str, start: int, end: int) -> bool:
        items = self._typed(key, list)
        if items is None:
            return True
        lo, hi = self._slice_bounds(len(items), start, end)
        kept = items[lo:hi]
        if kept:
            self._data[key] = (kept, self._keep_expiry(key))
        else:
            del self._data[key]
        return True

    async def lrem(self, key: str, count: int, value: Any) -> int:
        items = self._typed(key, list)
        if not items:
            return 0
        target = str(value)
        limit = abs(count) if count else len(items)
        ordered = items if count >= 0 else list(reversed(items))
        kept, removed = [], 0
        for item in ordered:
            if item == target and removed < limit:
                removed += 1
                continue
            kept.append(item)
        if count < 0:
            kept.reverse()
        if kept:
            self._data[key] = (kept, self._keep_expiry(key))
        else:
            del self._data[key]
        return removed

    # ------------------------------------------------------------------
    # sets
    # ------------------------------------------------------------------

    async def sadd(self, key: str, *members: Any) -> int:
        current: Set[str] = self._typed(key, set) or set()
        before = len(current)
        current.update(str(m) for m in members)
        self._data[key] = (current, self._keep_expiry(key))
        return len(current) - before

    async def smembers(self, key: str) -> Set[str]:
        return set(self._typed(key, set) or set())

    async def srem(self, key: str, *members: Any) -> int:
        current = self._typed(key, set)
        if not current:
            return 0
        removed = 0
        for member in members:
            if str(member) in current:
                current.discard(str(member))
                removed += 1
        if not current:
            del self._data[key]
        return removed
