"""
Persisted key-value stores backing the relationship cache
"""
import redis.asyncio as redis
from typing import Optional, Dict, AsyncIterator
import fnmatch
import logging

from .config import settings
from .domain.repositories import IKeyValueStore

logger = logging.getLogger(__name__)


class StorageQuotaExceededError(Exception):
    """Write rejected because the store is full"""


class RedisKeyValueStore(IKeyValueStore):
    """Redis-backed store, shared by every process pointing at the same DB"""

    def __init__(self):
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        """Connect to Redis"""
        if not settings.REDIS_ENABLED:
            logger.info("Redis key-value store is disabled")
            return

        try:
            self.redis = await redis.from_url(
                f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}",
                password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
                encoding="utf-8",
                decode_responses=True,
            )
            # Test connection
            await self.redis.ping()
            logger.info("Connected to Redis successfully")
        except Exception as e:
            logger.warning(f"Failed to connect to Redis: {e}. Continuing without persisted cache.")
            self.redis = None

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.close()
            logger.info("Disconnected from Redis")

    async def get_item(self, key: str) -> Optional[str]:
        if not self.redis:
            return None
        return await self.redis.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if not self.redis:
            return
        await self.redis.set(key, value)

    async def remove_item(self, key: str) -> None:
        if not self.redis:
            return
        await self.redis.delete(key)

    async def keys(self, pattern: str = "*") -> AsyncIterator[str]:
        if not self.redis:
            return
        async for key in self.redis.scan_iter(match=pattern):
            yield key


class InMemoryKeyValueStore(IKeyValueStore):
    """Process-local store with an optional byte capacity"""

    def __init__(self, capacity: Optional[int] = None):
        self.data: Dict[str, str] = {}
        self.capacity = capacity

    def _size(self) -> int:
        return sum(len(k) + len(v) for k, v in self.data.items())

    async def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if self.capacity is not None:
            replaced = len(key) + len(self.data[key]) if key in self.data else 0
            if self._size() - replaced + len(key) + len(value) > self.capacity:
                raise StorageQuotaExceededError(f"Storing {key} exceeds {self.capacity} bytes")
        self.data[key] = value

    async def remove_item(self, key: str) -> None:
        self.data.pop(key, None)

    async def keys(self, pattern: str = "*") -> AsyncIterator[str]:
        # Snapshot so callers can delete while iterating
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, pattern):
                yield key
