"""
Persistent key-value store layer.

The SDK keeps three records on the device: the referral link, the registered
user and the processed transaction ids. Anything implementing KVStore can hold
them; two implementations ship:

- MemoryKVStore: process-local dict (tests, ephemeral sessions)
- RedisKVStore: redis.asyncio client, durable across restarts

Multi-key writes are atomic in both implementations (MSET / DEL on Redis),
so records written together are never observed half-applied.
All store failures surface as StorageError.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, runtime_checkable

import redis.asyncio as redis

from apposaur import config
from apposaur.core.exceptions import StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class KVStore(Protocol):
    """Async string-valued key-value store."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...

    async def multi_get(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        ...

    async def multi_set(self, items: Mapping[str, str]) -> None:
        ...

    async def multi_remove(self, keys: Iterable[str]) -> None:
        ...


class MemoryKVStore:
    """In-process store backed by a dict."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def multi_get(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        return {key: self._data.get(key) for key in keys}

    async def multi_set(self, items: Mapping[str, str]) -> None:
        self._data.update(items)

    async def multi_remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        """Copy of the current contents."""
        return dict(self._data)


class RedisKVStore:
    """
    Redis-backed store.

    Keys are namespaced with `namespace:` so several apps (or test runs) can
    share one Redis database.
    """

    def __init__(self, client: redis.Redis, namespace: str = "apposaur"):
        self.client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: Optional[str] = None, namespace: str = "apposaur") -> "RedisKVStore":
        """
        Create a store from a Redis URL (defaults to APPOSAUR_REDIS_URL).

        Raises:
            StorageError: If no URL is configured or the client cannot be created
        """
        url = url or config.REDIS_URL
        if not url:
            raise StorageError("Redis URL is not configured (APPOSAUR_REDIS_URL)")
        try:
            client = redis.from_url(
                url,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        except Exception as e:
            logger.error(f"REDIS_CLIENT_CREATE_FAILED [error={type(e).__name__}]")
            raise StorageError(f"Failed to create Redis client: {e}") from e
        logger.info("Redis KV store created")
        return cls(client, namespace=namespace)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(self._key(key))
        except redis.RedisError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await self.client.set(self._key(key), value)
        except redis.RedisError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            await self.client.delete(self._key(key))
        except redis.RedisError as e:
            raise StorageError(f"Failed to remove {key}: {e}") from e

    async def multi_get(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        keys = list(keys)
        if not keys:
            return {}
        try:
            values: List[Optional[str]] = await self.client.mget([self._key(k) for k in keys])
        except redis.RedisError as e:
            raise StorageError(f"Failed to read {keys}: {e}") from e
        return dict(zip(keys, values))

    async def multi_set(self, items: Mapping[str, str]) -> None:
        if not items:
            return
        try:
            # MSET is atomic: all keys are set or none
            await self.client.mset({self._key(k): v for k, v in items.items()})
        except redis.RedisError as e:
            raise StorageError(f"Failed to write {list(items)}: {e}") from e

    async def multi_remove(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        try:
            await self.client.delete(*[self._key(k) for k in keys])
        except redis.RedisError as e:
            raise StorageError(f"Failed to remove {keys}: {e}") from e

    async def aclose(self) -> None:
        """Close the Redis connection pool."""
        try:
            await self.client.aclose()
            logger.info("Redis KV store closed")
        except Exception as e:
            logger.error(f"Error closing Redis client: {e}")
