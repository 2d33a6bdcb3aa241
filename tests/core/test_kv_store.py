"""
Unit tests for KV store implementations.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import redis.asyncio as redis

from apposaur.core.exceptions import StorageError
from apposaur.core.kv_store import KVStore, MemoryKVStore, RedisKVStore


class TestMemoryKVStore:
    """Tests for the dict-backed store"""

    @pytest.mark.asyncio
    async def test_set_get_remove(self):
        store = MemoryKVStore()
        assert await store.get("k") is None
        await store.set("k", "v")
        assert await store.get("k") == "v"
        await store.remove("k")
        await store.remove("k")  # idempotent
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_multi_operations(self):
        store = MemoryKVStore({"a": "1"})
        await store.multi_set({"b": "2", "c": "3"})
        assert await store.multi_get(["a", "b", "missing"]) == {"a": "1", "b": "2", "missing": None}
        await store.multi_remove(["a", "b"])
        assert store.snapshot() == {"c": "3"}

    def test_satisfies_protocol(self):
        assert isinstance(MemoryKVStore(), KVStore)


class TestRedisKVStore:
    """Tests for the Redis-backed store with a mocked client"""

    def _client(self):
        client = MagicMock()
        client.get = AsyncMock(return_value="v")
        client.set = AsyncMock()
        client.delete = AsyncMock()
        client.mget = AsyncMock(return_value=["1", None])
        client.mset = AsyncMock()
        client.aclose = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self):
        client = self._client()
        store = RedisKVStore(client, namespace="app1")
        assert await store.get("k") == "v"
        await store.set("k", "x")
        await store.remove("k")
        client.get.assert_awaited_once_with("app1:k")
        client.set.assert_awaited_once_with("app1:k", "x")
        client.delete.assert_awaited_once_with("app1:k")

    @pytest.mark.asyncio
    async def test_multi_set_uses_single_mset(self):
        """Multi-key writes go through one atomic MSET"""
        client = self._client()
        store = RedisKVStore(client)
        await store.multi_set({"a": "1", "b": "2"})
        client.mset.assert_awaited_once_with({"apposaur:a": "1", "apposaur:b": "2"})

    @pytest.mark.asyncio
    async def test_multi_get_and_remove(self):
        client = self._client()
        store = RedisKVStore(client)
        assert await store.multi_get(["a", "b"]) == {"a": "1", "b": None}
        await store.multi_remove(["a", "b"])
        client.delete.assert_awaited_once_with("apposaur:a", "apposaur:b")

    @pytest.mark.asyncio
    async def test_empty_multi_operations_skip_redis(self):
        client = self._client()
        store = RedisKVStore(client)
        assert await store.multi_get([]) == {}
        await store.multi_set({})
        await store.multi_remove([])
        client.mget.assert_not_awaited()
        client.mset.assert_not_awaited()
        client.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_errors_become_storage_errors(self):
        client = self._client()
        client.get = AsyncMock(side_effect=redis.ConnectionError("down"))
        client.mset = AsyncMock(side_effect=redis.ConnectionError("down"))
        store = RedisKVStore(client)
        with pytest.raises(StorageError):
            await store.get("k")
        with pytest.raises(StorageError):
            await store.multi_set({"a": "1"})

    def test_from_url_requires_url(self):
        with patch("apposaur.core.kv_store.config") as mock_config:
            mock_config.REDIS_URL = ""
            with pytest.raises(StorageError):
                RedisKVStore.from_url()

    def test_from_url_builds_client(self):
        with patch("apposaur.core.kv_store.redis.from_url") as mock_from_url:
            mock_from_url.return_value = MagicMock()
            store = RedisKVStore.from_url("redis://localhost:6379/0", namespace="ns")
        assert store.namespace == "ns"
        args, kwargs = mock_from_url.call_args
        assert args[0] == "redis://localhost:6379/0"
        assert kwargs["decode_responses"] is True
