"""
Unit tests for in-process keyed locking.
"""
import asyncio
import pytest

from apposaur.core.locks import KeyedLock


class TestKeyedLock:
    """Tests for KeyedLock"""

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        """Two holders of one key never overlap"""
        locks = KeyedLock()
        events = []

        async def worker(name):
            async with locks.hold("tx_1"):
                events.append(f"{name}:start")
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                events.append(f"{name}:end")

        await asyncio.gather(worker("a"), worker("b"))
        assert events in (
            ["a:start", "a:end", "b:start", "b:end"],
            ["b:start", "b:end", "a:start", "a:end"],
        )

    @pytest.mark.asyncio
    async def test_different_keys_interleave(self):
        """Different keys do not block each other"""
        locks = KeyedLock()
        inside = asyncio.Event()
        released = asyncio.Event()

        async def first():
            async with locks.hold("tx_1"):
                inside.set()
                await released.wait()

        task = asyncio.create_task(first())
        await inside.wait()
        async with locks.hold("tx_2"):
            assert locks.is_held("tx_1")
            assert locks.is_held("tx_2")
        released.set()
        await task

    @pytest.mark.asyncio
    async def test_locks_are_dropped_after_release(self):
        """No lock objects remain once nothing holds or waits"""
        locks = KeyedLock()
        async with locks.hold("tx_1"):
            assert len(locks) == 1
        assert len(locks) == 0
        assert not locks.is_held("tx_1")

    @pytest.mark.asyncio
    async def test_released_on_exception(self):
        """Exceptions inside the block release the lock and propagate"""
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            async with locks.hold("tx_1"):
                raise RuntimeError("boom")
        assert not locks.is_held("tx_1")
        assert len(locks) == 0
