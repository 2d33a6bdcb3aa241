"""
In-process keyed locking.

The SDK runs on one event loop, but independent calls interleave at every
await. KeyedLock gives one asyncio.Lock per key so that a check-then-write
sequence for the same key (e.g. one transaction id) cannot interleave with
itself, while different keys proceed independently.

Locks are reference counted and dropped once no task holds or waits on them.
"""

import asyncio
import logging
from typing import Dict, Set

logger = logging.getLogger(__name__)


class _KeyedLockContext:
    """Async context manager returned by KeyedLock.hold()."""

    def __init__(self, owner: "KeyedLock", key: str):
        self.owner = owner
        self.key = key

    async def __aenter__(self):
        await self.owner.acquire(self.key)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.owner.release(self.key)
        return False  # Don't suppress exceptions


class KeyedLock:
    """
    Per-key mutual exclusion.

    Example:
        locks = KeyedLock()
        async with locks.hold(transaction_id):
            # Critical section for this transaction id only
            pass
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._refcounts: Dict[str, int] = {}
        self._held: Set[str] = set()

    def hold(self, key: str) -> _KeyedLockContext:
        return _KeyedLockContext(self, key)

    async def acquire(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._refcounts[key] = self._refcounts.get(key, 0) + 1
        if lock.locked():
            logger.debug(f"KEYED_LOCK_WAIT [key={key}]")
        try:
            await lock.acquire()
        except BaseException:
            self._decref(key)
            raise
        self._held.add(key)

    def release(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is None or key not in self._held:
            return
        self._held.discard(key)
        lock.release()
        self._decref(key)

    def is_held(self, key: str) -> bool:
        return key in self._held

    def __len__(self) -> int:
        return len(self._locks)

    def _decref(self, key: str) -> None:
        remaining = self._refcounts.get(key, 1) - 1
        if remaining <= 0:
            self._refcounts.pop(key, None)
            self._locks.pop(key, None)
        else:
            self._refcounts[key] = remaining
