"""
Per-key asyncio lock registry.

Gap regeneration for one (provider_id, performance_year) is a delete-then-insert
rewrite; two concurrent rewrites of the same key could interleave and leave an
empty or duplicated gap set. KeyedAsyncLock serializes coroutines that share a
key while letting different keys proceed in parallel. Entries are dropped once no
coroutine holds or waits on them.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, Tuple


class KeyedAsyncLock:
    """Registry of asyncio.Lock objects created on demand per key."""

    def __init__(self) -> None:
        # key -> (lock, number of holders + waiters)
        self._locks: Dict[Hashable, Tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock, users = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    def is_locked(self, key: Hashable) -> bool:
        entry = self._locks.get(key)
        return entry is not None and entry[0].locked()

    def __len__(self) -> int:
        return len(self._locks)
