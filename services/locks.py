"""
In-process mutual exclusion keyed by identity values
"""

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable


class KeyedLock:
    """
    Set of asyncio locks addressed by string keys

    Locks are created on demand and dropped once nobody holds or waits for
    them. Multiple keys are always acquired in sorted order so two callers
    sharing several keys cannot deadlock.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Counter = Counter()

    @asynccontextmanager
    async def acquire(self, keys: Iterable[str]) -> AsyncIterator[None]:
        ordered = sorted(set(keys))
        for key in ordered:
            self._users[key] += 1
            self._locks.setdefault(key, asyncio.Lock())

        acquired = []
        try:
            for key in ordered:
                await self._locks[key].acquire()
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
            for key in ordered:
                self._users[key] -= 1
                if self._users[key] <= 0:
                    del self._users[key]
                    del self._locks[key]

    def __len__(self):
        return len(self._locks)
