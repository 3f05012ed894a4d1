"""Per-user mutual exclusion for portfolio mutations.

Serialises buy/sell for one user inside this process; different users never
share a lock. Cross-process safety comes from the version CAS in the
repositories.

Locks are held weakly: an entry lives only while some coroutine holds or
waits on it, so the registry does not grow with every user who ever traded.
"""

import asyncio
import weakref


class PortfolioLockRegistry:
    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
