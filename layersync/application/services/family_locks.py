"""
Per-family exclusive section.

Every top-level write into a model family runs under the lock of its
conceptual root id, so two edits to the same family cannot interleave their
read-decide-write steps. Inner services (replicator, synchronizer) never take
the lock themselves; asyncio.Lock is not reentrant.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)


class FamilyLockRegistry:
    def __init__(self):
        self._locks: dict[int, asyncio.Lock] = {}

    def lock_for(self, root_model_id: int) -> asyncio.Lock:
        lock = self._locks.get(root_model_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[root_model_id] = lock
        return lock

    def is_locked(self, root_model_id: int) -> bool:
        lock = self._locks.get(root_model_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, root_model_id: int) -> AsyncIterator[None]:
        lock = self.lock_for(root_model_id)
        if lock.locked():
            logger.debug(f"[FamilyLock] Waiting for family {root_model_id}")
        async with lock:
            yield
