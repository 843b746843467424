from asyncio import Lock
from contextlib import asynccontextmanager
from typing import Hashable


class EntityLockManager:
    def __init__(self):
        self.locks = {}  # one Lock per session / round id
        self.holders = {}  # how many coroutines currently use each lock
        self.lock = Lock()  # protects locks and holders

    async def _acquire_entry(self, key: Hashable) -> Lock:
        async with self.lock:
            if key not in self.locks:
                self.locks[key] = Lock()
                self.holders[key] = 0
            self.holders[key] += 1
            return self.locks[key]

    async def _release_entry(self, key: Hashable):
        async with self.lock:
            self.holders[key] -= 1
            if self.holders[key] == 0:
                del self.locks[key]
                del self.holders[key]

    @asynccontextmanager
    async def hold(self, key: Hashable):
        """Serialize work on a single entity.

        Args:
            key (Hashable): ID to identify the session or round
        """
        entity_lock = await self._acquire_entry(key)
        try:
            async with entity_lock:
                yield
        finally:
            await self._release_entry(key)
