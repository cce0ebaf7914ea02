"""Registry of research runs currently in progress."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Set


class InFlightRegistry:
    """Set of entity ids with a research run in progress.

    ``try_acquire`` is atomic: of several concurrent callers for the same id,
    exactly one gets ``True`` until that caller releases.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._active: Set[str] = set()

    async def try_acquire(self, key: str) -> bool:
        async with self._lock:
            if key in self._active:
                return False
            self._active.add(key)
            return True

    async def release(self, key: str) -> None:
        async with self._lock:
            self._active.discard(key)

    def is_active(self, key: str) -> bool:
        return key in self._active

    def __len__(self) -> int:
        return len(self._active)

    @asynccontextmanager
    async def claim(self, key: str) -> AsyncIterator[bool]:
        """Yield whether the claim succeeded; always releases an acquired claim."""
        acquired = await self.try_acquire(key)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release(key)
