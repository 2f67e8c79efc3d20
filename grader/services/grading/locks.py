"""Per-key asyncio locks for single-flight evaluation within one process."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class KeyedLocks:
    """
    Lazily created lock per key.

    A key's lock exists only while some task holds it or waits for it, so the
    table does not grow with the number of distinct submissions.

    Usage:
        locks = KeyedLocks()
        async with locks.hold(cache_key):
            ...  # at most one task per key in here
    """

    def __init__(self):
        self._slots: Dict[str, _Slot] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _Slot()
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0:
                self._slots.pop(key, None)

    def __len__(self) -> int:
        return len(self._slots)


__all__ = ["KeyedLocks"]
