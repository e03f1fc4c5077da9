"""
Per-key mutual exclusion for asyncio tasks.

Each key owns an :class:`asyncio.Lock` for as long as at least one task holds
or waits for it; the entry is dropped once the last user leaves, so the
table only ever contains keys with activity. Different keys never block
each other.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from guildconf.errors import LockTimeoutError
from guildconf.util.logger import get_logger

logger = get_logger("lock_registry")


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class LockRegistry:
    """
    Table of per-key locks.

    Usage::

        async with registry.hold(guild_id):
            ...  # only one task per guild_id runs this block at a time
    """

    def __init__(self, default_timeout: Optional[float] = None) -> None:
        """
        Args:
            default_timeout: Maximum seconds to wait for a key, or None to
                wait indefinitely.
        """
        self._entries: Dict[str, _LockEntry] = {}
        self._default_timeout = default_timeout

    def _checkout(self, key: str) -> _LockEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _LockEntry()
        entry.users += 1
        return entry

    def _checkin(self, key: str, entry: _LockEntry) -> None:
        entry.users -= 1
        if entry.users == 0 and self._entries.get(key) is entry:
            del self._entries[key]

    async def acquire(self, key: str, timeout: Optional[float] = None) -> None:
        """
        Wait until no other task holds ``key``, then hold it.

        Args:
            key: The resource to lock.
            timeout: Overrides the registry's default wait bound.

        Raises:
            LockTimeoutError: If the bound expires before the key is free.
        """
        timeout = self._default_timeout if timeout is None else timeout
        entry = self._checkout(key)
        if entry.lock.locked():
            logger.debug("[LOCK REGISTRY] Waiting for lock on %s", key)
        try:
            if timeout is None:
                await entry.lock.acquire()
            else:
                await asyncio.wait_for(entry.lock.acquire(), timeout)
        except asyncio.TimeoutError:
            self._checkin(key, entry)
            logger.warning("[LOCK REGISTRY] Timed out after %.2fs waiting for %s", timeout, key)
            raise LockTimeoutError(key, timeout) from None
        except BaseException:
            self._checkin(key, entry)
            raise

    def release(self, key: str) -> None:
        """
        Release ``key`` and wake one waiter.

        Raises:
            RuntimeError: If ``key`` is not currently held.
        """
        entry = self._entries.get(key)
        if entry is None or not entry.lock.locked():
            raise RuntimeError(f"Lock for {key} is not held")
        entry.lock.release()
        self._checkin(key, entry)

    def locked(self, key: str) -> bool:
        """Return True while some task holds ``key``."""
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, key: str, timeout: Optional[float] = None) -> AsyncIterator[None]:
        """Hold ``key`` for the duration of the block, releasing it on any exit."""
        await self.acquire(key, timeout)
        try:
            yield
        finally:
            self.release(key)
