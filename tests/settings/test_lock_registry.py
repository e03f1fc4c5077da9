"""Tests for the per-key lock registry."""

import asyncio

import pytest

from guildconf.errors import LockTimeoutError
from guildconf.settings.lock_registry import LockRegistry


class TestLockRegistry:
    """Mutual exclusion per key, independence across keys."""

    @pytest.mark.asyncio
    async def test_same_key_is_serialised(self):
        registry = LockRegistry()
        active = 0
        peak = 0

        async def worker():
            nonlocal active, peak
            async with registry.hold("a"):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(5)))
        assert peak == 1
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        registry = LockRegistry()
        await registry.acquire("a")
        await asyncio.wait_for(registry.acquire("b"), timeout=1)

        assert registry.locked("a")
        assert registry.locked("b")
        registry.release("a")
        registry.release("b")
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_waiters_are_admitted_in_order(self):
        registry = LockRegistry()
        order = []

        async def worker(n):
            async with registry.hold("a"):
                order.append(n)
                await asyncio.sleep(0)

        await registry.acquire("a")
        tasks = [asyncio.create_task(worker(n)) for n in range(3)]
        await asyncio.sleep(0)
        registry.release("a")
        await asyncio.gather(*tasks)
        assert order == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_lock_released_when_block_raises(self):
        registry = LockRegistry()
        with pytest.raises(RuntimeError):
            async with registry.hold("a"):
                raise RuntimeError("boom")

        assert not registry.locked("a")
        await asyncio.wait_for(registry.acquire("a"), timeout=1)
        registry.release("a")

    @pytest.mark.asyncio
    async def test_timeout_raises_and_cleans_up(self):
        registry = LockRegistry(default_timeout=0.05)
        await registry.acquire("a")

        with pytest.raises(LockTimeoutError) as exc_info:
            await registry.acquire("a")
        assert exc_info.value.key == "a"
        assert exc_info.value.timeout == pytest.approx(0.05)

        registry.release("a")
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_leak(self):
        registry = LockRegistry()
        await registry.acquire("a")
        waiter = asyncio.create_task(registry.acquire("a"))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        registry.release("a")
        assert len(registry) == 0

    def test_release_unheld_key_raises(self):
        with pytest.raises(RuntimeError):
            LockRegistry().release("a")
