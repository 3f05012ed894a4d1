"""Tests for PortfolioLockRegistry."""

import asyncio
import gc

from src.bk_portfolio.application.locks import PortfolioLockRegistry


class TestPortfolioLockRegistry:
    def test_same_user_shares_a_lock(self) -> None:
        registry = PortfolioLockRegistry()
        lock = registry.lock_for("user-1")
        assert registry.lock_for("user-1") is lock

    def test_users_get_distinct_locks(self) -> None:
        registry = PortfolioLockRegistry()
        lock_a = registry.lock_for("user-1")
        lock_b = registry.lock_for("user-2")
        assert lock_a is not lock_b

    async def test_idle_lock_is_released(self) -> None:
        registry = PortfolioLockRegistry()

        async with registry.lock_for("user-1"):
            assert len(registry) == 1

        gc.collect()
        assert len(registry) == 0

    async def test_lock_survives_while_waited_on(self) -> None:
        registry = PortfolioLockRegistry()
        order: list[str] = []

        async def hold(name: str) -> None:
            async with registry.lock_for("user-1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(hold("first"), hold("second"))

        assert order == ["first-in", "first-out", "second-in", "second-out"]
        gc.collect()
        assert len(registry) == 0
