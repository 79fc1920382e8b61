"""
Unit tests for single-flight token refresh.

Tests cover:
- Exactly one refresh for any number of interleaved acquire calls
- Identical results for owner and waiters
- Exceptions from refresh contained as None
- Return to idle after settling, and fresh refreshes afterwards
- Cancellation of the owner or of a waiter
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from nailapp_client.services.refresh_coordinator import (
    RefreshCoordinator,
    RefreshState,
)
from nailapp_client.services.token_provider import RefreshedTokens, TokenProvider


def coordinator_for(refresh) -> RefreshCoordinator:
    provider = TokenProvider(get_access_token=lambda: None, refresh=refresh)
    return RefreshCoordinator(lambda: provider, name="test")


class TestRefreshCoordinator:
    """Test suite for the refresh coordinator state machine."""

    async def test_no_refresh_capability(self):
        """Without refresh, acquire returns None and never leaves IDLE."""
        coordinator = coordinator_for(None)

        assert await coordinator.acquire_token() is None
        assert coordinator.state is RefreshState.IDLE
        assert coordinator.stats["refreshes_started"] == 0

    async def test_single_caller(self):
        """A lone caller gets the refreshed access token."""
        refresh = AsyncMock(return_value=RefreshedTokens("fresh", "r2"))
        coordinator = coordinator_for(refresh)

        assert await coordinator.acquire_token() == "fresh"
        refresh.assert_awaited_once()
        assert coordinator.state is RefreshState.IDLE
        assert coordinator.stats["refreshes_succeeded"] == 1

    async def test_interleaved_callers_share_one_refresh(self):
        """Many acquire calls issued without an await between them share one refresh."""
        release = asyncio.Event()

        async def slow_refresh():
            await release.wait()
            return RefreshedTokens("shared-token")

        refresh = AsyncMock(side_effect=slow_refresh)
        coordinator = coordinator_for(refresh)

        tasks = [asyncio.create_task(coordinator.acquire_token()) for _ in range(25)]
        await asyncio.sleep(0)

        assert coordinator.is_refreshing
        assert coordinator.waiter_count == 24

        release.set()
        results = await asyncio.gather(*tasks)

        assert results == ["shared-token"] * 25
        refresh.assert_awaited_once()
        assert coordinator.state is RefreshState.IDLE
        assert coordinator.waiter_count == 0
        assert coordinator.stats["waiters_released"] == 24

    async def test_refresh_exception_resolves_everyone_with_none(self):
        """A failing refresh never propagates; owner and waiters all get None."""
        release = asyncio.Event()

        async def failing_refresh():
            await release.wait()
            raise RuntimeError("invalid_grant")

        coordinator = coordinator_for(AsyncMock(side_effect=failing_refresh))

        tasks = [asyncio.create_task(coordinator.acquire_token()) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert results == [None] * 5
        assert coordinator.state is RefreshState.IDLE
        assert coordinator.stats["refreshes_failed"] == 1

    async def test_refresh_returning_none(self):
        """A refresh that yields nothing resolves to None."""
        coordinator = coordinator_for(AsyncMock(return_value=None))

        assert await coordinator.acquire_token() is None
        assert coordinator.stats["refreshes_failed"] == 1

    async def test_new_refresh_after_settle(self):
        """Once idle again, the next 401 starts a new refresh."""
        tokens = iter(["first", "second"])
        refresh = AsyncMock(side_effect=lambda: RefreshedTokens(next(tokens)))
        coordinator = coordinator_for(refresh)

        assert await coordinator.acquire_token() == "first"
        assert await coordinator.acquire_token() == "second"
        assert refresh.await_count == 2

    async def test_owner_cancellation_does_not_strand_waiters(self):
        """Cancelling the caller that started the refresh leaves the refresh running."""
        release = asyncio.Event()

        async def slow_refresh():
            await release.wait()
            return RefreshedTokens("survivor")

        refresh = AsyncMock(side_effect=slow_refresh)
        coordinator = coordinator_for(refresh)

        owner = asyncio.create_task(coordinator.acquire_token())
        await asyncio.sleep(0)
        waiter = asyncio.create_task(coordinator.acquire_token())
        await asyncio.sleep(0)

        owner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await owner

        release.set()
        assert await waiter == "survivor"
        refresh.assert_awaited_once()
        assert coordinator.state is RefreshState.IDLE

    async def test_cancelled_waiter_is_skipped(self):
        """A cancelled waiter does not prevent the others from being released."""
        release = asyncio.Event()

        async def slow_refresh():
            await release.wait()
            return RefreshedTokens("token")

        coordinator = coordinator_for(AsyncMock(side_effect=slow_refresh))

        owner = asyncio.create_task(coordinator.acquire_token())
        await asyncio.sleep(0)
        quitter = asyncio.create_task(coordinator.acquire_token())
        stayer = asyncio.create_task(coordinator.acquire_token())
        await asyncio.sleep(0)

        quitter.cancel()
        release.set()

        assert await owner == "token"
        assert await stayer == "token"
        assert quitter.cancelled()
        assert coordinator.stats["waiters_released"] == 1

    async def test_provider_is_looked_up_per_refresh(self):
        """The provider getter is called at refresh time, not at construction."""
        providers = [
            TokenProvider(
                get_access_token=lambda: None,
                refresh=AsyncMock(return_value=RefreshedTokens("from-first")),
            ),
            TokenProvider(
                get_access_token=lambda: None,
                refresh=AsyncMock(return_value=RefreshedTokens("from-second")),
            ),
        ]
        current = {"provider": providers[0]}
        coordinator = RefreshCoordinator(lambda: current["provider"])

        assert await coordinator.acquire_token() == "from-first"
        current["provider"] = providers[1]
        assert await coordinator.acquire_token() == "from-second"
