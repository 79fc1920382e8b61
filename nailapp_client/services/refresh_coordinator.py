"""
Single-flight access token refresh.

When many requests hit 401 at once (a refresh storm), only one of them runs
the refresh exchange. The others register as waiters and are released with
the same result once it settles.

State machine:
- IDLE: the next acquire_token() call becomes the owner and starts the refresh
- REFRESHING: callers register as waiters on the in-flight refresh

The refresh runs in its own task, so cancelling the owner does not cancel the
refresh for the waiters. Releasing the waiters and returning to IDLE happen in
the same synchronous step, so no caller can see a settled refresh while the
state still says REFRESHING.
"""

import asyncio
from enum import Enum
from typing import Callable, List, Optional

from nailapp_client.services.token_provider import TokenProvider, get_token_provider
from nailapp_client.utils.logging import get_logger

logger = get_logger(__name__)


class RefreshState(str, Enum):
    """Refresh coordinator states."""

    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshCoordinator:
    """
    Deduplicates concurrent refresh attempts for one backend.

    Each dispatcher owns its own coordinator. Two backends refreshing at the
    same time are not coalesced with each other.
    """

    def __init__(
        self,
        token_provider: Optional[Callable[[], TokenProvider]] = None,
        name: str = "default",
    ):
        """
        Args:
            token_provider: Callable returning the active provider, looked up
                on every refresh so the provider stays replaceable
            name: Backend name used in logs
        """
        self._token_provider = token_provider or get_token_provider
        self.name = name

        self.state = RefreshState.IDLE
        self._refresh_task: Optional[asyncio.Task] = None
        self._waiters: List[asyncio.Future] = []

        # Statistics for monitoring
        self.stats = {
            "refreshes_started": 0,
            "refreshes_succeeded": 0,
            "refreshes_failed": 0,
            "waiters_released": 0,
        }

    @property
    def is_refreshing(self) -> bool:
        return self.state is RefreshState.REFRESHING

    @property
    def waiter_count(self) -> int:
        return len(self._waiters)

    async def acquire_token(self) -> Optional[str]:
        """
        Get a fresh access token, reusing an in-flight refresh if there is one.

        Returns:
            The new access token, or None if refresh is disabled or failed
        """
        if self.state is RefreshState.REFRESHING:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            logger.debug(
                "Waiting for in-flight token refresh",
                backend=self.name,
                waiters=len(self._waiters),
            )
            return await waiter

        provider = self._token_provider()
        if not provider.can_refresh:
            return None

        self.state = RefreshState.REFRESHING
        self.stats["refreshes_started"] += 1
        self._refresh_task = asyncio.create_task(self._run_refresh(provider))
        return await asyncio.shield(self._refresh_task)

    async def _run_refresh(self, provider: TokenProvider) -> Optional[str]:
        token: Optional[str] = None
        try:
            logger.info("Refreshing access token", backend=self.name)
            result = await provider.refresh()
            token = result.access_token if result else None
        except Exception as e:
            logger.warning(
                "Token refresh failed",
                backend=self.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            token = None
        finally:
            if token:
                self.stats["refreshes_succeeded"] += 1
            else:
                self.stats["refreshes_failed"] += 1
            self._settle(token)

        return token

    def _settle(self, token: Optional[str]) -> None:
        """Return to IDLE and release every waiter with the same value."""
        waiters, self._waiters = self._waiters, []
        self.state = RefreshState.IDLE
        self._refresh_task = None

        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(token)
                self.stats["waiters_released"] += 1

        logger.info(
            "Token refresh settled",
            backend=self.name,
            refreshed=token is not None,
            waiters_released=len(waiters),
        )
