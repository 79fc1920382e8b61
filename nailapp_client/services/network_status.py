"""Connectivity checks performed before each request."""

from typing import Optional, Protocol

import httpx

from nailapp_client.utils.logging import get_logger

logger = get_logger(__name__)


class NetworkStatus(Protocol):
    async def is_connected(self) -> bool:
        ...


class AlwaysConnected:
    """Default checker: leave connectivity failures to the transport."""

    async def is_connected(self) -> bool:
        return True


class HttpConnectivityChecker:
    """
    Probe a URL with a short HEAD request.

    Any HTTP response, whatever its status, means the network is up. A
    transport failure means it is not.
    """

    def __init__(
        self,
        probe_url: str,
        timeout_seconds: float = 3.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.probe_url = probe_url
        self.timeout_seconds = timeout_seconds
        self.client = client or httpx.AsyncClient(follow_redirects=False)

    async def is_connected(self) -> bool:
        try:
            await self.client.head(self.probe_url, timeout=self.timeout_seconds)
        except httpx.TransportError as e:
            logger.info(
                "Connectivity probe failed",
                probe_url=self.probe_url,
                error_type=type(e).__name__,
            )
            return False
        return True

    async def aclose(self) -> None:
        await self.client.aclose()
