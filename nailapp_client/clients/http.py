"""
Application-facing HTTP façade.

Screens and features call http.get(...) for the booking API and
http.get_portal(...) for the portal API. Both go through the same ApiClient
implementation, configured with a different base URL.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Union

from nailapp_client.clients.api_client import (
    ApiClient,
    CallOptions,
    HttpMethod,
    create_api_client,
    create_portal_client,
)
from nailapp_client.config import Settings
from nailapp_client.utils.http_client import MultipartForm


class HttpFacade:
    """Verb helpers over the primary and portal clients."""

    def __init__(self, primary: ApiClient, portal: ApiClient):
        self.primary = primary
        self.portal = portal

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any):
        """Build both clients from settings, sharing any ApiClient overrides."""
        return cls(
            create_api_client(settings, **kwargs),
            create_portal_client(settings, **kwargs),
        )

    async def aclose(self) -> None:
        await self.primary.aclose()
        await self.portal.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    # Primary backend

    async def get(self, url: str, options: Optional[CallOptions] = None) -> Any:
        return await self.primary.get(url, options)

    async def post(
        self, url: str, data: Any = None, options: Optional[CallOptions] = None
    ) -> Any:
        return await self.primary.post(url, data, options)

    async def put(
        self, url: str, data: Any = None, options: Optional[CallOptions] = None
    ) -> Any:
        return await self.primary.put(url, data, options)

    async def patch(
        self, url: str, data: Any = None, options: Optional[CallOptions] = None
    ) -> Any:
        return await self.primary.patch(url, data, options)

    async def delete(self, url: str, options: Optional[CallOptions] = None) -> Any:
        return await self.primary.delete(url, options)

    async def upload(
        self,
        url: str,
        form: Union[MultipartForm, Dict[str, Any]],
        options: Optional[CallOptions] = None,
    ) -> Any:
        return await self.primary.upload(url, form, options)

    # Portal backend

    async def get_portal(self, url: str, options: Optional[CallOptions] = None) -> Any:
        return await self.portal.get(url, options)

    async def post_portal(
        self, url: str, data: Any = None, options: Optional[CallOptions] = None
    ) -> Any:
        return await self.portal.post(url, data, options)

    async def put_portal(
        self, url: str, data: Any = None, options: Optional[CallOptions] = None
    ) -> Any:
        return await self.portal.put(url, data, options)

    async def patch_portal(
        self, url: str, data: Any = None, options: Optional[CallOptions] = None
    ) -> Any:
        return await self.portal.patch(url, data, options)

    async def delete_portal(
        self, url: str, options: Optional[CallOptions] = None
    ) -> Any:
        return await self.portal.delete(url, options)


def query_fn(
    client: ApiClient, url: str, params: Optional[Dict[str, Any]] = None
) -> Callable[[], Awaitable[Any]]:
    """Build a zero-argument fetcher for a GET endpoint."""

    async def fetch() -> Any:
        return await client.get(url, CallOptions(params=params))

    return fetch


def mutation_fn(
    client: ApiClient, url: str, method: Union[HttpMethod, str] = HttpMethod.POST
) -> Callable[[Any], Awaitable[Any]]:
    """Build a one-argument sender posting its argument as the request body."""

    async def mutate(body: Any) -> Any:
        return await client.call(method, url, CallOptions(data=body))

    return mutate
