"""
Authenticated API client with connectivity checks, retries and token refresh.

One ApiClient serves one backend base URL. The app uses two of them, the
primary booking API and the portal API, built by the factory functions at the
bottom of this module.

A call goes through these steps:
- Connectivity pre-check, failing fast with NETWORK_ERROR when offline
- Bearer token from the active TokenProvider attached to every request
- 401 handled by a single-flight refresh, then one replay with the new token
- Transient failures (timeout/network/connection) retried with linear backoff
- Any other failure normalized into an ApiError
"""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_incrementing,
)

from nailapp_client.config import Settings, get_settings
from nailapp_client.services.network_status import (
    AlwaysConnected,
    HttpConnectivityChecker,
    NetworkStatus,
)
from nailapp_client.services.refresh_coordinator import RefreshCoordinator
from nailapp_client.services.token_provider import TokenProvider, get_token_provider
from nailapp_client.utils.errors import ApiError, to_api_error
from nailapp_client.utils.http_client import (
    MULTIPART_CONTENT_TYPE,
    TRANSIENT_PROBLEMS,
    ApiProblem,
    ApiRequest,
    ApiResponse,
    HttpxTransport,
    MultipartForm,
    Transport,
)
from nailapp_client.utils.logging import get_logger, redact_headers

logger = get_logger(__name__)


class HttpMethod(str, Enum):
    """HTTP verbs supported by the client."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class CallOptions(BaseModel):
    """
    Per-call options.

    Attributes:
        params: Query string parameters
        data: Request body (JSON-serializable value, text/bytes or MultipartForm)
        headers: Extra headers merged over the defaults
        timeout: Timeout in milliseconds (None = configured default)
        retry: Additional attempts allowed for transient failures
        cancel_token: Event that cancels the request when set
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    params: Optional[Dict[str, Any]] = None
    data: Any = None
    headers: Dict[str, str] = Field(default_factory=dict)
    timeout: Optional[int] = Field(default=None, gt=0)
    retry: int = Field(default=0, ge=0)
    cancel_token: Optional[asyncio.Event] = None


def _is_success(response: ApiResponse) -> bool:
    return response.ok and response.status is not None


def _is_transient_failure(response: ApiResponse) -> bool:
    return not _is_success(response) and response.problem in TRANSIENT_PROBLEMS


def _last_result(retry_state: RetryCallState) -> ApiResponse:
    """Hand back the final response once the retry budget is spent."""
    return retry_state.outcome.result()


class ApiClient:
    """
    Request dispatcher for one backend.

    Each instance owns its transport and its refresh coordinator. The token
    provider is shared process-wide unless one is passed explicitly.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        transport: Optional[Transport] = None,
        token_provider: Optional[TokenProvider] = None,
        network_status: Optional[NetworkStatus] = None,
        settings: Optional[Settings] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the API client.

        Args:
            name: Backend name for logging ("api", "portal")
            base_url: Base URL of the backend
            transport: Transport to send requests with (httpx by default)
            token_provider: Explicit provider; None follows set_token_provider()
            network_status: Connectivity checker; None assumes connected
            settings: Client settings
            sleep: Backoff sleep, injectable for tests
        """
        self.name = name
        self.base_url = base_url
        self.settings = settings or get_settings()
        self.transport = transport or HttpxTransport(base_url)
        self.network_status = network_status or AlwaysConnected()
        self._token_provider = token_provider
        self._sleep = sleep or asyncio.sleep

        self.refresh_coordinator = RefreshCoordinator(
            lambda: self.token_provider, name=name
        )

        logger.info(
            "API client initialized",
            backend=name,
            base_url=base_url,
            default_timeout_ms=self.settings.api_timeout_ms,
        )

    @property
    def token_provider(self) -> TokenProvider:
        return self._token_provider or get_token_provider()

    async def aclose(self) -> None:
        """Close the transport and clean up resources."""
        await self.transport.aclose()
        if isinstance(self.network_status, HttpConnectivityChecker):
            await self.network_status.aclose()
        logger.debug("API client closed", backend=self.name)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    # ===== Dispatch =====

    async def call(
        self,
        method: Union[HttpMethod, str],
        url: str,
        options: Optional[CallOptions] = None,
    ) -> Any:
        """
        Send a request and return the response body as-is.

        Args:
            method: HTTP verb
            url: Path relative to the base URL (or absolute URL)
            options: Per-call options

        Returns:
            The decoded response body

        Raises:
            ApiError: When the call ultimately fails
        """
        method = HttpMethod(method.upper()) if isinstance(method, str) else method
        options = options or CallOptions()

        if not await self._is_connected():
            logger.warning(
                "No network connection, request not sent",
                backend=self.name,
                method=method.value,
                url=url,
            )
            raise ApiError(
                ApiProblem.NETWORK_ERROR,
                self.settings.network_error_message,
                details={"is_network_error": True},
            )

        timeout_ms = options.timeout or self.settings.api_timeout_ms
        response = await self._send_with_retry(method, url, options, timeout_ms / 1000)

        if _is_success(response):
            return response.data

        error = to_api_error(response)
        logger.warning(
            "API call failed",
            backend=self.name,
            method=method.value,
            url=url,
            kind=error.kind.value,
            status=error.status,
            error_message=error.message,
        )
        raise error

    async def _is_connected(self) -> bool:
        try:
            return await self.network_status.is_connected()
        except Exception as e:
            logger.warning(
                "Connectivity check failed, assuming connected",
                backend=self.name,
                error=str(e),
            )
            return True

    async def _send_with_retry(
        self, method: HttpMethod, url: str, options: CallOptions, timeout: float
    ) -> ApiResponse:
        """Run attempts until success, a non-transient failure or budget exhaustion."""
        step = self.settings.retry_backoff_ms / 1000

        retrying = AsyncRetrying(
            stop=stop_after_attempt(options.retry + 1),
            wait=wait_incrementing(start=step, increment=step),
            retry=retry_if_result(_is_transient_failure),
            before_sleep=self._log_retry(method, url),
            retry_error_callback=_last_result,
            sleep=self._sleep,
        )
        return await retrying(self._attempt, method, url, options, timeout)

    async def _attempt(
        self, method: HttpMethod, url: str, options: CallOptions, timeout: float
    ) -> ApiResponse:
        """
        One original attempt, plus at most one replay after a 401.

        The replay is one-shot: whatever happens to it, the original response
        is what the retry policy and the error normalizer see.
        """
        response = await self._send(method, url, options, timeout)
        if _is_success(response):
            return response

        provider = self.token_provider
        if response.status == 401 and provider.can_refresh:
            token = await self.refresh_coordinator.acquire_token()
            if token:
                replay = await self._send(method, url, options, timeout, token=token)
                if _is_success(replay):
                    return replay
            provider.notify_auth_error()

        return response

    async def _send(
        self,
        method: HttpMethod,
        url: str,
        options: CallOptions,
        timeout: float,
        token: Optional[str] = None,
    ) -> ApiResponse:
        headers = dict(options.headers)
        token = token or await self.token_provider.access_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        request = ApiRequest(
            method=method.value,
            url=url,
            params=options.params,
            data=options.data,
            headers=headers,
            timeout=timeout,
            cancel_token=options.cancel_token,
        )

        self._log_request(request)
        started = time.monotonic()
        response = await self.transport.send(request)
        self._log_response(request, response, started)
        return response

    def _log_request(self, request: ApiRequest) -> None:
        try:
            logger.debug(
                "HTTP request",
                backend=self.name,
                method=request.method,
                url=request.url,
                base_url=self.base_url,
                headers=redact_headers(request.headers),
                params=request.params,
            )
        except Exception:
            pass  # Exchange logs are best effort, continue with the call

    def _log_response(
        self, request: ApiRequest, response: ApiResponse, started: float
    ) -> None:
        try:
            logger.debug(
                "HTTP response",
                backend=self.name,
                method=request.method,
                url=request.url,
                base_url=self.base_url,
                status_code=response.status,
                ok=response.ok,
                problem=getattr(response.problem, "value", response.problem),
                headers=redact_headers(response.headers),
                duration_ms=round((time.monotonic() - started) * 1000, 2),
            )
        except Exception:
            pass  # Exchange logs are best effort, continue with the call

    def _log_retry(self, method: HttpMethod, url: str) -> Callable[[RetryCallState], None]:
        def before_sleep(retry_state: RetryCallState) -> None:
            response = retry_state.outcome.result()
            logger.warning(
                "Transient failure, retrying",
                backend=self.name,
                method=method.value,
                url=url,
                problem=getattr(response.problem, "value", response.problem),
                attempt=retry_state.attempt_number,
                delay_seconds=retry_state.next_action.sleep,
            )

        return before_sleep

    # ===== Verbs =====

    @staticmethod
    def _with(options: Optional[CallOptions], **update: Any) -> CallOptions:
        options = options or CallOptions()
        return options.model_copy(update=update) if update else options

    async def get(self, url: str, options: Optional[CallOptions] = None) -> Any:
        return await self.call(HttpMethod.GET, url, options)

    async def post(
        self, url: str, data: Any = None, options: Optional[CallOptions] = None
    ) -> Any:
        return await self.call(HttpMethod.POST, url, self._with(options, data=data))

    async def put(
        self, url: str, data: Any = None, options: Optional[CallOptions] = None
    ) -> Any:
        return await self.call(HttpMethod.PUT, url, self._with(options, data=data))

    async def patch(
        self, url: str, data: Any = None, options: Optional[CallOptions] = None
    ) -> Any:
        return await self.call(HttpMethod.PATCH, url, self._with(options, data=data))

    async def delete(self, url: str, options: Optional[CallOptions] = None) -> Any:
        return await self.call(HttpMethod.DELETE, url, options)

    async def upload(
        self,
        url: str,
        form: Union[MultipartForm, Dict[str, Any]],
        options: Optional[CallOptions] = None,
    ) -> Any:
        """
        POST a multipart form.

        Forces a multipart Content-Type and defaults the timeout to the
        configured upload timeout.
        """
        if not isinstance(form, MultipartForm):
            form = MultipartForm(fields=dict(form))
        options = options or CallOptions()
        return await self.call(
            HttpMethod.POST,
            url,
            self._with(
                options,
                data=form,
                headers={**options.headers, "Content-Type": MULTIPART_CONTENT_TYPE},
                timeout=options.timeout or self.settings.upload_timeout_ms,
            ),
        )


# Factory functions for the two backends


def _network_status_for(settings: Settings) -> NetworkStatus:
    if settings.connectivity_check_url:
        return HttpConnectivityChecker(
            settings.connectivity_check_url,
            timeout_seconds=settings.connectivity_timeout_ms / 1000,
        )
    return AlwaysConnected()


def create_api_client(settings: Optional[Settings] = None, **kwargs: Any) -> ApiClient:
    """
    Create the client for the primary booking backend.

    Args:
        settings: Client settings
        **kwargs: Overrides passed to ApiClient (transport, token_provider...)
    """
    settings = settings or get_settings()
    kwargs.setdefault("network_status", _network_status_for(settings))
    return ApiClient("api", settings.api_base_url, settings=settings, **kwargs)


def create_portal_client(
    settings: Optional[Settings] = None, **kwargs: Any
) -> ApiClient:
    """Create the client for the portal backend (login, staff profile, stores)."""
    settings = settings or get_settings()
    kwargs.setdefault("network_status", _network_status_for(settings))
    return ApiClient("portal", settings.api_base_url_portal, settings=settings, **kwargs)


# Global client registry for reuse
_client_registry: Dict[str, ApiClient] = {}


def get_client(
    name: str, factory_func: Optional[Callable[..., ApiClient]] = None, **factory_kwargs
) -> ApiClient:
    """
    Get or create a client from the global registry.

    Args:
        name: Registry key
        factory_func: Factory used when the client does not exist yet
        **factory_kwargs: Arguments for the factory

    Raises:
        ValueError: If the client is missing and no factory is given
    """
    if name not in _client_registry:
        if factory_func is None:
            raise ValueError(f"No client registered for backend: {name}")

        _client_registry[name] = factory_func(**factory_kwargs)
        logger.info(
            "API client created and registered",
            backend=name,
            factory=factory_func.__name__,
        )

    return _client_registry[name]


async def close_all_clients() -> None:
    """Close all registered clients."""
    for name, client in _client_registry.items():
        try:
            await client.aclose()
        except Exception as e:
            logger.warning("Error closing API client", backend=name, error=str(e))

    _client_registry.clear()
    logger.info("All API clients closed and registry cleared")
