"""
Transport adapter built on httpx.

The dispatcher never talks to httpx directly. It hands a request description to
a Transport and gets back a normalized ApiResponse: an ok flag, the HTTP status,
the decoded body and a coarse problem classification. Transport failures are
classified, not raised, so the dispatcher can decide what is retryable.

Key features:
- Problem classification by status code and httpx exception type
- Cooperative cancellation through an asyncio.Event cancel token
- JSON-or-text body decoding
- Multipart uploads with httpx-generated boundaries
"""

import asyncio
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol

import httpx

from nailapp_client.utils.logging import get_logger

logger = get_logger(__name__)

JSON_CONTENT_TYPE = "application/json"
MULTIPART_CONTENT_TYPE = "multipart/form-data"


class ApiProblem(str, Enum):
    """Coarse classification of a failed call. None stands for success."""

    CLIENT_ERROR = "CLIENT_ERROR"  # 4xx
    SERVER_ERROR = "SERVER_ERROR"  # 5xx
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"  # refused, DNS, unreachable host
    NETWORK_ERROR = "NETWORK_ERROR"
    CANCEL_ERROR = "CANCEL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


TRANSIENT_PROBLEMS = frozenset(
    {
        ApiProblem.TIMEOUT_ERROR,
        ApiProblem.NETWORK_ERROR,
        ApiProblem.CONNECTION_ERROR,
    }
)


class RequestCancelled(Exception):
    """The request was aborted because its cancel token was set."""


@dataclass
class MultipartForm:
    """Form-like body for uploads: plain fields plus file parts."""

    fields: Dict[str, Any] = field(default_factory=dict)
    files: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ApiRequest:
    """Everything a transport needs to send one request."""

    method: str
    url: str
    params: Optional[Dict[str, Any]] = None
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0  # seconds
    cancel_token: Optional[asyncio.Event] = None


@dataclass
class ApiResponse:
    """
    Normalized transport result.

    Attributes:
        ok: True for 2xx responses
        status: HTTP status, None when no response was received
        data: Decoded body (JSON value or text, "" for an empty body),
            None when no response was received
        problem: Failure classification, None on success
        original_error: Exception raised by the underlying client, if any
        headers: Response headers
        duration_ms: Wall time of the exchange
    """

    ok: bool
    status: Optional[int] = None
    data: Any = None
    problem: Optional[ApiProblem] = None
    original_error: Optional[BaseException] = None
    headers: Dict[str, str] = field(default_factory=dict)
    duration_ms: float = 0.0


class Transport(Protocol):
    """Boundary toward the network: send a request, get a normalized result."""

    base_url: str

    async def send(self, request: ApiRequest) -> ApiResponse:
        ...

    async def aclose(self) -> None:
        ...


def problem_from_status(status: int) -> Optional[ApiProblem]:
    """Classify an HTTP status code."""
    if status < 200:
        return ApiProblem.UNKNOWN_ERROR
    if status < 400:
        return None
    if status < 500:
        return ApiProblem.CLIENT_ERROR
    if status < 600:
        return ApiProblem.SERVER_ERROR
    return ApiProblem.UNKNOWN_ERROR


def problem_from_exception(exc: BaseException) -> ApiProblem:
    """Classify an exception raised while talking to the server."""
    if isinstance(exc, httpx.TimeoutException):
        return ApiProblem.TIMEOUT_ERROR
    if isinstance(exc, httpx.ConnectError):
        return ApiProblem.CONNECTION_ERROR
    if isinstance(exc, httpx.TransportError):
        return ApiProblem.NETWORK_ERROR
    return ApiProblem.UNKNOWN_ERROR


def decode_body(response: httpx.Response) -> Any:
    """Decode a response body as JSON when possible, otherwise as text."""
    text = response.text
    if not text:
        return ""
    try:
        return json.loads(text)
    except ValueError:
        return text


class HttpxTransport:
    """
    Transport backed by a single httpx.AsyncClient per base URL.

    Connection pooling is shared across all calls made through this transport.
    """

    def __init__(
        self,
        base_url: str,
        default_headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self.default_headers = default_headers or {"Content-Type": JSON_CONTENT_TYPE}

        limits = httpx.Limits(
            max_keepalive_connections=20,
            max_connections=100,
            keepalive_expiry=30.0,
        )
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            limits=limits,
            follow_redirects=False,
        )

    async def aclose(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self.client.aclose()
        logger.debug("HTTP transport closed", base_url=self.base_url)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def _build_kwargs(self, request: ApiRequest) -> Dict[str, Any]:
        headers = {**self.default_headers, **(request.headers or {})}
        kwargs: Dict[str, Any] = {
            "params": request.params,
            "timeout": request.timeout,
        }

        data = request.data
        if isinstance(data, MultipartForm):
            # httpx writes its own multipart Content-Type with the boundary
            headers = {
                k: v for k, v in headers.items() if k.lower() != "content-type"
            }
            kwargs["data"] = data.fields
            kwargs["files"] = data.files or None
        elif isinstance(data, (bytes, str)):
            kwargs["content"] = data
        elif data is not None:
            kwargs["json"] = data

        kwargs["headers"] = headers
        return kwargs

    async def _request(self, request: ApiRequest) -> httpx.Response:
        kwargs = self._build_kwargs(request)
        return await self.client.request(request.method, request.url, **kwargs)

    async def _request_cancellable(self, request: ApiRequest) -> httpx.Response:
        """Race the request against the cancel token."""
        request_task = asyncio.ensure_future(self._request(request))
        cancel_task = asyncio.ensure_future(request.cancel_token.wait())
        try:
            done, _ = await asyncio.wait(
                {request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            request_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if request_task in done:
            return request_task.result()

        request_task.cancel()
        raise RequestCancelled("Request cancelled by cancel token")

    async def send(self, request: ApiRequest) -> ApiResponse:
        """
        Send a request and normalize the outcome.

        Never raises for transport failures; the failure is returned as the
        response problem with the exception kept in original_error.
        """
        start = time.monotonic()

        if request.cancel_token is not None and request.cancel_token.is_set():
            return ApiResponse(
                ok=False,
                problem=ApiProblem.CANCEL_ERROR,
                original_error=RequestCancelled("Request cancelled"),
            )

        # Cancellation of the calling task (asyncio.CancelledError) propagates
        try:
            if request.cancel_token is not None:
                response = await self._request_cancellable(request)
            else:
                response = await self._request(request)
        except RequestCancelled as e:
            return ApiResponse(
                ok=False,
                problem=ApiProblem.CANCEL_ERROR,
                original_error=e,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
        except httpx.HTTPError as e:
            return ApiResponse(
                ok=False,
                problem=problem_from_exception(e),
                original_error=e,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )

        return ApiResponse(
            ok=response.is_success,
            status=response.status_code,
            data=decode_body(response),
            problem=problem_from_status(response.status_code),
            headers=dict(response.headers),
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
