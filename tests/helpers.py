"""Fake collaborators and response builders shared by the test suites."""

import inspect
from typing import Any, Callable, List, Optional

from nailapp_client.utils.http_client import ApiProblem, ApiRequest, ApiResponse


def ok(data: Any = None, status: int = 200) -> ApiResponse:
    """Successful transport result."""
    return ApiResponse(ok=True, status=status, data={} if data is None else data)


def http_error(status: int, data: Any = "", problem: Optional[ApiProblem] = None):
    """Transport result for an HTTP error status."""
    if problem is None:
        problem = ApiProblem.CLIENT_ERROR if status < 500 else ApiProblem.SERVER_ERROR
    return ApiResponse(ok=False, status=status, data=data, problem=problem)


def transport_failure(problem: ApiProblem, message: str = "boom") -> ApiResponse:
    """Transport result when no response was received."""
    return ApiResponse(ok=False, problem=problem, original_error=Exception(message))


class FakeTransport:
    """Transport answering from a handler and recording every request."""

    def __init__(
        self, handler: Callable[[ApiRequest], Any], base_url: str = "http://api.test"
    ):
        self.base_url = base_url
        self.handler = handler
        self.requests: List[ApiRequest] = []
        self.closed = False

    @classmethod
    def scripted(cls, *responses: ApiResponse, **kwargs: Any) -> "FakeTransport":
        """Answer with the given responses in order, repeating the last one."""
        queue = list(responses)

        def handler(request: ApiRequest) -> ApiResponse:
            return queue.pop(0) if len(queue) > 1 else queue[0]

        return cls(handler, **kwargs)

    async def send(self, request: ApiRequest) -> ApiResponse:
        self.requests.append(request)
        result = self.handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def aclose(self) -> None:
        self.closed = True


class Offline:
    async def is_connected(self) -> bool:
        return False


class BrokenChecker:
    async def is_connected(self) -> bool:
        raise RuntimeError("netinfo unavailable")
