"""
Structured API errors and the normalizer that builds them.

Every failed call surfaces as an ApiError carrying a machine-readable kind
and a message that can be shown to the user as-is.
"""

import json
from typing import Any, Optional

from nailapp_client.utils.http_client import ApiProblem, ApiResponse


class ApiError(Exception):
    """
    Raised when a call ultimately fails.

    Attributes:
        kind: Problem classification, callers branch on it
        message: Human-readable message suitable for display
        status: HTTP status when a response was received
        details: Parsed response body (or raw text) for field-level errors
    """

    def __init__(
        self,
        kind: ApiProblem,
        message: Optional[str] = None,
        status: Optional[int] = None,
        details: Any = None,
    ):
        self.kind = kind
        self.message = message or kind.value
        self.status = status
        self.details = details
        super().__init__(self.message)

    def __repr__(self) -> str:
        return (
            f"ApiError(kind={self.kind.value}, status={self.status}, "
            f"message={self.message!r})"
        )

    @property
    def is_network_error(self) -> bool:
        return self.kind == ApiProblem.NETWORK_ERROR

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401


def parse_body(data: Any) -> Any:
    """Parse a text body as JSON, falling back to the raw value."""
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError:
            return data
    if isinstance(data, str):
        try:
            return json.loads(data)
        except ValueError:
            return data
    return data


def _first_error_message(errors: Any) -> Optional[str]:
    """First value of an `errors` mapping, unwrapping a list to its first item."""
    if not isinstance(errors, dict) or not errors:
        return None
    first = next(iter(errors.values()))
    if isinstance(first, (list, tuple)):
        if not first:
            return None
        first = first[0]
    if first is None:
        return None
    return str(first)


def extract_message(body: Any) -> Optional[str]:
    """
    Pick a display message from a parsed body.

    Precedence: first entry of an `errors` object, then a string `message`
    field. Returns None when neither is usable.
    """
    if not isinstance(body, dict):
        return None

    message = _first_error_message(body.get("errors"))
    if message:
        return message

    message = body.get("message")
    if isinstance(message, str) and message:
        return message

    return None


def _problem_kind(problem: Any) -> ApiProblem:
    """Coerce a transport problem (enum member or its string value) to a kind."""
    if not problem:
        return ApiProblem.UNKNOWN_ERROR
    try:
        return ApiProblem(problem)
    except ValueError:
        return ApiProblem.UNKNOWN_ERROR


def to_api_error(response: ApiResponse) -> ApiError:
    """
    Turn a failed transport result into an ApiError.

    Never raises: unparseable bodies are kept as raw text, and the message
    falls back to the transport error and then to the problem kind.
    """
    kind = _problem_kind(response.problem)
    details = parse_body(response.data)

    message = extract_message(details)
    if not message and response.original_error is not None:
        message = str(response.original_error) or None
    if not message:
        message = kind.value

    return ApiError(kind, message, response.status, details)
