"""
NailApp API client.

Authenticated async HTTP client for the NailApp booking and portal backends.
"""

from .clients import (
    ApiClient,
    CallOptions,
    HttpFacade,
    HttpMethod,
    create_api_client,
    create_portal_client,
)
from .services.token_provider import (
    RefreshedTokens,
    TokenProvider,
    get_token_provider,
    set_token_provider,
)
from .utils.errors import ApiError
from .utils.http_client import ApiProblem, MultipartForm

__version__ = "0.1.0"

__all__ = [
    "ApiClient",
    "ApiError",
    "ApiProblem",
    "CallOptions",
    "HttpFacade",
    "HttpMethod",
    "MultipartForm",
    "RefreshedTokens",
    "TokenProvider",
    "create_api_client",
    "create_portal_client",
    "get_token_provider",
    "set_token_provider",
]
