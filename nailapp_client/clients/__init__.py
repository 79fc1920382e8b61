"""Client modules for the NailApp backends."""

from .api_client import (
    ApiClient,
    CallOptions,
    HttpMethod,
    close_all_clients,
    create_api_client,
    create_portal_client,
    get_client,
)
from .http import HttpFacade, mutation_fn, query_fn

__all__ = [
    "ApiClient",
    "CallOptions",
    "HttpMethod",
    "HttpFacade",
    "create_api_client",
    "create_portal_client",
    "get_client",
    "close_all_clients",
    "query_fn",
    "mutation_fn",
]
