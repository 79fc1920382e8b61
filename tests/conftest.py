"""
Shared test fixtures and configuration for nailapp_client tests.

Provides clean global state (settings, token provider, client registry),
test settings and an ApiClient factory with recorded backoff sleeps.
"""

import os
from typing import Any, List

import pytest

# Set test environment before importing the package
os.environ.update(
    {
        "APP_ENV": "test",
        "LOG_LEVEL": "DEBUG",
    }
)

from nailapp_client.clients import api_client as api_client_module  # noqa: E402
from nailapp_client.clients.api_client import ApiClient  # noqa: E402
from nailapp_client.config import Settings, reset_settings  # noqa: E402
from nailapp_client.services.token_provider import reset_token_provider  # noqa: E402


@pytest.fixture(autouse=True)
def clean_globals():
    """Reset process-wide state before and after each test."""
    reset_settings()
    reset_token_provider()
    api_client_module._client_registry.clear()
    yield
    reset_settings()
    reset_token_provider()
    api_client_module._client_registry.clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="test",
        api_base_url="http://api.test",
        api_base_url_portal="http://portal.test",
        api_timeout_ms=30000,
        upload_timeout_ms=60000,
        retry_backoff_ms=300,
    )


@pytest.fixture
def sleeps() -> List[float]:
    """Delays requested by the retry policy, in seconds."""
    return []


@pytest.fixture
def make_client(settings, sleeps):
    """
    Factory for ApiClient instances wired to a fake transport.

    Backoff sleeps are recorded instead of awaited.
    """

    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    def _make(transport, **kwargs: Any) -> ApiClient:
        kwargs.setdefault("sleep", record_sleep)
        return ApiClient(
            kwargs.pop("name", "api"),
            transport.base_url,
            transport=transport,
            settings=settings,
            **kwargs,
        )

    return _make
