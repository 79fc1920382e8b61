"""
Token provider: the single injection point for bearer credentials.

The client never reads tokens from storage itself. It asks the active
TokenProvider for the current access token, for a refreshed one when the
server answers 401, and notifies it when the session cannot be recovered.
"""

import inspect
from dataclasses import dataclass
from typing import Awaitable, Callable, NamedTuple, Optional, Union

from nailapp_client.utils.logging import get_logger

logger = get_logger(__name__)

MaybeAwaitable = Union[Optional[str], Awaitable[Optional[str]]]


class RefreshedTokens(NamedTuple):
    """Result of a successful refresh exchange."""

    access_token: str
    refresh_token: Optional[str] = None


@dataclass
class TokenProvider:
    """
    Capability bundle supplying bearer credentials.

    Attributes:
        get_access_token: Returns the current access token (sync or async)
        get_refresh_token: Returns the current refresh token (optional)
        refresh: Performs the refresh exchange; None disables token refresh
        on_auth_error: Called once per unrecoverable 401, e.g. to clear the session
    """

    get_access_token: Callable[[], MaybeAwaitable]
    get_refresh_token: Optional[Callable[[], MaybeAwaitable]] = None
    refresh: Optional[Callable[[], Awaitable[Optional[RefreshedTokens]]]] = None
    on_auth_error: Optional[Callable[[], None]] = None

    @property
    def can_refresh(self) -> bool:
        return self.refresh is not None

    async def access_token(self) -> Optional[str]:
        """Resolve the current access token whether the getter is sync or async."""
        token = self.get_access_token()
        if inspect.isawaitable(token):
            token = await token
        return token or None

    async def refresh_token(self) -> Optional[str]:
        if self.get_refresh_token is None:
            return None
        token = self.get_refresh_token()
        if inspect.isawaitable(token):
            token = await token
        return token or None

    def notify_auth_error(self) -> None:
        """Invoke the auth-error hook if one is configured."""
        if self.on_auth_error is None:
            return
        logger.info("Unrecoverable authentication failure, notifying provider")
        self.on_auth_error()


def _no_token() -> None:
    return None


# ===== Global Provider Instance =====

_token_provider: TokenProvider = TokenProvider(get_access_token=_no_token)


def set_token_provider(provider: TokenProvider) -> None:
    """Replace the process-wide token provider."""
    global _token_provider
    _token_provider = provider
    logger.debug(
        "Token provider installed",
        refresh_enabled=provider.can_refresh,
        has_auth_error_hook=provider.on_auth_error is not None,
    )


def get_token_provider() -> TokenProvider:
    """Get the process-wide token provider."""
    return _token_provider


def reset_token_provider() -> None:
    """Restore the anonymous provider (useful for testing)."""
    global _token_provider
    _token_provider = TokenProvider(get_access_token=_no_token)
