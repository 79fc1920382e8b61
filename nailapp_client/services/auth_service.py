"""
Session token persistence and the default token provider built on it.

Storage is an opaque key/value store; the client only needs to get, set and
remove three values: the access token, the refresh token and the user id.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from nailapp_client.services.token_provider import RefreshedTokens, TokenProvider
from nailapp_client.utils.logging import get_logger

logger = get_logger(__name__)

TOKEN_KEY = "auth_token"
REFRESH_TOKEN_KEY = "auth_refresh_token"
USER_ID_KEY = "auth_user_id"


class KeyValueStore(Protocol):
    """Persistent key/value holder supplied by the host application."""

    def load(self, key: str) -> Any:
        ...

    def save(self, key: str, value: Any) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStorage:
    """In-process KeyValueStore, used in tests and short-lived scripts."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def load(self, key: str) -> Any:
        return self._data.get(key)

    def save(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


def save_token(
    store: KeyValueStore,
    token: str,
    refresh_token: Optional[str] = None,
    user_id: Optional[int] = None,
) -> None:
    """
    Persist a session.

    A missing refresh token removes any stored one; the user id is only
    written when given.
    """
    store.save(TOKEN_KEY, token)
    if refresh_token:
        store.save(REFRESH_TOKEN_KEY, refresh_token)
    else:
        store.remove(REFRESH_TOKEN_KEY)
    if user_id is not None:
        store.save(USER_ID_KEY, user_id)


def get_access_token(store: KeyValueStore) -> Optional[str]:
    return store.load(TOKEN_KEY)


def get_refresh_token(store: KeyValueStore) -> Optional[str]:
    return store.load(REFRESH_TOKEN_KEY)


def get_user_id(store: KeyValueStore) -> Optional[int]:
    return store.load(USER_ID_KEY)


def clear_auth(store: KeyValueStore) -> None:
    """Forget the session."""
    store.remove(TOKEN_KEY)
    store.remove(REFRESH_TOKEN_KEY)
    store.remove(USER_ID_KEY)
    logger.info("Session cleared")


def is_authenticated(store: KeyValueStore) -> bool:
    return get_access_token(store) is not None


def build_token_provider(
    store: KeyValueStore,
    refresh: Optional[Callable[[str], Awaitable[Optional[RefreshedTokens]]]] = None,
    on_auth_error: Optional[Callable[[], None]] = None,
) -> TokenProvider:
    """
    Build a TokenProvider reading from a KeyValueStore.

    Args:
        store: Where the session lives
        refresh: Exchange taking the stored refresh token and returning new
            tokens; None disables refresh. Refreshed tokens are persisted,
            keeping the previous refresh token when the exchange returns none.
        on_auth_error: Hook for an unrecoverable 401; defaults to clearing
            the stored session

    Returns:
        TokenProvider: Ready to pass to set_token_provider()
    """

    async def _refresh() -> Optional[RefreshedTokens]:
        current_refresh_token = get_refresh_token(store)
        if not current_refresh_token:
            logger.info("No refresh token stored, skipping refresh")
            return None

        result = await refresh(current_refresh_token)
        if result is None:
            return None

        save_token(
            store,
            result.access_token,
            result.refresh_token or current_refresh_token,
            get_user_id(store),
        )
        return result

    return TokenProvider(
        get_access_token=lambda: get_access_token(store),
        get_refresh_token=lambda: get_refresh_token(store),
        refresh=_refresh if refresh is not None else None,
        on_auth_error=on_auth_error or (lambda: clear_auth(store)),
    )
