"""
Process-wide session storage with a single serialized refresh entry point.

Credentials live as individual key/value entries (the same keys the mobile
app keeps on the device) in a pluggable async storage backend. Every
mutation goes through ``SessionStore``; concurrent refresh attempts are
coalesced into one in-flight task so two calls failing at the same time
cannot rotate the refresh token twice.

Usage:
    store = SessionStore(FileStorage(settings.session.storage_path))
    creds = await store.load_credentials()
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, NamedTuple, Optional, Protocol

from masdeporte.errors import AuthenticationInvalid, SessionRefreshFailed
from masdeporte.schemas.session_schema import SessionCredentials, UserProfile

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
ROLE_KEY = "userRole"
EMAIL_KEY = "userEmail"
USER_ID_KEY = "userId"
NAME_KEY = "userName"
SURNAME_KEY = "userSurname"

CREDENTIAL_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, ROLE_KEY)
PROFILE_KEYS = {
    "email": EMAIL_KEY,
    "user_id": USER_ID_KEY,
    "name": NAME_KEY,
    "surname": SURNAME_KEY,
}


class TokenPair(NamedTuple):
    """Tokens returned by a successful refresh."""

    access_token: str
    refresh_token: Optional[str] = None


Refresher = Callable[[str], Awaitable[TokenPair]]


class KeyValueStorage(Protocol):
    """Minimal async key/value interface the session store needs."""

    async def get_item(self, key: str) -> Optional[str]: ...

    async def multi_set(self, items: dict[str, str]) -> None: ...

    async def multi_remove(self, keys: tuple[str, ...]) -> None: ...


class MemoryStorage:
    """Volatile storage, used by tests and one-off CLI runs."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def multi_set(self, items: dict[str, str]) -> None:
        self._data.update(items)

    async def multi_remove(self, keys: tuple[str, ...]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class FileStorage:
    """Entries persisted as one JSON object on disk, read on first access."""

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._data: Optional[dict[str, str]] = None

    def _load(self) -> dict[str, str]:
        if self._data is None:
            if self._path.exists():
                try:
                    data = json.loads(self._path.read_text(encoding="utf-8"))
                except json.JSONDecodeError:
                    data = None
                if not isinstance(data, dict):
                    logger.warning("Session file %s is corrupt, starting empty", self._path)
                    data = {}
                self._data = data
            else:
                self._data = {}
        return self._data

    def _flush(self) -> None:
        self._path.write_text(json.dumps(self._load(), indent=2), encoding="utf-8")

    async def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    async def multi_set(self, items: dict[str, str]) -> None:
        self._load().update(items)
        self._flush()

    async def multi_remove(self, keys: tuple[str, ...]) -> None:
        data = self._load()
        for key in keys:
            data.pop(key, None)
        self._flush()


class SessionStore:
    """Owns the stored credentials. All writes go through this class."""

    def __init__(self, storage: Optional[KeyValueStorage] = None) -> None:
        self._storage = storage if storage is not None else MemoryStorage()
        self._inflight_refresh: Optional[asyncio.Future] = None
        self._refresh_count = 0

    @property
    def refresh_count(self) -> int:
        """Number of refresh calls actually issued by this store."""
        return self._refresh_count

    async def get_access_token(self) -> Optional[str]:
        return await self._storage.get_item(ACCESS_TOKEN_KEY)

    async def get_refresh_token(self) -> Optional[str]:
        return await self._storage.get_item(REFRESH_TOKEN_KEY)

    async def load_credentials(self) -> Optional[SessionCredentials]:
        """Restore the session on start. None unless all three entries exist."""
        access = await self._storage.get_item(ACCESS_TOKEN_KEY)
        refresh = await self._storage.get_item(REFRESH_TOKEN_KEY)
        role = await self._storage.get_item(ROLE_KEY)
        if not (access and refresh and role):
            return None
        return SessionCredentials(access_token=access, refresh_token=refresh, role=role)

    async def load_profile(self) -> UserProfile:
        values = {
            field_name: await self._storage.get_item(key)
            for field_name, key in PROFILE_KEYS.items()
        }
        return UserProfile(**values)

    async def is_authenticated(self) -> bool:
        return await self.load_credentials() is not None

    async def save_login(
        self, credentials: SessionCredentials, profile: Optional[UserProfile] = None
    ) -> None:
        """Persist credentials (and any known profile fields) after login."""
        items = {
            ACCESS_TOKEN_KEY: credentials.access_token,
            REFRESH_TOKEN_KEY: credentials.refresh_token,
            ROLE_KEY: credentials.role,
        }
        if profile is not None:
            for field_name, key in PROFILE_KEYS.items():
                value = getattr(profile, field_name)
                if value is not None:
                    items[key] = str(value)
        await self._storage.multi_set(items)
        logger.info("Session stored for role %s", credentials.role)

    async def rotate(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """Store a refreshed access token, and the refresh token if one was issued."""
        items = {ACCESS_TOKEN_KEY: access_token}
        if refresh_token:
            items[REFRESH_TOKEN_KEY] = refresh_token
        await self._storage.multi_set(items)
        logger.debug("Access token rotated (refresh token rotated: %s)", bool(refresh_token))

    async def clear(self) -> None:
        """Drop the credentials. Profile fields are kept for the login form."""
        await self._storage.multi_remove(CREDENTIAL_KEYS)
        logger.info("Session credentials cleared")

    async def refresh(
        self, refresher: Refresher, stale_access_token: Optional[str] = None
    ) -> str:
        """
        Obtain a fresh access token, sharing one refresh among concurrent callers.

        Args:
            refresher: Coroutine that exchanges a refresh token for a TokenPair.
            stale_access_token: The token the failed call was sent with. If the
                stored token already differs, another call has rotated it and
                the current token is returned without a new refresh.

        Returns:
            The access token to retry with.

        Raises:
            AuthenticationInvalid: The refresh token was rejected; credentials
                have been cleared.
            SessionRefreshFailed: No refresh token is stored, or the refresh
                failed for a transient reason. Credentials are kept.
            ApiError: Any other refresher failure, credentials kept.
        """
        current = await self.get_access_token()
        if stale_access_token is not None and current and current != stale_access_token:
            logger.debug("Access token already rotated by a concurrent call")
            return current

        if self._inflight_refresh is None:
            self._inflight_refresh = asyncio.ensure_future(self._run_refresh(refresher))
        return await asyncio.shield(self._inflight_refresh)

    async def _run_refresh(self, refresher: Refresher) -> str:
        try:
            refresh_token = await self.get_refresh_token()
            if not refresh_token:
                # Keep whatever is stored; the user may be mid-payment
                raise SessionRefreshFailed("No refresh token stored")

            self._refresh_count += 1
            try:
                tokens = await refresher(refresh_token)
            except AuthenticationInvalid:
                logger.warning("Refresh token rejected, clearing session")
                await self.clear()
                raise

            await self.rotate(tokens.access_token, tokens.refresh_token)
            return tokens.access_token
        finally:
            self._inflight_refresh = None
