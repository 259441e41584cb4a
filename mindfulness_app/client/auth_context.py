"""
Client-side view of the signed-in user.

:class:`AuthContext` resolves the user once on :meth:`AuthContext.mount`,
falls back to a single session refresh when the provider errors but the local
auth cache still says "authenticated", and follows provider auth events until
:meth:`AuthContext.unmount`.
"""

import enum
import logging
from typing import Callable, List, Optional

import httpx

from mindfulness_app.client.storage import AuthCache, KeyValueStore
from mindfulness_app.errors import AppError, UpstreamError

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

AuthListener = Callable[[str, Optional[dict]], None]


class AuthState(enum.Enum):
    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"
    UNAUTHENTICATED = "unauthenticated"


class AuthProvider:
    """What the auth context needs from an identity provider."""

    async def get_user(self) -> Optional[dict]:
        raise NotImplementedError

    async def refresh_session(self) -> Optional[dict]:
        raise NotImplementedError

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener``; returns the function that unsubscribes it."""
        raise NotImplementedError


class AuthContext:

    def __init__(self, provider: AuthProvider, store: KeyValueStore):
        self.provider = provider
        self.cache = AuthCache(store)
        self.state = AuthState.UNKNOWN
        self.user: Optional[dict] = None
        self.error: Optional[str] = None
        self.loading = True
        self._mounted = False
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def mounted(self) -> bool:
        return self._mounted

    async def mount(self) -> AuthState:
        self._mounted = True
        self._unsubscribe = self.provider.on_auth_state_change(self._on_auth_change)
        had_valid_cache = self.cache.is_valid()
        try:
            user = await self.provider.get_user()
        except AppError as e:
            await self._recover(e, had_valid_cache)
        else:
            if self._mounted:
                self._set_user(user, renew=False)
        finally:
            if self._mounted:
                self.loading = False
        return self.state

    async def _recover(self, error: AppError, had_valid_cache: bool) -> None:
        if had_valid_cache:
            logger.info("Attempting to recover session from the local auth cache")
            try:
                user = await self.provider.refresh_session()
            except AppError as refresh_error:
                logger.error("Failed to refresh session: %s", refresh_error.message)
                user = None
            if user is not None:
                if self._mounted:
                    self._set_user(user, renew=True)
                return

        if not self._mounted:
            return
        self.user = None
        self.state = AuthState.EXPIRED if had_valid_cache else AuthState.UNAUTHENTICATED
        if error.recoverable:
            logger.debug("Ignoring recoverable auth error: %s", error.message)
            self.error = None
        else:
            logger.error("Error fetching user: %s", error.message)
            self.error = error.message

    def _set_user(self, user: Optional[dict], renew: bool) -> None:
        self.user = user
        self.error = None
        if user is None:
            self.state = AuthState.UNAUTHENTICATED
            return
        self.state = AuthState.AUTHENTICATED
        self.cache.mark_authenticated(renew=renew)

    def _on_auth_change(self, event: str, user: Optional[dict]) -> None:
        if not self._mounted:
            return
        logger.info("Auth state changed: %s", event)
        if user is not None:
            self._set_user(user, renew=event in (SIGNED_IN, TOKEN_REFRESHED))
        else:
            self.user = None
            self.state = AuthState.UNAUTHENTICATED
            if event == SIGNED_OUT:
                self.cache.clear()
        self.loading = False
        self.error = None

    def unmount(self) -> None:
        self._mounted = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class HttpAuthProvider(AuthProvider):
    """Talks to this service's session endpoints with the session cookie jar of one httpx client."""

    def __init__(self, base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client = httpx.AsyncClient(base_url=base_url, transport=transport, follow_redirects=False)
        self._listeners: List[AuthListener] = []

    def _emit(self, event: str, user: Optional[dict]) -> None:
        for listener in list(self._listeners):
            listener(event, user)

    async def _request_user(self, method: str, path: str) -> Optional[dict]:
        try:
            response = await self.client.request(method, path)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Auth request failed: {e}", status_code=503)
        if response.status_code == 401:
            return None
        if response.is_error:
            raise UpstreamError(f"Auth request failed with {response.status_code}", status_code=response.status_code)
        return response.json()

    async def get_user(self) -> Optional[dict]:
        return await self._request_user("GET", "/api/auth/me")

    async def refresh_session(self) -> Optional[dict]:
        user = await self._request_user("POST", "/api/auth/refresh")
        if user is not None:
            self._emit(TOKEN_REFRESHED, user)
        return user

    async def sign_out(self) -> None:
        try:
            await self.client.post("/auth/signout")
        except httpx.HTTPError as e:
            logger.error("Sign-out request failed: %s", e)
        self.client.cookies.clear()
        self._emit(SIGNED_OUT, None)

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def aclose(self) -> None:
        await self.client.aclose()
