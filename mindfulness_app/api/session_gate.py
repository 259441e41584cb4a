"""
Session gate: the per-request check that decides whether a caller may reach
a protected screen.

Every request that is not a static asset gets exactly one session lookup.
Screens under a protected prefix require a session; the `/auth` screens are
only for signed-out callers. A lookup that fails with a recoverable error
(an unreadable cookie) counts as "signed out"; any other failure is logged
and the request is let through untouched rather than taking the whole site
down with the identity layer.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from mindfulness_app.api.utils import SESSION_COOKIE, create_access_token, set_session_cookie, verify_token
from mindfulness_app.database.config.config import settings
from mindfulness_app.errors import AppError

logger = logging.getLogger(__name__)

STATIC_ASSETS = re.compile(r"^/(?:static|_next/static|_next/image|favicon\.ico|public)(?:/|$)")

PROTECTED_PREFIXES = (
    "/dashboard",
    "/exercises",
    "/mood-tracker",
    "/chat",
    "/history",
    "/profile",
    "/settings",
    "/ai-chat",
)
AUTH_ONLY_PREFIXES = ("/auth",)
SIGNOUT_PATH = "/auth/signout"
LOGIN_PATH = "/auth/login"
HOME_AFTER_LOGIN = "/dashboard"


@dataclass
class Session:
    user_id: str
    email: Optional[str]
    expires_at: datetime
    refreshed_token: Optional[str] = None


def _matches(path: str, prefixes: Sequence[str]) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in prefixes)


def _wants_json(request: Request) -> bool:
    """Non-GET requests and JSON clients get a 401 instead of the login redirect."""
    if request.method not in ("GET", "HEAD"):
        return True
    return "application/json" in request.headers.get("accept", "")


class SessionProvider:
    """Resolves the session carried by the request cookies, refreshing it when close to expiry."""

    def __init__(self, refresh_window: Optional[timedelta] = None):
        self.refresh_window = refresh_window or timedelta(minutes=settings.SESSION_REFRESH_MINUTES)

    def get_session(self, request: Request) -> Optional[Session]:
        token = request.cookies.get(SESSION_COOKIE)
        if not token:
            return None
        claims = verify_token(token)
        if not claims or not claims.get("sub"):
            return None
        session = Session(
            user_id=claims["sub"],
            email=claims.get("email"),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )
        if session.expires_at - datetime.now(timezone.utc) < self.refresh_window:
            session.refreshed_token = create_access_token({"sub": session.user_id, "email": session.email})
        return session


class SessionGateMiddleware(BaseHTTPMiddleware):

    def __init__(
        self,
        app,
        provider: Optional[SessionProvider] = None,
        protected_prefixes: Sequence[str] = PROTECTED_PREFIXES,
        auth_only_prefixes: Sequence[str] = AUTH_ONLY_PREFIXES,
    ):
        super().__init__(app)
        self.provider = provider or SessionProvider()
        self.protected_prefixes = tuple(protected_prefixes)
        self.auth_only_prefixes = tuple(auth_only_prefixes)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if STATIC_ASSETS.match(path):
            return await call_next(request)

        try:
            session = self.provider.get_session(request)
        except AppError as e:
            if not e.recoverable:
                logger.error("Session lookup failed on %s: %s", path, e.message)
                return await call_next(request)
            logger.debug("Ignoring unreadable session cookie on %s", path)
            session = None
        except Exception:
            logger.exception("Unhandled error in session gate on %s", path)
            return await call_next(request)

        request.state.session = session

        if session is None and _matches(path, self.protected_prefixes) and _wants_json(request):
            logger.info("Rejecting unauthenticated %s %s", request.method, path)
            response = JSONResponse({"error": "Authentication required"}, status_code=401)
        elif session is None and _matches(path, self.protected_prefixes):
            logger.info("Redirecting to login from protected route %s", path)
            response = RedirectResponse(f"{LOGIN_PATH}?redirectTo={quote(path, safe='/')}", status_code=307)
        elif session is not None and _matches(path, self.auth_only_prefixes) and not _matches(path, (SIGNOUT_PATH,)):
            logger.info("Redirecting signed-in user %s from %s to dashboard", session.user_id, path)
            response = RedirectResponse(HOME_AFTER_LOGIN, status_code=307)
        else:
            response = await call_next(request)

        # Sign-out deletes the cookie; a refreshed token would sign the user back in.
        if session is not None and session.refreshed_token and not _matches(path, (SIGNOUT_PATH,)):
            set_session_cookie(response, session.refreshed_token)
        return response
