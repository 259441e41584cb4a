"""
JWT helpers for the session cookie and the OAuth `state` parameter.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from mindfulness_app.database.config.config import settings
from mindfulness_app.errors import SessionCookieError

logger = logging.getLogger(__name__)

SESSION_COOKIE = "token"
STATE_PURPOSE = "oauth_state"
STATE_LIFETIME = timedelta(minutes=10)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed session token.

    Parameters
    ----------
    data : dict
        Claims to embed; `sub` must hold the user id.
    expires_delta : timedelta, optional
        Lifetime, defaults to `ACCESS_TOKEN_EXPIRE_MINUTES`.

    Returns
    -------
    str
        The encoded JWT.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {**data, "iat": now, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """
    Decode a session token.

    Returns
    -------
    dict | None
        The claims, or None when the token expired or was not signed by us.

    Raises
    ------
    SessionCookieError
        If the cookie value is not a JWT at all (recoverable).
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidSignatureError:
        logger.warning("Session token with an invalid signature was presented")
        return None
    except jwt.DecodeError as e:
        raise SessionCookieError(f"Failed to parse cookie: {e}")
    except jwt.InvalidTokenError:
        return None


def create_state(redirect_to: str) -> str:
    return create_access_token({"purpose": STATE_PURPOSE, "redirect_to": redirect_to}, STATE_LIFETIME)


def read_state(state: Optional[str]) -> str:
    """Return the post-login path carried by `state`, or `/dashboard`."""
    if not state:
        return "/dashboard"
    try:
        claims = jwt.decode(state, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.InvalidTokenError:
        return "/dashboard"
    target = claims.get("redirect_to") if claims.get("purpose") == STATE_PURPOSE else None
    # Only same-site paths.
    if not target or not target.startswith("/") or target.startswith("//"):
        return "/dashboard"
    return target


def set_session_cookie(response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
