"""Session cookie and anti-forgery token helpers.

ASCII-only.
"""

from __future__ import annotations

import secrets
from typing import Any

from fastapi import Request, Response

from applyportal.core.errors import SecurityTokenMismatch
from applyportal.core.logging import get_logger
from applyportal.session_store.types import SessionStore

logger = get_logger(__name__)

DEFAULT_COOKIE_NAME = "_apply_session"
_CSRF_PREFIX = "csrf"
_SESSION_ID_CHARS = set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_")


def _state(request: Request, name: str, default: Any = None) -> Any:
    return getattr(request.app.state, name, default)


def session_store(request: Request) -> SessionStore:
    return _state(request, "session_store")


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def read_session_id(request: Request) -> str | None:
    """Return the session id from the cookie, or None when absent/malformed."""
    raw = request.cookies.get(_state(request, "session_cookie_name", DEFAULT_COOKIE_NAME))
    if not raw or len(raw) > 128 or not set(raw) <= _SESSION_ID_CHARS:
        return None
    return raw


def set_session_cookie(response: Response, request: Request, session_id: str) -> None:
    response.set_cookie(
        key=_state(request, "session_cookie_name", DEFAULT_COOKIE_NAME),
        value=session_id,
        max_age=_state(request, "session_ttl", None),
        httponly=True,
        samesite="lax",
        secure=bool(_state(request, "session_cookie_secure", False)),
        path="/",
    )


def csrf_token(request: Request, session_id: str) -> str:
    """Return the session's anti-forgery token, creating one when missing."""
    store = session_store(request)
    key = f"{_CSRF_PREFIX}:{session_id}"
    raw = store.get(key)
    if raw is not None:
        return raw.decode("ascii")
    token = secrets.token_hex(32)
    if not store.add(key, token.encode("ascii"), _state(request, "session_ttl", None)):
        raw = store.get(key)
        if raw is not None:
            return raw.decode("ascii")
        store.set(key, token.encode("ascii"), _state(request, "session_ttl", None))
    return token


def verify_csrf(request: Request, session_id: str, submitted: Any) -> None:
    """Raise SecurityTokenMismatch unless submitted matches the session token."""
    raw = session_store(request).get(f"{_CSRF_PREFIX}:{session_id}")
    expected = raw.decode("ascii") if raw is not None else ""
    if not expected or not isinstance(submitted, str) or not secrets.compare_digest(expected, submitted):
        logger.warning(f"Invalid CSRF token detected for session {session_id[:8]}")
        raise SecurityTokenMismatch()
