"""
CSRF protection for the dev backend, Sanctum style.

Strategy: synchronizer token kept in the signed session cookie.
  - GET /sanctum/csrf-cookie starts (or resumes) a session and sets the
    token in the readable ``XSRF-TOKEN`` cookie, URL-encoded.
  - The client echoes it in the ``X-XSRF-TOKEN`` header on every
    state-changing request.
  - verify_xsrf (router-level dependency) answers 419 when the header is
    missing or doesn't match the session's token.
  - Login and logout regenerate the session, so the token rotates there.
"""

import logging
import secrets
from urllib.parse import quote, unquote

from fastapi import HTTPException, Request

from src.bizdesk.backend.auth import SESSION_LIFETIME, read_session, set_session_cookie
from src.bizdesk.config import IS_PROD, XSRF_COOKIE, XSRF_HEADER

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

logger = logging.getLogger(__name__)


def set_xsrf_cookie(response, session: dict) -> None:
    response.set_cookie(
        key=XSRF_COOKIE,
        value=quote(session["csrf"], safe=""),
        httponly=False,  # the client reads it
        samesite="lax",
        secure=IS_PROD,
        max_age=SESSION_LIFETIME,
    )


def issue_session(response, session: dict) -> None:
    """Set both the session cookie and the matching XSRF cookie."""
    set_session_cookie(response, session)
    set_xsrf_cookie(response, session)


def validate_xsrf_token(session: dict | None, header_value: str | None) -> None:
    """
    Raise HTTP 419 if *header_value* is absent or doesn't match *session*.

    Called from verify_xsrf (FastAPI dependency) and directly in tests.
    """
    token = unquote(header_value or "")
    if not session or not token or not secrets.compare_digest(token, session["csrf"]):
        raise HTTPException(status_code=419, detail="CSRF token mismatch.")


def verify_xsrf(request: Request) -> None:
    """
    FastAPI dependency for every API router.

    No-op for read-only methods; raises 419 for state-changing requests that
    don't carry the session's token.
    """
    if request.method in SAFE_METHODS:
        return
    try:
        validate_xsrf_token(read_session(request), request.headers.get(XSRF_HEADER))
    except HTTPException:
        logger.warning("csrf_mismatch method=%s path=%s", request.method, request.url.path)
        raise
