"""
XSRF token cookie reader and in-memory token cache.

The backend sets the CSRF token in a readable (non-HTTP-only) cookie named
``XSRF-TOKEN``; its value is URL-encoded. The client mirrors it in memory so
the cookie jar isn't re-parsed on every request.
"""

import asyncio
from dataclasses import dataclass
from urllib.parse import unquote

import httpx

from src.bizdesk.config import XSRF_COOKIE


def read_token(cookies: str | None, name: str = XSRF_COOKIE) -> str | None:
    """
    Return the decoded value of cookie *name* from a ``Cookie``-style string.

    The name is matched case-insensitively. Returns None when the cookie is
    missing or empty.
    """
    if not cookies:
        return None
    wanted = name.lower()
    for part in cookies.split(";"):
        key, sep, value = part.strip().partition("=")
        if not sep or key.strip().lower() != wanted:
            continue
        token = unquote(value.strip())
        if token:
            return token
    return None


def cookie_string(jar: httpx.Cookies) -> str:
    """Render a cookie jar the way ``document.cookie`` would show it."""
    return "; ".join(f"{cookie.name}={cookie.value}" for cookie in jar.jar)


@dataclass
class TokenCache:
    """Current token plus the acquisition in flight, if any."""

    token: str | None = None
    acquisition: "asyncio.Task[str | None] | None" = None

    def get(self) -> str | None:
        return self.token

    def set(self, token: str | None) -> None:
        self.token = token

    def clear(self) -> None:
        self.token = None
