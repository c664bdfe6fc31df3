"""
Authenticated API client for a Sanctum-style backend.

The backend keeps the session in a cookie and expects every state-changing
request to echo the ``XSRF-TOKEN`` cookie back in the ``X-XSRF-TOKEN`` header.
``ApiClient`` takes care of that handshake:

- mutating requests get the token attached, fetching it from the priming
  endpoint first when it isn't known yet (concurrent requests share a single
  priming call);
- every response refreshes the cached token from the cookie jar;
- a 419 (token mismatch) clears the token, re-acquires it and replays the
  request exactly once;
- a 401 while the page is on a protected route triggers a single redirect to
  the login route, and every related error is tagged silent.

All coordination state lives on the client (``SessionState``); two clients
never share tokens or flags.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from src.bizdesk.browser import NAVIGATE_EVENT, UNAUTHORIZED_EVENT, Browser
from src.bizdesk.config import ClientSettings
from src.bizdesk.cookies import TokenCache, cookie_string, read_token
from src.bizdesk.errors import (
    ApiError,
    NetworkError,
    RequestTimeout,
    SilentAuthError,
    SilentReason,
    TokenMismatchError,
    UnauthenticatedError,
)
from src.bizdesk.retry import Sleep, poll

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "X-Requested-With": "XMLHttpRequest",
}


def _preview(token: str | None) -> str:
    return f"{token[:8]}..." if token else "none"


@dataclass
class RequestDescriptor:
    """One logical request. Rebuilt into an ``httpx.Request`` on every send."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] | None = None
    json: Any = None
    content: bytes | None = None
    retried: bool = False

    def __post_init__(self) -> None:
        self.method = self.method.upper()

    @property
    def is_mutating(self) -> bool:
        return self.method not in SAFE_METHODS

    def mark_retried(self) -> None:
        if self.retried:
            raise RuntimeError(f"{self.method} {self.url} was already retried")
        self.retried = True


@dataclass
class SessionState:
    """Token cache and the redirect/logout coordination flags."""

    tokens: TokenCache = field(default_factory=TokenCache)
    redirecting: bool = False
    logging_out: bool = False

    def reset(self) -> None:
        self.tokens.clear()
        self.redirecting = False
        self.logging_out = False


class ApiClient:
    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        browser: Browser | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cookie_source: Callable[[], str] | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.browser = browser or Browser()
        self.state = SessionState()
        self._sleep = sleep
        self._logout_timer: asyncio.TimerHandle | None = None
        self._redirect_timer: asyncio.TimerHandle | None = None
        self._active_logouts = 0
        self._http = httpx.AsyncClient(
            base_url=self.settings.base_url,
            headers=DEFAULT_HEADERS,
            timeout=self.settings.timeout,
            transport=transport,
        )
        # What ``document.cookie`` would show; replaceable to simulate a
        # browser that takes a moment to expose freshly set cookies.
        self._cookie_source = cookie_source or (lambda: cookie_string(self._http.cookies))
        self.browser.add_event_listener(NAVIGATE_EVENT, self._on_navigate)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.browser.remove_event_listener(NAVIGATE_EVENT, self._on_navigate)
        self._cancel_logout_timer()
        if self._redirect_timer is not None:
            self._redirect_timer.cancel()
            self._redirect_timer = None
        await self._http.aclose()

    @property
    def cookies(self) -> httpx.Cookies:
        return self._http.cookies

    # ── Public request API ───────────────────────────────────────────────────

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        descriptor = RequestDescriptor(
            method,
            url,
            headers=dict(headers or {}),
            params=params,
            json=json,
            content=content,
        )
        return await self.send(descriptor)

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def send(self, descriptor: RequestDescriptor) -> httpx.Response:
        """Send *descriptor* through the CSRF handshake. Raises ``ApiError``."""
        await self._prepare(descriptor)
        response = await self._transmit(descriptor)
        self._refresh_token(descriptor)
        if response.is_error:
            return await self._on_error(descriptor, response)
        return response

    # ── Token handling ───────────────────────────────────────────────────────

    def read_token(self) -> str | None:
        """Read the token straight from the cookie store."""
        return read_token(self._cookie_source(), self.settings.xsrf_cookie)

    async def acquire_token(self) -> str | None:
        """
        Prime the session and wait for the XSRF cookie to show up.

        Concurrent callers share one acquisition. Never raises on priming
        failures: the token is simply None and the backend gets to reject the
        request with a clear 419.
        """
        tokens = self.state.tokens
        if tokens.acquisition is None:
            tokens.acquisition = asyncio.get_running_loop().create_task(self._acquire())
        # Shielded: one caller being cancelled must not cancel it for the others.
        return await asyncio.shield(tokens.acquisition)

    async def _acquire(self) -> str | None:
        path = self.settings.csrf_cookie_path
        policy = self.settings.acquire_policy
        try:
            logger.debug("csrf_acquire_start path=%s", path)
            try:
                response = await self._http.get(path)
            except httpx.HTTPError as exc:
                logger.warning("csrf_prime_failed path=%s error=%r", path, exc)
                return None
            if response.is_error:
                logger.warning(
                    "csrf_prime_failed path=%s status=%d", path, response.status_code
                )
                return None

            token = await poll(self.read_token, policy, self._sleep)
            if token is None:
                logger.warning(
                    "csrf_token_not_found path=%s attempts=%d", path, policy.attempts
                )
                return None
            self.state.tokens.set(token)
            logger.debug("csrf_acquire_done token=%s", _preview(token))
            return token
        finally:
            self.state.tokens.acquisition = None

    def _refresh_token(self, descriptor: RequestDescriptor) -> None:
        # The backend may rotate the token on any response (login, logout...).
        token = self.read_token()
        if token and token != self.state.tokens.get():
            logger.debug(
                "csrf_token_refreshed url=%s token=%s", descriptor.url, _preview(token)
            )
            self.state.tokens.set(token)

    # ── Request interceptor ──────────────────────────────────────────────────

    async def _prepare(self, descriptor: RequestDescriptor) -> None:
        if not descriptor.is_mutating or descriptor.url == self.settings.csrf_cookie_path:
            return

        tokens = self.state.tokens
        token = tokens.get() or self.read_token()
        if not token:
            logger.debug(
                "csrf_acquire_for_request method=%s url=%s", descriptor.method, descriptor.url
            )
            token = await self.acquire_token() or await poll(
                self.read_token, self.settings.attach_policy, self._sleep
            )

        if token:
            tokens.set(token)
            descriptor.headers[self.settings.xsrf_header] = token
        else:
            # Sent anyway: the backend answers 419 and the retry path takes over.
            logger.error(
                "csrf_token_missing method=%s url=%s", descriptor.method, descriptor.url
            )

    async def _transmit(self, descriptor: RequestDescriptor) -> httpx.Response:
        request = self._http.build_request(
            descriptor.method,
            descriptor.url,
            params=descriptor.params,
            json=descriptor.json,
            content=descriptor.content,
            headers=descriptor.headers,
        )
        try:
            return await self._http.send(request)
        except httpx.TimeoutException as exc:
            logger.debug("request_timeout method=%s url=%s", descriptor.method, descriptor.url)
            raise RequestTimeout(
                f"Request timed out: {descriptor.method} {descriptor.url}"
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(
                f"Could not reach the server: {descriptor.method} {descriptor.url}"
            ) from exc

    # ── Response interceptor ─────────────────────────────────────────────────

    async def _on_error(
        self, descriptor: RequestDescriptor, response: httpx.Response
    ) -> httpx.Response:
        if response.status_code == 419:
            return await self._recover_from_mismatch(descriptor, response)
        if response.status_code == 401:
            raise self._unauthenticated(response)
        raise ApiError.from_response(response)

    async def _recover_from_mismatch(
        self, descriptor: RequestDescriptor, response: httpx.Response
    ) -> httpx.Response:
        message = ApiError.from_response(response).message
        if descriptor.retried:
            logger.error(
                "csrf_mismatch_after_retry method=%s url=%s", descriptor.method, descriptor.url
            )
            raise TokenMismatchError(message, retried=True, response=response)

        descriptor.mark_retried()
        logger.warning(
            "csrf_mismatch method=%s url=%s token=%s",
            descriptor.method,
            descriptor.url,
            _preview(self.state.tokens.get()),
        )
        self.state.tokens.clear()
        await self.acquire_token()
        await self._sleep(self.settings.retry_settle_delay)

        token = self.read_token()
        if not token:
            logger.error(
                "csrf_reacquire_failed method=%s url=%s", descriptor.method, descriptor.url
            )
            raise TokenMismatchError(message, retried=True, response=response)

        self.state.tokens.set(token)
        descriptor.headers[self.settings.xsrf_header] = token
        logger.debug("csrf_replay method=%s url=%s", descriptor.method, descriptor.url)
        return await self.send(descriptor)

    def _unauthenticated(self, response: httpx.Response) -> UnauthenticatedError:
        state = self.state
        if state.logging_out:
            return SilentAuthError(SilentReason.logging_out, response=response)

        path = self.browser.path
        login_route = self.settings.login_route
        if not self.settings.is_protected(path) or path == login_route:
            message = ApiError.from_response(response).message
            return UnauthenticatedError(message, response=response)

        if state.redirecting:
            return SilentAuthError(SilentReason.redirect_pending, response=response)

        state.redirecting = True
        logger.info("session_expired path=%s redirect=%s", path, login_route)
        self.browser.dispatch_event(UNAUTHORIZED_EVENT, {"path": path})
        self._redirect_timer = self.browser.schedule_navigation(
            login_route, self.settings.redirect_delay
        )
        return SilentAuthError(SilentReason.redirecting, response=response)

    # ── Logout coordination ──────────────────────────────────────────────────

    def begin_logout(self) -> None:
        self._active_logouts += 1
        self._cancel_logout_timer()
        self.state.logging_out = True

    def end_logout(self, delay: float | None = None) -> None:
        """
        Clear the logout flag after *delay* (default: the logout grace).

        Overlapping logouts keep the flag up until the last one has ended and
        its own grace period has run out.
        """
        self._active_logouts = max(0, self._active_logouts - 1)
        if self._active_logouts:
            return
        delay = self.settings.logout_grace if delay is None else delay
        self._cancel_logout_timer()
        if delay <= 0:
            self._clear_logout()
            return
        self._logout_timer = asyncio.get_running_loop().call_later(delay, self._clear_logout)

    def _cancel_logout_timer(self) -> None:
        if self._logout_timer is not None:
            self._logout_timer.cancel()
            self._logout_timer = None

    def _clear_logout(self) -> None:
        self._logout_timer = None
        self.state.logging_out = False

    def _on_navigate(self, path: str) -> None:
        # A page load starts from scratch: no token, no pending redirect.
        self._redirect_timer = None
        self._active_logouts = 0
        self._cancel_logout_timer()
        self.state.reset()
