"""
Coordination between requests in flight at the same time.

Covers:
- concurrent mutating requests share one priming call
- cancelling one waiter does not cancel the shared acquisition
- a burst of 401s on a protected route produces one event and one redirect,
  every error tagged silent
- navigation resets the client state
- 401s during logout are silent and never redirect
- 401s on public routes reach the caller as ordinary errors
- closing the client cancels a pending redirect
"""

import asyncio

import pytest

from src.bizdesk.browser import UNAUTHORIZED_EVENT
from src.bizdesk.errors import (
    SilentAuthError,
    SilentReason,
    UnauthenticatedError,
    is_silent_error,
)

UNAUTHENTICATED = {"message": "Unauthenticated."}


async def _spin(times: int = 20) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Single acquisition
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_concurrent_posts_share_one_priming_call(make_stub_api, sanctum):
    async with make_stub_api() as api:
        responses = await asyncio.gather(
            *(api.post(f"/api/articles/{i}") for i in range(5))
        )

    assert [r.status_code for r in responses] == [200] * 5
    assert sanctum.primes == 1
    assert all(r.headers["x-xsrf-token"] == "tok-1" for r in sanctum.requests)


@pytest.mark.asyncio
async def test_acquisition_starts_over_once_finished(make_stub_api, sanctum):
    async with make_stub_api() as api:
        first = await api.acquire_token()
        api.state.tokens.clear()
        second = await api.acquire_token()

    assert first == second == "tok-1"
    assert sanctum.primes == 2


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_acquisition_running(make_stub_api, sanctum):
    sanctum.prime_gate = asyncio.Event()

    async with make_stub_api() as api:
        doomed = asyncio.ensure_future(api.post("/api/a"))
        survivor = asyncio.ensure_future(api.post("/api/b"))
        await _spin()
        assert sanctum.primes == 1

        doomed.cancel()
        await _spin()
        sanctum.prime_gate.set()
        response = await survivor

        with pytest.raises(asyncio.CancelledError):
            await doomed

    assert response.status_code == 200
    assert sanctum.primes == 1
    assert sanctum.calls("POST", "/api/a") == []
    assert sanctum.calls("POST", "/api/b")[0].headers["x-xsrf-token"] == "tok-1"


# ---------------------------------------------------------------------------
# Redirect on expired session
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_burst_of_401s_redirects_exactly_once(make_stub_api, sanctum):
    for _ in range(3):
        sanctum.script("GET", "/api/articles", 401, UNAUTHENTICATED)
    events = []

    async with make_stub_api(path="/dashboard/products") as api:
        api.browser.add_event_listener(UNAUTHORIZED_EVENT, events.append)
        results = await asyncio.gather(
            *(api.get("/api/articles") for _ in range(3)), return_exceptions=True
        )

        assert all(isinstance(r, SilentAuthError) for r in results)
        assert all(is_silent_error(r) for r in results)
        reasons = sorted(r.reason.value for r in results)
        assert reasons == ["redirect_pending", "redirect_pending", "redirecting"]

        assert events == [{"path": "/dashboard/products"}]
        assert api.browser.scheduled == ["/login"]
        assert api.browser.history == []  # not yet: navigation is delayed

        await asyncio.sleep(0.05)

        assert api.browser.history == ["/login"]
        assert api.browser.path == "/login"
        assert api.state.redirecting is False


@pytest.mark.asyncio
async def test_navigation_clears_token_and_flags(make_stub_api, sanctum):
    async with make_stub_api() as api:
        await api.acquire_token()
        api.state.redirecting = True
        api.browser.navigate("/dashboard")

        assert api.state.tokens.get() is None
        assert api.state.redirecting is False
        assert api.state.logging_out is False


@pytest.mark.asyncio
async def test_401_on_login_page_is_not_redirected(make_stub_api, sanctum):
    sanctum.script("GET", "/api/user", 401, UNAUTHENTICATED)

    async with make_stub_api(path="/login") as api:
        with pytest.raises(UnauthenticatedError) as exc_info:
            await api.get("/api/user")

        assert not is_silent_error(exc_info.value)
        assert api.browser.scheduled == []


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/", "/about", "/dashboards-public"])
async def test_401_on_public_route_reaches_caller(make_stub_api, sanctum, path):
    sanctum.script("GET", "/api/user", 401, UNAUTHENTICATED)
    events = []

    async with make_stub_api(path=path) as api:
        api.browser.add_event_listener(UNAUTHORIZED_EVENT, events.append)
        with pytest.raises(UnauthenticatedError) as exc_info:
            await api.get("/api/user")

        assert type(exc_info.value) is UnauthenticatedError
        assert exc_info.value.message == "Unauthenticated."
        assert exc_info.value.status_code == 401
        assert api.browser.scheduled == []
        assert api.state.redirecting is False
    assert events == []


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_401_during_logout_is_silent_and_does_not_redirect(make_stub_api, sanctum):
    sanctum.script("GET", "/api/notifications", 401, UNAUTHENTICATED)

    async with make_stub_api(path="/dashboard") as api:
        api.begin_logout()
        with pytest.raises(SilentAuthError) as exc_info:
            await api.get("/api/notifications")

        assert exc_info.value.reason is SilentReason.logging_out
        assert exc_info.value.is_logging_out
        assert api.browser.scheduled == []


@pytest.mark.asyncio
async def test_logout_flag_clears_after_grace(make_stub_api):
    async with make_stub_api() as api:
        api.begin_logout()
        api.end_logout()
        assert api.state.logging_out is True

        await asyncio.sleep(0.1)
        assert api.state.logging_out is False


@pytest.mark.asyncio
async def test_new_logout_cancels_pending_clear(make_stub_api):
    async with make_stub_api() as api:
        api.begin_logout()
        api.end_logout()
        api.begin_logout()  # second logout before the grace ran out

        await asyncio.sleep(0.1)
        assert api.state.logging_out is True

        api.end_logout(0)
        assert api.state.logging_out is False


@pytest.mark.asyncio
async def test_overlapping_logouts_keep_flag_until_last_grace_ends(make_stub_api):
    async with make_stub_api() as api:
        api.begin_logout()
        api.begin_logout()
        api.end_logout(0.05)
        await asyncio.sleep(0.03)
        api.end_logout(0.05)  # second logout ends at t=0.03, grace runs to t=0.08

        await asyncio.sleep(0.03)
        assert api.state.logging_out is True

        await asyncio.sleep(0.05)
        assert api.state.logging_out is False


@pytest.mark.asyncio
async def test_ending_logout_twice_restarts_grace(make_stub_api):
    async with make_stub_api() as api:
        api.end_logout(0.05)
        api.state.logging_out = True
        await asyncio.sleep(0.03)
        api.end_logout(0.05)

        await asyncio.sleep(0.03)
        assert api.state.logging_out is True


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/", "/about", "/login"])
async def test_401_during_logout_is_silent_on_public_routes(make_stub_api, sanctum, path):
    sanctum.script("GET", "/api/user", 401, UNAUTHENTICATED)
    events = []

    async with make_stub_api(path=path) as api:
        api.browser.add_event_listener(UNAUTHORIZED_EVENT, events.append)
        api.begin_logout()
        with pytest.raises(SilentAuthError) as exc_info:
            await api.get("/api/user")

        assert exc_info.value.reason is SilentReason.logging_out
        assert is_silent_error(exc_info.value)
        assert api.browser.scheduled == []
    assert events == []


# ---------------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_closing_client_cancels_pending_redirect(make_stub_api, sanctum):
    sanctum.script("GET", "/api/articles", 401, UNAUTHENTICATED)

    api = make_stub_api(path="/dashboard")
    async with api:
        with pytest.raises(SilentAuthError):
            await api.get("/api/articles")
        assert api.browser.scheduled == ["/login"]

    await asyncio.sleep(0.05)
    assert api.browser.history == []
    assert api.browser.path == "/dashboard"
