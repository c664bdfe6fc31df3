"""
Client-side auth flows end to end: ApiClient + auth service against the dev
backend in-process (httpx.ASGITransport).

Covers:
- sign up / sign in / sign out through AuthSession
- the cached token follows the rotation on login and logout
- a stale cached token is recovered with one replay
- a dropped session on a protected page clears the user and redirects once
- 401s right after logout stay silent
"""

import asyncio
import logging

import pytest

from src.bizdesk import auth
from src.bizdesk.backend.auth import SESSION_COOKIE
from src.bizdesk.browser import UNAUTHORIZED_EVENT
from src.bizdesk.errors import (
    SilentAuthError,
    SilentReason,
    UnauthenticatedError,
    ValidationFailed,
)
from src.bizdesk.schemas import ArticlePayload, LoginCredentials, RegisterData
from src.bizdesk.services import articles

OWNER = RegisterData(
    first_name="Ada",
    last_name="Lovelace",
    username="ada",
    email="ada@example.com",
    password="password123",
    password_confirmation="password123",
)


# ---------------------------------------------------------------------------
# Sign up / sign in / sign out
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sign_up_then_check(make_api):
    async with make_api(path="/register") as api:
        session = auth.AuthSession(api)
        user = await session.sign_up(OWNER)

        assert session.is_authenticated
        assert user.username == "ada"

        checked = await session.check()
        assert checked.id == user.id
        assert checked.total_articles == 0


@pytest.mark.asyncio
async def test_check_without_session_returns_none(make_api):
    async with make_api(path="/") as api:
        session = auth.AuthSession(api)
        assert await session.check() is None
        assert not session.is_authenticated


@pytest.mark.asyncio
async def test_sign_in_logs_success(make_api, caplog):
    async with make_api(path="/register") as api:
        await auth.register(api, OWNER)

    async with make_api(path="/login") as api:
        session = auth.AuthSession(api)
        with caplog.at_level(logging.INFO, logger="src.bizdesk.auth"):
            user = await session.sign_in(LoginCredentials(login="ADA", password="password123"))

    assert user.email == "ada@example.com"
    assert any(f"auth_login_success user_id={user.id}" in r.message for r in caplog.records)


@pytest.mark.asyncio
async def test_wrong_password_on_login_page_reaches_caller(make_api):
    async with make_api(path="/register") as api:
        await auth.register(api, OWNER)

    async with make_api(path="/login") as api:
        with pytest.raises(UnauthenticatedError) as exc_info:
            await auth.login(api, LoginCredentials(login="ada", password="wrong-password"))

        assert not exc_info.value.silent
        assert exc_info.value.message == "These credentials do not match our records."
        assert api.browser.scheduled == []


@pytest.mark.asyncio
async def test_duplicate_registration_logs_field_errors(make_api, caplog):
    async with make_api(path="/register") as api:
        await auth.register(api, OWNER)

    async with make_api(path="/register") as api:
        with caplog.at_level(logging.ERROR, logger="src.bizdesk.auth"):
            with pytest.raises(ValidationFailed) as exc_info:
                await auth.register(api, OWNER)

    assert exc_info.value.status_code == 422
    assert exc_info.value.validation_errors["email"] == ["The email has already been taken."]
    messages = " ".join(r.message for r in caplog.records)
    assert "auth_register_error status=422" in messages
    assert "auth_register_invalid field=username" in messages


@pytest.mark.asyncio
async def test_sign_out_clears_user_and_session(make_api):
    async with make_api(path="/") as api:
        session = auth.AuthSession(api)
        await session.sign_up(OWNER)

        await session.sign_out()

        assert session.user is None
        assert api.state.logging_out is True
        await asyncio.sleep(0.1)
        assert api.state.logging_out is False
        assert await auth.get_user(api) is None


@pytest.mark.asyncio
async def test_request_right_after_logout_is_silent(make_api):
    async with make_api(path="/dashboard") as api:
        await auth.register(api, OWNER)
        await auth.logout(api)

        with pytest.raises(SilentAuthError) as exc_info:
            await articles.get_articles(api)

        assert exc_info.value.reason is SilentReason.logging_out
        assert api.browser.scheduled == []


@pytest.mark.asyncio
async def test_logout_without_session_still_finishes(make_api):
    async with make_api(path="/") as api:
        await auth.logout(api)
        assert api.state.logging_out is True


# ---------------------------------------------------------------------------
# Token lifecycle against the real backend
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_get_csrf_cookie_primes_session(make_api):
    async with make_api() as api:
        assert api.read_token() is None
        await auth.get_csrf_cookie(api)
        assert api.read_token() is not None
        assert api.state.tokens.get() == api.read_token()


@pytest.mark.asyncio
async def test_cached_token_follows_login_rotation(make_api):
    async with make_api(path="/register") as api:
        await auth.register(api, OWNER)

    async with make_api(path="/login") as api:
        await auth.get_csrf_cookie(api)
        before = api.state.tokens.get()

        await auth.login(api, LoginCredentials(login="ada", password="password123"))

        assert api.state.tokens.get() == api.read_token()
        assert api.state.tokens.get() != before


@pytest.mark.asyncio
async def test_stale_cached_token_is_replayed_once(make_api):
    async with make_api() as api:
        await auth.register(api, OWNER)
        api.state.tokens.set("stale-token")

        article = await articles.add_article(
            api, ArticlePayload(name="Soap", sale_price=3, quantity=10)
        )

        assert article.name == "Soap"
        assert api.state.tokens.get() == api.read_token()


# ---------------------------------------------------------------------------
# Expired session
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_dropped_session_redirects_and_clears_user(make_api):
    events = []

    async with make_api(path="/dashboard") as api:
        session = auth.AuthSession(api)
        await session.sign_up(OWNER)
        api.browser.add_event_listener(UNAUTHORIZED_EVENT, events.append)

        api.cookies.delete(SESSION_COOKIE)
        results = await asyncio.gather(
            articles.get_articles(api),
            articles.get_user_stats(api),
            return_exceptions=True,
        )

        assert all(isinstance(r, SilentAuthError) for r in results)
        assert session.user is None
        assert events == [{"path": "/dashboard"}]

        await asyncio.sleep(0.05)
        assert api.browser.history == ["/login"]
        session.close()


@pytest.mark.asyncio
async def test_closed_session_ignores_unauthorized_event(make_api):
    async with make_api() as api:
        session = auth.AuthSession(api)
        await session.sign_up(OWNER)
        session.close()

        api.browser.dispatch_event(UNAUTHORIZED_EVENT, {"path": "/dashboard"})
        assert session.user is not None
