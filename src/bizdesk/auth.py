"""
Session-based authentication against the backend.

Provides:
- login / register / logout / get_user service calls
- get_csrf_cookie for callers that want to prime the session up front
- AuthSession: the current user, kept in sync with ``auth:unauthorized``
"""

import logging

from src.bizdesk.api import ApiClient
from src.bizdesk.browser import UNAUTHORIZED_EVENT
from src.bizdesk.errors import ApiError, TokenMismatchError, UnauthenticatedError
from src.bizdesk.schemas import LoginCredentials, RegisterData, User

logger = logging.getLogger(__name__)


def _describe(exc: ApiError) -> str:
    parts = []
    if exc.status_code is not None:
        parts.append(f"status={exc.status_code}")
    if exc.payload:
        parts.append(f"data={exc.payload}")
    parts.append(f"message={exc.message}")
    return " ".join(parts)


def _user_from(payload: dict) -> User:
    # Accept both a bare user and a {"data": user} envelope.
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    return User.model_validate(data)


async def get_csrf_cookie(client: ApiClient) -> None:
    """Prime the session. Failures are logged only; requests handle 419 later."""
    token = await client.acquire_token()
    if token is None:
        logger.debug("csrf_cookie_unavailable")


async def login(client: ApiClient, credentials: LoginCredentials) -> User:
    try:
        response = await client.post("/api/login", json=credentials.model_dump())
    except UnauthenticatedError:
        # Wrong credentials: expected, the caller shows the message.
        raise
    except TokenMismatchError as exc:
        logger.error(
            "auth_login_csrf_mismatch %s; check the XSRF-TOKEN cookie reaches the "
            "client and the backend's stateful domains include this origin",
            _describe(exc),
        )
        raise
    except ApiError as exc:
        logger.error("auth_login_error %s", _describe(exc))
        raise
    user = _user_from(response.json())
    logger.info("auth_login_success user_id=%d", user.id)
    return user


async def register(client: ApiClient, data: RegisterData) -> User:
    try:
        response = await client.post("/api/register", json=data.model_dump())
    except ApiError as exc:
        logger.error("auth_register_error %s", _describe(exc))
        for field, messages in exc.validation_errors.items():
            logger.error("auth_register_invalid field=%s errors=%s", field, messages)
        raise
    return _user_from(response.json())


async def logout(client: ApiClient) -> None:
    """
    End the session. Always "succeeds": a failed logout call is logged and
    the caller proceeds as signed out.
    """
    client.begin_logout()
    try:
        await client.post("/api/logout")
    except UnauthenticatedError:
        pass  # already signed out
    except ApiError as exc:
        logger.error("auth_logout_error %s", _describe(exc))
    finally:
        # Let requests issued just before logout fail quietly for a moment.
        client.end_logout()


async def get_user(client: ApiClient) -> User | None:
    """Return the signed-in user, or None when there is no session."""
    try:
        response = await client.get("/api/user")
    except UnauthenticatedError:
        return None
    except ApiError as exc:
        logger.error("auth_get_user_error %s", _describe(exc))
        raise
    return _user_from(response.json())


class AuthSession:
    """
    The signed-in user as the rest of the application sees it.

    Drops the user as soon as the client reports the session expired, without
    waiting for the redirect to happen.
    """

    def __init__(self, client: ApiClient) -> None:
        self.client = client
        self.user: User | None = None
        client.browser.add_event_listener(UNAUTHORIZED_EVENT, self._on_unauthorized)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def check(self) -> User | None:
        self.user = await get_user(self.client)
        return self.user

    async def sign_in(self, credentials: LoginCredentials) -> User:
        self.user = await login(self.client, credentials)
        return self.user

    async def sign_up(self, data: RegisterData) -> User:
        self.user = await register(self.client, data)
        return self.user

    async def sign_out(self) -> None:
        try:
            await logout(self.client)
        finally:
            self.user = None

    def close(self) -> None:
        self.client.browser.remove_event_listener(UNAUTHORIZED_EVENT, self._on_unauthorized)

    def _on_unauthorized(self, detail) -> None:
        logger.info("auth_session_cleared detail=%s", detail)
        self.user = None
