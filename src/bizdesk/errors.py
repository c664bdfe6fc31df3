"""
Errors raised by the API client.

Every non-2xx response ends up as an ``ApiError`` (or a subclass). Errors that
come from expected races, such as requests still in flight while the user logs
out or while the page is already heading to the login screen, are
``SilentAuthError`` instances: callers should not show them to the user.

    try:
        await articles.get_articles(client)
    except ApiError as exc:
        if is_silent_error(exc):
            return
        ...
"""

import enum

import httpx


class ApiError(Exception):
    """A request failed. ``status_code`` is None for transport failures."""

    silent = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response: httpx.Response | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        """Build the most specific error for *response*."""
        error_cls = ValidationFailed if response.status_code == 422 else cls
        message = _message_from(_json_dict(response)) or (
            f"HTTP {response.status_code}: {response.reason_phrase}"
        )
        return error_cls(message, status_code=response.status_code, response=response)

    @property
    def payload(self) -> dict:
        """Decoded JSON body, or an empty dict when there is none."""
        return _json_dict(self.response)

    @property
    def server_message(self) -> str | None:
        return _message_from(self.payload)

    @property
    def validation_errors(self) -> dict[str, list[str]]:
        errors = self.payload.get("errors")
        if not isinstance(errors, dict):
            return {}
        return {
            str(field): [str(m) for m in (msgs if isinstance(msgs, list) else [msgs])]
            for field, msgs in errors.items()
        }

    def first_validation_error(self) -> str | None:
        for messages in self.validation_errors.values():
            if messages:
                return messages[0]
        return None


class ValidationFailed(ApiError):
    """422: the backend rejected the payload."""


class NetworkError(ApiError):
    """No response: connection refused, DNS failure, reset..."""


class RequestTimeout(NetworkError):
    """The request exceeded the client timeout."""


class TokenMismatchError(ApiError):
    """419: the CSRF token was missing or stale."""

    def __init__(self, message: str, *, retried: bool, **kwargs) -> None:
        super().__init__(message, status_code=419, **kwargs)
        self.retried = retried


class UnauthenticatedError(ApiError):
    """401 received outside of a protected route."""

    def __init__(self, message: str = "Unauthenticated.", **kwargs) -> None:
        kwargs.setdefault("status_code", 401)
        super().__init__(message, **kwargs)


class SilentReason(str, enum.Enum):
    logging_out = "logging_out"
    redirect_pending = "redirect_pending"
    redirecting = "redirecting"


_SILENT_MESSAGES = {
    SilentReason.logging_out: "Unauthorized during logout",
    SilentReason.redirect_pending: "Unauthorized, redirect to login already under way",
    SilentReason.redirecting: "Unauthorized, redirecting to login",
}


class SilentAuthError(UnauthenticatedError):
    """401 that callers must not surface (logout race, login redirect)."""

    silent = True

    def __init__(self, reason: SilentReason, **kwargs) -> None:
        super().__init__(_SILENT_MESSAGES[reason], **kwargs)
        self.reason = reason

    @property
    def is_logging_out(self) -> bool:
        return self.reason is SilentReason.logging_out


def is_silent_error(exc: BaseException | None) -> bool:
    """True when *exc* should not be shown to the user."""
    return isinstance(exc, ApiError) and exc.silent


def _json_dict(response: httpx.Response | None) -> dict:
    if response is None:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _message_from(payload: dict) -> str | None:
    # Laravel uses "message"; FastAPI's HTTPException uses "detail".
    message = payload.get("message") or payload.get("detail")
    return message if isinstance(message, str) else None
