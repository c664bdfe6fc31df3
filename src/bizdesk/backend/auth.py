"""
Session handling for the dev backend.

Provides:
- Password hashing / verification (bcrypt)
- Signed, timed session cookie (itsdangerous) carrying the session id, the
  CSRF secret and the signed-in user id
- FastAPI dependencies: get_session, get_current_user
- In-memory per-IP login rate limiter
"""

import secrets
import threading
import uuid
from collections import defaultdict
from datetime import datetime, timezone

import bcrypt
from fastapi import Depends, HTTPException, Request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from src.bizdesk.backend.database import get_db
from src.bizdesk.backend.models import User
from src.bizdesk.config import IS_PROD, SECRET_KEY

# ── Password hashing ──────────────────────────────────────────────────────────


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


# ── Session cookie ────────────────────────────────────────────────────────────

_SESSION_SALT = "session-v1"
SESSION_COOKIE = "bizdesk_session"
SESSION_LIFETIME = 2 * 60 * 60  # seconds, Laravel's default 120 minutes


def new_session(user_id: int | None = None) -> dict:
    """A fresh session: new id and new CSRF secret."""
    return {
        "sid": uuid.uuid4().hex,
        "csrf": secrets.token_urlsafe(32),
        "user_id": user_id,
    }


def encode_session(session: dict) -> str:
    s = URLSafeTimedSerializer(SECRET_KEY, salt=_SESSION_SALT)
    return s.dumps(session)


def decode_session(token: str) -> dict | None:
    s = URLSafeTimedSerializer(SECRET_KEY, salt=_SESSION_SALT)
    try:
        return s.loads(token, max_age=SESSION_LIFETIME)
    except (BadSignature, SignatureExpired):
        return None


def read_session(request: Request) -> dict | None:
    token = request.cookies.get(SESSION_COOKIE)
    return decode_session(token) if token else None


def set_session_cookie(response, session: dict) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=encode_session(session),
        httponly=True,
        samesite="lax",
        secure=IS_PROD,
        max_age=SESSION_LIFETIME,
    )


# ── Dependencies ──────────────────────────────────────────────────────────────


def get_session(request: Request) -> dict | None:
    return read_session(request)


def get_current_user(
    session: dict | None = Depends(get_session),
    db: Session = Depends(get_db),
) -> User:
    """Return the authenticated User or raise 401."""
    if not session or not session.get("user_id"):
        raise HTTPException(status_code=401, detail="Unauthenticated.")
    user = db.get(User, session["user_id"])
    if not user:
        raise HTTPException(status_code=401, detail="Unauthenticated.")
    return user


# ── Rate limiter ──────────────────────────────────────────────────────────────

_RATE_WINDOW = 60  # seconds
_RATE_MAX = 5  # max login attempts per window per IP

_login_attempts: dict[str, list[float]] = defaultdict(list)
_rate_lock = threading.Lock()


def check_login_rate_limit(ip: str) -> None:
    """Raise HTTP 429 if the IP has exceeded the login rate limit."""
    now = datetime.now(timezone.utc).timestamp()
    with _rate_lock:
        attempts = [t for t in _login_attempts[ip] if now - t < _RATE_WINDOW]
        attempts.append(now)
        _login_attempts[ip] = attempts
        if len(attempts) > _RATE_MAX:
            raise HTTPException(
                status_code=429,
                detail="Too many login attempts. Please wait a minute.",
            )


def _reset_rate_limits() -> None:
    """Clear all recorded login attempts. Used only in tests."""
    with _rate_lock:
        _login_attempts.clear()
