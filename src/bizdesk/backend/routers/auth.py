"""
Auth routes for the dev backend (Sanctum SPA contract).

    GET  /sanctum/csrf-cookie  – start/resume a session, set XSRF-TOKEN (204)
    POST /api/login            – authenticate by email or username
    POST /api/register         – create account and sign in (201)
    POST /api/logout           – end the session (204)
    GET  /api/user             – current user with stock totals
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session

from src.bizdesk.backend.auth import (
    check_login_rate_limit,
    get_current_user,
    get_session,
    hash_password,
    new_session,
    verify_password,
)
from src.bizdesk.backend.csrf import issue_session, verify_xsrf
from src.bizdesk.backend.database import get_db
from src.bizdesk.backend.models import User
from src.bizdesk.backend.serializers import user_dict
from src.bizdesk.schemas import LoginCredentials, RegisterData

router = APIRouter(dependencies=[Depends(verify_xsrf)])
logger = logging.getLogger(__name__)


@router.get("/sanctum/csrf-cookie", status_code=204)
def csrf_cookie(session: dict | None = Depends(get_session)) -> Response:
    response = Response(status_code=204)
    issue_session(response, session or new_session())
    return response


@router.post("/api/login")
def api_login(
    body: LoginCredentials,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> dict:
    """Authenticate and regenerate the session (the token rotates)."""
    client_ip = request.client.host if request.client else "unknown"
    check_login_rate_limit(client_ip)

    user = (
        db.query(User)
        .filter(or_(User.email == body.login, User.username == body.login))
        .first()
    )
    if not user or not verify_password(body.password, user.password_hash):
        logger.warning("auth_login_failure login=%s ip=%s", body.login, client_ip)
        raise HTTPException(
            status_code=401, detail="These credentials do not match our records."
        )

    logger.info("auth_login_success user_id=%d login=%s", user.id, body.login)
    issue_session(response, new_session(user.id))
    return user_dict(user)


@router.post("/api/register", status_code=201)
def api_register(
    body: RegisterData,
    response: Response,
    db: Session = Depends(get_db),
) -> dict:
    errors = []
    if db.query(User).filter(User.email == body.email).first():
        errors.append(
            {"loc": ("body", "email"), "msg": "The email has already been taken.", "type": "unique"}
        )
    if db.query(User).filter(User.username == body.username).first():
        errors.append(
            {"loc": ("body", "username"), "msg": "The username has already been taken.", "type": "unique"}
        )
    if errors:
        raise RequestValidationError(errors)

    user = User(
        first_name=body.first_name,
        last_name=body.last_name,
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
        company_share=body.company_share,
        profile_image=body.profile_image,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("auth_register user_id=%d", user.id)
    issue_session(response, new_session(user.id))
    return user_dict(user)


@router.post("/api/logout", status_code=204)
def api_logout(current_user: User = Depends(get_current_user)) -> Response:
    logger.info("auth_logout user_id=%d", current_user.id)
    response = Response(status_code=204)
    issue_session(response, new_session())
    return response


@router.get("/api/user")
def api_user(current_user: User = Depends(get_current_user)) -> dict:
    return user_dict(current_user, with_stats=True)
