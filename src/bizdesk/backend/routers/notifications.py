"""
Notification routes for the dev backend.

    GET    /api/notifications                – paginated list (+ unread count)
    GET    /api/notifications/unread-count   – unread count only
    PUT    /api/notifications/{id}/read      – mark one as read
    PUT    /api/notifications/read-all       – mark all as read
    DELETE /api/notifications/{id}           – delete one
"""

import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from src.bizdesk.backend.auth import get_current_user
from src.bizdesk.backend.csrf import verify_xsrf
from src.bizdesk.backend.database import get_db
from src.bizdesk.backend.models import Notification, User
from src.bizdesk.backend.serializers import notification_dict, ok

router = APIRouter(prefix="/api/notifications", dependencies=[Depends(verify_xsrf)])


def _unread_count(db: Session, user: User) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.read.is_(False))
        .count()
    )


def _get_owned(db: Session, user: User, notification_id: int) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != user.id:
        raise HTTPException(status_code=404, detail="Notification not found.")
    return notification


@router.get("")
def list_notifications(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    unread_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return ok(
        {
            "notifications": [notification_dict(n) for n in items],
            "pagination": {
                "current_page": page,
                "per_page": per_page,
                "total": total,
                "last_page": max(1, math.ceil(total / per_page)),
            },
            "unread_count": _unread_count(db, current_user),
        }
    )


@router.get("/unread-count")
def unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return ok({"unread_count": _unread_count(db, current_user)})


@router.put("/read-all")
def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == current_user.id, Notification.read.is_(False))
        .update({Notification.read: True})
    )
    db.commit()
    return ok({"updated": updated}, "All notifications marked as read.")


@router.put("/{notification_id}/read")
def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    notification = _get_owned(db, current_user, notification_id)
    notification.read = True
    db.commit()
    return ok(notification_dict(notification), "Notification marked as read.")


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    db.delete(_get_owned(db, current_user, notification_id))
    db.commit()
    return ok(None, "Notification deleted.")
