"""
Collaborator routes for the dev backend.

    GET    /api/collaborators         – list
    GET    /api/collaborators/{id}    – detail
    POST   /api/collaborators         – create (201)
    PUT    /api/collaborators/{id}    – update name/phone/image
    DELETE /api/collaborators/{id}    – delete, returns {"returned_part": ...}

Share rules:
    - A collaborator's part is deducted from the owner's company_share.
    - Creating one with a part above the remaining company_share is a 422.
    - Deleting one gives its part back to the owner.
    - The part itself can't be changed after creation.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.orm import Session

from src.bizdesk.backend.auth import get_current_user
from src.bizdesk.backend.csrf import verify_xsrf
from src.bizdesk.backend.database import get_db
from src.bizdesk.backend.models import Collaborator, User
from src.bizdesk.backend.serializers import collaborator_dict, ok
from src.bizdesk.schemas import CollaboratorCreate, CollaboratorUpdate

router = APIRouter(prefix="/api/collaborators", dependencies=[Depends(verify_xsrf)])
logger = logging.getLogger(__name__)


def _get_owned(db: Session, user: User, collaborator_id: int) -> Collaborator:
    collaborator = db.get(Collaborator, collaborator_id)
    if collaborator is None:
        raise HTTPException(status_code=404, detail="Collaborator not found.")
    if collaborator.user_id != user.id:
        raise HTTPException(status_code=403, detail="This collaborator belongs to another account.")
    return collaborator


@router.get("")
def list_collaborators(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    collaborators = (
        db.query(Collaborator)
        .filter(Collaborator.user_id == current_user.id)
        .order_by(Collaborator.id)
        .all()
    )
    return ok([collaborator_dict(c) for c in collaborators])


@router.get("/{collaborator_id}")
def get_collaborator(
    collaborator_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return ok(collaborator_dict(_get_owned(db, current_user, collaborator_id)))


@router.post("", status_code=201)
def create_collaborator(
    body: CollaboratorCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    part = round(body.part, 2)
    if part > current_user.company_share:
        raise RequestValidationError(
            [
                {
                    "loc": ("body", "part"),
                    "msg": f"The part may not exceed the company share ({current_user.company_share}%).",
                    "type": "value_error",
                }
            ]
        )

    collaborator = Collaborator(
        user_id=current_user.id,
        name=body.name,
        phone=body.phone,
        part=part,
        image=body.image,
    )
    current_user.company_share = round(current_user.company_share - part, 2)
    db.add(collaborator)
    db.commit()
    db.refresh(collaborator)

    logger.info(
        "collaborator_created user_id=%d collaborator_id=%d part=%.2f company_share=%.2f",
        current_user.id, collaborator.id, part, current_user.company_share,
    )
    return ok(collaborator_dict(collaborator), "Collaborator created.")


@router.put("/{collaborator_id}")
def update_collaborator(
    collaborator_id: int,
    body: CollaboratorUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    collaborator = _get_owned(db, current_user, collaborator_id)
    for field, value in body.model_dump(exclude_none=True).items():
        setattr(collaborator, field, value)
    db.commit()
    db.refresh(collaborator)
    return ok(collaborator_dict(collaborator), "Collaborator updated.")


@router.delete("/{collaborator_id}")
def delete_collaborator(
    collaborator_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    collaborator = _get_owned(db, current_user, collaborator_id)
    returned = collaborator.part
    current_user.company_share = round(current_user.company_share + returned, 2)
    db.delete(collaborator)
    db.commit()

    logger.info(
        "collaborator_deleted user_id=%d collaborator_id=%d returned_part=%.2f",
        current_user.id, collaborator_id, returned,
    )
    return ok({"returned_part": returned}, "Collaborator deleted.")
