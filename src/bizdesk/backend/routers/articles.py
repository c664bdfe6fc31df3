"""
Article routes for the dev backend.

    GET    /api/articles         – list the user's articles
    GET    /api/articles/{id}    – detail
    POST   /api/articles         – create (201)
    PUT    /api/articles/{id}    – update
    DELETE /api/articles/{id}    – delete

Creating or updating an article at or below the low-stock threshold adds a
warning notification for its owner. Deleting one keeps its notifications and
sales, unlinked from it.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from src.bizdesk.backend.auth import get_current_user
from src.bizdesk.backend.csrf import verify_xsrf
from src.bizdesk.backend.database import get_db
from src.bizdesk.backend.models import (
    Article,
    ArticleType,
    Notification,
    NotificationType,
    Transaction,
    User,
)
from src.bizdesk.backend.serializers import article_dict, ok
from src.bizdesk.schemas import ArticlePayload

router = APIRouter(prefix="/api/articles", dependencies=[Depends(verify_xsrf)])
logger = logging.getLogger(__name__)


def _get_owned(db: Session, user: User, article_id: int) -> Article:
    article = db.get(Article, article_id)
    if article is None or article.user_id != user.id:
        raise HTTPException(status_code=404, detail="Article not found.")
    return article


def warn_low_stock(db: Session, article: Article) -> None:
    if not article.low_stock:
        return
    db.add(
        Notification(
            user_id=article.user_id,
            type=NotificationType.warning,
            title="Low stock",
            message=f"Only {article.quantity} left of '{article.name}'.",
            article_id=article.id,
        )
    )


@router.get("")
def list_articles(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    articles = (
        db.query(Article)
        .filter(Article.user_id == current_user.id)
        .order_by(Article.created_at.desc(), Article.id.desc())
        .all()
    )
    return ok([article_dict(a) for a in articles])


@router.get("/{article_id}")
def get_article(
    article_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return ok(article_dict(_get_owned(db, current_user, article_id)))


@router.post("", status_code=201)
def create_article(
    body: ArticlePayload,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    article = Article(
        user_id=current_user.id,
        name=body.name,
        sale_price=body.sale_price,
        quantity=body.quantity,
        type=ArticleType(body.type),
        image=body.image,
    )
    db.add(article)
    db.flush()
    warn_low_stock(db, article)
    db.commit()
    db.refresh(article)

    logger.info("article_created user_id=%d article_id=%d", current_user.id, article.id)
    return ok(article_dict(article), "Article created.")


@router.put("/{article_id}")
def update_article(
    article_id: int,
    body: ArticlePayload,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    article = _get_owned(db, current_user, article_id)
    was_low = article.low_stock
    article.name = body.name
    article.sale_price = body.sale_price
    article.quantity = body.quantity
    article.type = ArticleType(body.type)
    article.image = body.image
    if not was_low:
        warn_low_stock(db, article)
    db.commit()
    db.refresh(article)
    return ok(article_dict(article), "Article updated.")


@router.delete("/{article_id}")
def delete_article(
    article_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    article = _get_owned(db, current_user, article_id)
    db.query(Notification).filter(Notification.article_id == article.id).update(
        {Notification.article_id: None}
    )
    db.query(Transaction).filter(Transaction.article_id == article.id).update(
        {Transaction.article_id: None}
    )
    db.delete(article)
    db.commit()

    logger.info("article_deleted user_id=%d article_id=%d", current_user.id, article_id)
    return ok(None, "Article deleted.")
