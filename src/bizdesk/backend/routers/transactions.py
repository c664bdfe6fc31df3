"""
Wallet transaction routes for the dev backend.

    GET    /api/transactions         – list, newest first
    POST   /api/transactions         – record a sale or an expense (201)
    PUT    /api/transactions/{id}    – update
    DELETE /api/transactions/{id}    – delete

Stock rules:
    - A sale takes its quantity out of the article's stock; selling more than
      is left is a 422 on "quantity".
    - Selling from an article that is missing or belongs to another account
      is a 403.
    - Editing a sale's quantity moves the difference in or out of stock;
      deleting a sale puts its quantity back.
    - A sale that brings the article down to the low-stock threshold adds a
      warning notification.

The balance (sales minus expenses) and each party's cut of it are computed
from these rows; see ``User.calculated_wallet``.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.orm import Session

from src.bizdesk.backend.auth import get_current_user
from src.bizdesk.backend.csrf import verify_xsrf
from src.bizdesk.backend.database import get_db
from src.bizdesk.backend.models import Article, Transaction, TransactionType, User
from src.bizdesk.backend.routers.articles import warn_low_stock
from src.bizdesk.backend.serializers import ok, transaction_dict
from src.bizdesk.schemas import ExpensePayload, SalePayload, TransactionUpdate

router = APIRouter(prefix="/api/transactions", dependencies=[Depends(verify_xsrf)])
logger = logging.getLogger(__name__)

NewTransaction = Annotated[SalePayload | ExpensePayload, Body(discriminator="type")]


def _invalid(field: str, msg: str) -> RequestValidationError:
    return RequestValidationError([{"loc": ("body", field), "msg": msg, "type": "value_error"}])


def _get_owned(db: Session, user: User, transaction_id: int) -> Transaction:
    transaction = db.get(Transaction, transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    if transaction.user_id != user.id:
        raise HTTPException(status_code=403, detail="This transaction belongs to another account.")
    return transaction


def _sellable_article(db: Session, user: User, article_id: int) -> Article:
    article = db.get(Article, article_id)
    if article is None or article.user_id != user.id:
        raise HTTPException(status_code=403, detail="Article not found.")
    return article


def _take_stock(db: Session, article: Article, quantity: int) -> None:
    """Remove ``quantity`` from stock (negative puts it back)."""
    if quantity > article.quantity:
        raise _invalid("quantity", f"Only {article.quantity} left in stock.")
    was_low = article.low_stock
    article.quantity -= quantity
    if not was_low:
        warn_low_stock(db, article)


@router.get("")
def list_transactions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    transactions = (
        db.query(Transaction)
        .filter(Transaction.user_id == current_user.id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )
    return ok([transaction_dict(t) for t in transactions])


@router.post("", status_code=201)
def create_transaction(
    body: NewTransaction,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    if isinstance(body, SalePayload):
        article = _sellable_article(db, current_user, body.article_id)
        price = article.sale_price if body.sale_price is None else body.sale_price
        _take_stock(db, article, body.quantity)
        transaction = Transaction(
            user_id=current_user.id,
            type=TransactionType.sale,
            name=article.name,
            article_id=article.id,
            quantity=body.quantity,
            sale_price=price,
            amount=round(price * body.quantity, 2),
        )
    else:
        transaction = Transaction(
            user_id=current_user.id,
            type=TransactionType.expense,
            name=body.name,
            amount=round(body.amount, 2),
        )
    db.add(transaction)
    db.commit()
    db.refresh(transaction)

    logger.info(
        "transaction_created user_id=%d transaction_id=%d type=%s amount=%.2f",
        current_user.id,
        transaction.id,
        transaction.type.value,
        transaction.amount,
    )
    return ok(transaction_dict(transaction), "Transaction created.")


@router.put("/{transaction_id}")
def update_transaction(
    transaction_id: int,
    body: TransactionUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    transaction = _get_owned(db, current_user, transaction_id)
    transaction.name = body.name.strip() or transaction.name

    if transaction.type is TransactionType.expense:
        if body.amount is None:
            raise _invalid("amount", "The amount field is required.")
        transaction.amount = round(body.amount, 2)
    else:
        quantity = transaction.quantity if body.quantity is None else body.quantity
        if body.sale_price is not None:
            transaction.sale_price = body.sale_price
        article = db.get(Article, transaction.article_id) if transaction.article_id else None
        if article is not None and quantity != transaction.quantity:
            _take_stock(db, article, quantity - transaction.quantity)
        transaction.quantity = quantity
        transaction.amount = round(transaction.sale_price * quantity, 2)

    db.commit()
    db.refresh(transaction)
    return ok(transaction_dict(transaction), "Transaction updated.")


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    transaction = _get_owned(db, current_user, transaction_id)
    if transaction.type is TransactionType.sale and transaction.article_id:
        article = db.get(Article, transaction.article_id)
        if article is not None:
            article.quantity += transaction.quantity
    db.delete(transaction)
    db.commit()

    logger.info("transaction_deleted user_id=%d transaction_id=%d", current_user.id, transaction_id)
    return ok(None, "Transaction deleted.")
