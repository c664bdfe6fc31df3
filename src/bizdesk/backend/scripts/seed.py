"""
Demo seed script: one shop owner with a few articles, a collaborator and a
first sale and expense.

Usage:
    python -m src.bizdesk.backend.scripts.seed   # creates data/bizdesk.db if needed

Demo credentials:
    Owner  →  demo@bizdesk.dev (or "demo")  /  Demo1234!

Idempotency:
    If the demo account already exists the script prints a warning and exits
    without inserting duplicate rows. Safe to run multiple times.
"""

from sqlalchemy.orm import Session

from src.bizdesk.backend.auth import hash_password
from src.bizdesk.backend.database import SessionLocal, init_db
from src.bizdesk.backend.models import (
    Article,
    ArticleType,
    Collaborator,
    Notification,
    NotificationType,
    Transaction,
    TransactionType,
    User,
)

# ── Demo credentials ──────────────────────────────────────────────────────────

DEMO_EMAIL = "demo@bizdesk.dev"
DEMO_USERNAME = "demo"
DEMO_PASSWORD = "Demo1234!"

# ── Seed data ─────────────────────────────────────────────────────────────────

_ARTICLES = [
    # (name, sale_price, quantity, type)
    ("Handmade soap", 4.5, 40, ArticleType.simple),
    ("Scented candle", 12.0, 3, ArticleType.simple),  # low stock
    ("Linen tote bag", 18.0, 25, ArticleType.variable),
]

_COLLABORATOR = ("Awa Diallo", "+221 77 000 00 00", 20.0)

_SALE = ("Handmade soap", 4)  # (article, quantity)
_EXPENSE = ("Market stall rent", 15.0)


def run(db: Session) -> bool:
    """
    Seed demo data into the given session.

    Returns True if data was inserted, False if already present (idempotent).
    """
    if db.query(User).filter(User.email == DEMO_EMAIL).first():
        print(f"[seed] Demo data already present ('{DEMO_EMAIL}' exists). Skipping.")
        return False

    name, phone, part = _COLLABORATOR
    owner = User(
        first_name="Demo",
        last_name="Owner",
        username=DEMO_USERNAME,
        email=DEMO_EMAIL,
        password_hash=hash_password(DEMO_PASSWORD),
        company_share=100.0 - part,
    )
    db.add(owner)
    db.flush()

    stock = {}
    for article_name, price, quantity, kind in _ARTICLES:
        article = stock[article_name] = Article(
            user_id=owner.id,
            name=article_name,
            sale_price=price,
            quantity=quantity,
            type=kind,
        )
        db.add(article)
        db.flush()
        if article.low_stock:
            db.add(
                Notification(
                    user_id=owner.id,
                    type=NotificationType.warning,
                    title="Low stock",
                    message=f"Only {quantity} left of '{article_name}'.",
                    article_id=article.id,
                )
            )

    db.add(Collaborator(user_id=owner.id, name=name, phone=phone, part=part))

    sold, count = _SALE
    article = stock[sold]
    article.quantity -= count
    db.add(
        Transaction(
            user_id=owner.id,
            type=TransactionType.sale,
            name=article.name,
            article_id=article.id,
            quantity=count,
            sale_price=article.sale_price,
            amount=round(article.sale_price * count, 2),
        )
    )
    expense_name, amount = _EXPENSE
    db.add(
        Transaction(
            user_id=owner.id, type=TransactionType.expense, name=expense_name, amount=amount
        )
    )
    db.commit()

    print("[seed] Demo data created successfully.")
    print(f"  Owner  →  {DEMO_EMAIL} (or '{DEMO_USERNAME}')  /  {DEMO_PASSWORD}")
    print(f"  {len(_ARTICLES)} articles, 1 collaborator ({part}% share)")
    print("  1 sale, 1 expense")
    print()
    print("  Start the dev backend:  uvicorn src.bizdesk.backend.main:app --reload")
    return True


if __name__ == "__main__":
    init_db()
    db = SessionLocal()
    try:
        run(db)
    finally:
        db.close()
