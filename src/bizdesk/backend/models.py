"""
ORM models for the dev backend.

Tables (5):
    User          – shop owner; company_share is the revenue % not yet given
                    to collaborators
    Article       – inventory item; low stock at or below LOW_STOCK_THRESHOLD
    Collaborator  – revenue-sharing partner; part is taken from company_share
    Notification  – per-user message (low stock warnings, mostly)
    Transaction   – sale (of an article) or expense; feeds the wallet
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.bizdesk.backend.database import Base

LOW_STOCK_THRESHOLD = 5


def _utcnow() -> datetime:
    """Current UTC time as a naive datetime (stored as-is in SQLite)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ── Enums ─────────────────────────────────────────────────────────────────────


class ArticleType(str, enum.Enum):
    simple = "simple"
    variable = "variable"


class TransactionType(str, enum.Enum):
    sale = "sale"
    expense = "expense"


class NotificationType(str, enum.Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


# ── Models ────────────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "user"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    company_share: Mapped[float] = mapped_column(Float, nullable=False, default=100.0)
    profile_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)

    articles: Mapped[list["Article"]] = relationship(
        back_populates="owner", cascade="all, delete-orphan"
    )
    collaborators: Mapped[list["Collaborator"]] = relationship(
        back_populates="owner", cascade="all, delete-orphan"
    )
    notifications: Mapped[list["Notification"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def _total(self, kind: "TransactionType") -> float:
        return round(sum(t.amount for t in self.transactions if t.type is kind), 2)

    @property
    def total_sale(self) -> float:
        return self._total(TransactionType.sale)

    @property
    def total_expense(self) -> float:
        return self._total(TransactionType.expense)

    @property
    def calculated_wallet(self) -> float:
        return round(self.total_sale - self.total_expense, 2)

    @property
    def wallet(self) -> float:
        return round(self.calculated_wallet * self.company_share / 100, 2)


class Article(Base):
    __tablename__ = "article"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sale_price: Mapped[float] = mapped_column(Float, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    type: Mapped[ArticleType] = mapped_column(Enum(ArticleType), nullable=False)
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, onupdate=_utcnow
    )

    owner: Mapped["User"] = relationship(back_populates="articles")

    @property
    def low_stock(self) -> bool:
        return self.quantity <= LOW_STOCK_THRESHOLD

    @property
    def stock_value(self) -> float:
        return round(self.quantity * self.sale_price, 2)


class Collaborator(Base):
    __tablename__ = "collaborator"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    part: Mapped[float] = mapped_column(Float, nullable=False)
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)

    owner: Mapped["User"] = relationship(back_populates="collaborators")

    @property
    def wallet(self) -> float:
        """This collaborator's cut of the owner's balance."""
        return round(self.owner.calculated_wallet * self.part / 100, 2)


class Notification(Base):
    __tablename__ = "notification"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[NotificationType] = mapped_column(Enum(NotificationType), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    article_id: Mapped[int | None] = mapped_column(
        ForeignKey("article.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, index=True
    )

    user: Mapped["User"] = relationship(back_populates="notifications")


class Transaction(Base):
    __tablename__ = "transaction"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[TransactionType] = mapped_column(Enum(TransactionType), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Sales only: the article sold, how many, at what unit price.
    article_id: Mapped[int | None] = mapped_column(
        ForeignKey("article.id", ondelete="SET NULL"), nullable=True
    )
    quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sale_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, onupdate=_utcnow
    )

    user: Mapped["User"] = relationship(back_populates="transactions")
