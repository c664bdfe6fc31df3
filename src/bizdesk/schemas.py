"""
Data shapes exchanged with the backend.

Shared by the client services (to parse responses) and by the dev backend
(to validate request bodies), so both ends agree on the contract.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ── Users & auth ──────────────────────────────────────────────────────────────


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    first_name: str
    last_name: str
    username: str
    email: str
    company_share: float = 100.0
    profile_image: str | None = None
    total_articles: int | None = None
    total_low_stock: int | None = None
    total_stock_value: float | None = None
    total_remaining_quantity: int | None = None
    total_sale: float | None = None
    total_expense: float | None = None
    calculated_wallet: float | None = None
    wallet: float | None = None


class LoginCredentials(BaseModel):
    login: str  # email or username
    password: str
    remember: bool = False

    @field_validator("login")
    @classmethod
    def _login_normalise(cls, v: str) -> str:
        return v.strip().lower()


class RegisterData(BaseModel):
    first_name: str
    last_name: str
    username: str
    email: str
    password: str
    password_confirmation: str
    company_share: float = Field(default=100.0, ge=0, le=100)
    profile_image: str | None = None

    @field_validator("email", "username")
    @classmethod
    def _normalise(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def _password_length(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("password must be at least 8 characters")
        return v

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterData":
        if self.password != self.password_confirmation:
            raise ValueError("password confirmation does not match")
        return self


# ── Articles ──────────────────────────────────────────────────────────────────


class Article(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    sale_price: float
    quantity: int
    type: Literal["simple", "variable"]
    image: str | None = None
    low_stock: bool = False
    stock_value: float = 0.0


class ArticlePayload(BaseModel):
    name: str
    sale_price: float = Field(ge=0)
    quantity: int = Field(ge=0)
    type: Literal["simple", "variable"] = "simple"
    image: str | None = None

    @field_validator("name")
    @classmethod
    def _name_present(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        return v


# ── Collaborators ─────────────────────────────────────────────────────────────


class Collaborator(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    user_id: int
    name: str
    phone: str
    part: float
    image: str | None = None
    wallet: float = 0.0


class CollaboratorCreate(BaseModel):
    name: str
    phone: str
    # Percentage of revenue, taken out of the owner's company share.
    part: float = Field(ge=0.01, le=99.99)
    image: str | None = None


class CollaboratorUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    image: str | None = None


# ── Notifications ─────────────────────────────────────────────────────────────


class Notification(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    type: Literal["info", "success", "warning", "error"]
    title: str
    message: str
    read: bool = False
    article_id: int | None = None
    created_at: datetime | None = None


class Pagination(BaseModel):
    current_page: int
    per_page: int
    total: int
    last_page: int


class NotificationPage(BaseModel):
    notifications: list[Notification]
    pagination: Pagination
    unread_count: int


# ── Wallet & transactions ─────────────────────────────────────────────────────


class WalletStats(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_sale: float = 0.0
    total_expense: float = 0.0
    # Sales minus expenses: the business balance.
    calculated_wallet: float = 0.0
    # The owner's cut of the balance (company_share %).
    wallet: float = 0.0


class Transaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    type: Literal["sale", "expense"]
    name: str
    amount: float
    article_id: int | None = None
    quantity: int | None = None
    sale_price: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def date(self) -> datetime | None:
        return self.created_at or self.updated_at


class SalePayload(BaseModel):
    type: Literal["sale"] = "sale"
    article_id: int
    quantity: int = Field(ge=1)
    # Defaults to the article's price when omitted.
    sale_price: float | None = Field(default=None, ge=0)


class ExpensePayload(BaseModel):
    type: Literal["expense"] = "expense"
    name: str
    amount: float = Field(gt=0)

    @field_validator("name")
    @classmethod
    def _name_present(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        return v


class SaleUpdate(BaseModel):
    name: str
    quantity: int | None = Field(default=None, ge=1)
    sale_price: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _something_changes(self) -> "SaleUpdate":
        if self.quantity is None and self.sale_price is None:
            raise ValueError("quantity or sale_price is required")
        return self


class ExpenseUpdate(BaseModel):
    name: str
    amount: float = Field(gt=0)


class TransactionUpdate(BaseModel):
    """What PUT /api/transactions/{id} accepts; the stored type decides which fields apply."""

    name: str
    quantity: int | None = Field(default=None, ge=1)
    sale_price: float | None = Field(default=None, ge=0)
    amount: float | None = Field(default=None, gt=0)
