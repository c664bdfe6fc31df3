"""
Wallet: sales, expenses and the balance they add up to.

API:
    GET    /api/user                  – wallet totals for the signed-in user
    GET    /api/transactions          – list
    POST   /api/transactions          – record a sale or an expense
    PUT    /api/transactions/{id}     – update
    DELETE /api/transactions/{id}     – delete

Recording a sale takes stock from the article. Asking for more than is left
comes back as ``ValidationFailed`` on "quantity"; a 403 means the article
doesn't exist for this account.
"""

from datetime import datetime, timezone

from src.bizdesk.api import ApiClient
from src.bizdesk.schemas import (
    ExpensePayload,
    ExpenseUpdate,
    SalePayload,
    SaleUpdate,
    Transaction,
    WalletStats,
)
from src.bizdesk.services.common import normalize_list, unwrap

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(transaction: Transaction) -> datetime:
    date = transaction.date
    if date is None:
        return _EPOCH
    return date if date.tzinfo else date.replace(tzinfo=timezone.utc)


async def get_wallet_stats(client: ApiClient) -> WalletStats:
    response = await client.get("/api/user")
    return WalletStats.model_validate(unwrap(response))


async def get_transactions(client: ApiClient) -> list[Transaction]:
    """All transactions, newest first."""
    response = await client.get("/api/transactions")
    items = [Transaction.model_validate(item) for item in normalize_list(response.json())]
    return sorted(items, key=_sort_key, reverse=True)


async def add_sale(client: ApiClient, payload: SalePayload) -> Transaction:
    response = await client.post("/api/transactions", json=payload.model_dump(exclude_none=True))
    return Transaction.model_validate(unwrap(response))


async def add_expense(client: ApiClient, payload: ExpensePayload) -> Transaction:
    response = await client.post("/api/transactions", json=payload.model_dump())
    return Transaction.model_validate(unwrap(response))


async def update_transaction(
    client: ApiClient, transaction_id: int, payload: SaleUpdate | ExpenseUpdate
) -> Transaction:
    response = await client.put(
        f"/api/transactions/{transaction_id}", json=payload.model_dump(exclude_none=True)
    )
    return Transaction.model_validate(unwrap(response))


async def delete_transaction(client: ApiClient, transaction_id: int) -> str:
    response = await client.delete(f"/api/transactions/{transaction_id}")
    unwrap(response)
    return response.json().get("message", "")
