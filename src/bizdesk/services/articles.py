"""
Inventory articles.

API:
    GET    /api/user             – stock totals for the signed-in user
    GET    /api/articles         – list
    GET    /api/articles/{id}    – detail
    POST   /api/articles         – create
    PUT    /api/articles/{id}    – update
    DELETE /api/articles/{id}    – delete
"""

from src.bizdesk.api import ApiClient
from src.bizdesk.errors import ApiError
from src.bizdesk.schemas import Article, ArticlePayload, User
from src.bizdesk.services.common import normalize_list, unwrap


async def get_user_stats(client: ApiClient) -> User:
    response = await client.get("/api/user")
    data = unwrap(response)
    if not isinstance(data, dict) or "total_articles" not in data:
        raise ApiError(
            "Unexpected response for /api/user: stock totals missing",
            status_code=response.status_code,
            response=response,
        )
    return User.model_validate(data)


async def get_articles(client: ApiClient) -> list[Article]:
    response = await client.get("/api/articles")
    items = normalize_list(response.json())
    return [Article.model_validate(item) for item in items]


async def get_article(client: ApiClient, article_id: int) -> Article:
    response = await client.get(f"/api/articles/{article_id}")
    return Article.model_validate(unwrap(response))


async def add_article(client: ApiClient, payload: ArticlePayload) -> Article:
    response = await client.post("/api/articles", json=payload.model_dump())
    return Article.model_validate(unwrap(response))


async def update_article(client: ApiClient, article_id: int, payload: ArticlePayload) -> Article:
    response = await client.put(f"/api/articles/{article_id}", json=payload.model_dump())
    return Article.model_validate(unwrap(response))


async def delete_article(client: ApiClient, article_id: int) -> str:
    """Delete the article and return the backend's confirmation message."""
    response = await client.delete(f"/api/articles/{article_id}")
    unwrap(response)
    return response.json().get("message", "")
