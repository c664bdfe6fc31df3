from src.bizdesk.api import ApiClient
from src.bizdesk.schemas import NotificationPage
from src.bizdesk.services.common import unwrap


async def get_notifications(
    client: ApiClient,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> NotificationPage:
    response = await client.get(
        "/api/notifications",
        params={
            "page": page,
            "per_page": per_page,
            "unread_only": "true" if unread_only else "false",
        },
    )
    return NotificationPage.model_validate(unwrap(response))


async def get_unread_count(client: ApiClient) -> int:
    response = await client.get("/api/notifications/unread-count")
    return int(unwrap(response)["unread_count"])


async def mark_as_read(client: ApiClient, notification_id: int) -> None:
    await client.put(f"/api/notifications/{notification_id}/read")


async def mark_all_as_read(client: ApiClient) -> None:
    await client.put("/api/notifications/read-all")


async def delete_notification(client: ApiClient, notification_id: int) -> None:
    await client.delete(f"/api/notifications/{notification_id}")
