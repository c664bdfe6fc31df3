"""
Collaborators and their revenue shares.

A collaborator's ``part`` is a percentage of revenue carved out of the owner's
company share; deleting a collaborator hands the part back.
"""

from src.bizdesk.api import ApiClient
from src.bizdesk.schemas import Collaborator, CollaboratorCreate, CollaboratorUpdate
from src.bizdesk.services.common import normalize_list, unwrap


async def get_collaborators(client: ApiClient) -> list[Collaborator]:
    response = await client.get("/api/collaborators")
    return [Collaborator.model_validate(c) for c in normalize_list(response.json())]


async def get_collaborator(client: ApiClient, collaborator_id: int) -> Collaborator:
    response = await client.get(f"/api/collaborators/{collaborator_id}")
    return Collaborator.model_validate(unwrap(response))


async def create_collaborator(client: ApiClient, payload: CollaboratorCreate) -> Collaborator:
    response = await client.post("/api/collaborators", json=payload.model_dump())
    return Collaborator.model_validate(unwrap(response))


async def update_collaborator(
    client: ApiClient, collaborator_id: int, payload: CollaboratorUpdate
) -> Collaborator:
    response = await client.put(
        f"/api/collaborators/{collaborator_id}",
        json=payload.model_dump(exclude_none=True),
    )
    return Collaborator.model_validate(unwrap(response))


async def delete_collaborator(client: ApiClient, collaborator_id: int) -> float:
    """Delete the collaborator and return the part given back to the company."""
    response = await client.delete(f"/api/collaborators/{collaborator_id}")
    return float(unwrap(response)["returned_part"])
