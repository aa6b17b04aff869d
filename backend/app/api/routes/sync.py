"""Generic offline-sync endpoints - GET /sync/{entity}, POST /sync/{entity}/sync."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from backend.app.api.auth import CurrentIdentity
from backend.app.services import Services, get_services

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/{entity}")
async def read_entity(
    entity: str,
    identity: CurrentIdentity,
    services: Annotated[Services, Depends(get_services)],
) -> dict[str, Any]:
    """Fetch all of the caller's records for an entity, newest first.

    Returns:
        ``{"data": [...]}``
    """
    return {"data": await services.sync.read(entity, identity)}


@router.post("/{entity}/sync")
async def sync_entity(
    entity: str,
    identity: CurrentIdentity,
    services: Annotated[Services, Depends(get_services)],
    payload: Annotated[Any, Body()] = None,
) -> dict[str, Any]:
    """Upsert a batch of the caller's records.

    Body: ``{"items": [...]}``

    Returns:
        ``{"data": [...], "upserted": N}``
    """
    items = payload.get("items") if isinstance(payload, dict) else None
    result = await services.sync.batch_upsert(entity, identity, items)
    return result.to_body()
