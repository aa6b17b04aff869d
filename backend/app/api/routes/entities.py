"""Per-entity REST routes - /api/{habits,tasks,goals,health,journal}.

Every route is scoped to the caller; records owned by someone else answer
404 exactly like missing ones.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Response, status

from backend.app.api.auth import CurrentIdentity
from backend.app.services import Services, get_services
from backend.app.sync.records import OwnedRecordService
from backend.app.sync.registry import REST_ENTITIES, Entity


def build_entity_router(entity: Entity) -> APIRouter:
    """Build the list/get/create/update/delete router for one entity."""
    router = APIRouter(prefix=f"/api/{entity.value}", tags=[entity.value])

    def record_service(services: Annotated[Services, Depends(get_services)]) -> OwnedRecordService:
        return services.entity_services[entity]

    RecordService = Annotated[OwnedRecordService, Depends(record_service)]

    @router.get("", name=f"list_{entity.value}")
    async def list_records(identity: CurrentIdentity, records: RecordService) -> dict[str, Any]:
        return {"data": await records.list_records(identity)}

    @router.get("/{record_id}", name=f"get_{entity.value}")
    async def get_record(
        record_id: str, identity: CurrentIdentity, records: RecordService
    ) -> dict[str, Any]:
        return {"data": await records.get(identity, record_id)}

    @router.post("", status_code=status.HTTP_201_CREATED, name=f"create_{entity.value}")
    async def create_record(
        identity: CurrentIdentity,
        records: RecordService,
        payload: Annotated[Any, Body()] = None,
    ) -> dict[str, Any]:
        return {"data": await records.create(identity, payload)}

    @router.put("/{record_id}", name=f"update_{entity.value}")
    async def update_record(
        record_id: str,
        identity: CurrentIdentity,
        records: RecordService,
        payload: Annotated[Any, Body()] = None,
    ) -> dict[str, Any]:
        return {"data": await records.update(identity, record_id, payload)}

    @router.delete(
        "/{record_id}", status_code=status.HTTP_204_NO_CONTENT, name=f"delete_{entity.value}"
    )
    async def delete_record(
        record_id: str, identity: CurrentIdentity, records: RecordService
    ) -> Response:
        await records.delete(identity, record_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


entity_routers: list[APIRouter] = [build_entity_router(entity) for entity in REST_ENTITIES]
