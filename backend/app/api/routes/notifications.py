"""Notification endpoints - POST /notifications/send, GET /notifications."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, status

from backend.app.api.auth import CurrentIdentity
from backend.app.services import Services, get_services

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/send", status_code=status.HTTP_201_CREATED)
async def send_notification(
    identity: CurrentIdentity,
    services: Annotated[Services, Depends(get_services)],
    payload: Annotated[Any, Body()] = None,
) -> dict[str, Any]:
    """Create a notification for the caller.

    Body: ``{"title": str, "body": str, "type"?: str, "metadata"?: object}``
    """
    return {"data": await services.notifications.send(identity, payload)}


@router.get("")
async def list_notifications(
    identity: CurrentIdentity,
    services: Annotated[Services, Depends(get_services)],
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    unread_only: Annotated[bool, Query()] = False,
) -> dict[str, Any]:
    """List the caller's notifications, newest first."""
    data = await services.notifications.list_notifications(
        identity, limit=limit, offset=offset, unread_only=unread_only
    )
    return {"data": data}
