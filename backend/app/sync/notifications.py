"""In-app notifications stored in the notifications collection."""

import logging
import uuid
from typing import Any

from backend.app.db.context import AuthenticatedIdentity
from backend.app.db.repositories import RecordStore, SyncRecord
from backend.app.errors import BadRequest, Internal, StorageError
from backend.app.sync.registry import Entity, resolve

logger = logging.getLogger(__name__)

DEFAULT_KIND = "general"


class NotificationService:
    """Create and list the caller's notifications."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._collection = resolve(Entity.notifications.value).storage_collection

    async def send(self, identity: AuthenticatedIdentity, payload: Any) -> dict[str, Any]:
        """Create an unread notification for the caller.

        Raises:
            BadRequest: ``title`` or ``body`` missing or not a string
            Internal: Storage failure
        """
        if not isinstance(payload, dict):
            payload = {}

        title = payload.get("title")
        body = payload.get("body")
        if not title or not isinstance(title, str):
            raise BadRequest('"title" is required and must be a string')
        if not body or not isinstance(body, str):
            raise BadRequest('"body" is required and must be a string')

        record = SyncRecord(
            record_id=str(uuid.uuid4()),
            owner_subject=identity.subject,
            fields={
                "title": title,
                "body": body,
                "type": payload.get("type") or DEFAULT_KIND,
                "metadata": payload.get("metadata") or {},
                "read": False,
            },
        )

        try:
            created = await self._store.insert(self._collection, record)
        except StorageError as e:
            logger.error(
                f"Failed to create notification: {e}",
                extra={"structured": {"subject": identity.subject}},
            )
            raise Internal("Failed to create notification") from e

        return created.to_dict()

    async def list_notifications(
        self,
        identity: AuthenticatedIdentity,
        *,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False,
    ) -> list[dict[str, Any]]:
        """List the caller's notifications, newest first."""
        try:
            records = await self._store.list_owned(
                self._collection,
                identity.subject,
                order_by="created_at",
                limit=limit,
                offset=offset,
                filters={"read": False} if unread_only else None,
            )
        except StorageError as e:
            logger.error(
                f"Failed to fetch notifications: {e}",
                extra={"structured": {"subject": identity.subject}},
            )
            raise Internal("Failed to fetch notifications") from e

        return [record.to_dict() for record in records]
