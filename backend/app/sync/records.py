"""Single-record CRUD for the /api/<entity> routes.

Records owned by another subject are reported exactly like missing ones so
callers cannot discover the existence of other users' ids.
"""

import logging
import uuid
from collections.abc import Mapping
from typing import Any

from backend.app.db.context import AuthenticatedIdentity
from backend.app.db.repositories import PRIMARY_KEY_FIELD, RecordStore, SyncRecord
from backend.app.errors import BadRequest, Internal, NotFound, StorageError
from backend.app.sync.registry import Entity, resolve

logger = logging.getLogger(__name__)


class OwnedRecordService:
    """List/get/create/update/delete for one entity, scoped to the caller."""

    def __init__(self, store: RecordStore, entity: Entity, label: str) -> None:
        self._store = store
        self._collection = resolve(entity.value).storage_collection
        self._label = label

    async def list_records(self, identity: AuthenticatedIdentity) -> list[dict[str, Any]]:
        records = await self._call(
            "fetch", self._store.list_owned(self._collection, identity.subject), identity
        )
        return [record.to_dict() for record in records]

    async def get(self, identity: AuthenticatedIdentity, record_id: str) -> dict[str, Any]:
        record = await self._call(
            "fetch", self._store.get(self._collection, identity.subject, record_id), identity
        )
        if record is None:
            raise NotFound(f"{self._label} not found")
        return record.to_dict()

    async def create(self, identity: AuthenticatedIdentity, payload: Any) -> dict[str, Any]:
        """Create a record, generating an id when the client did not send one."""
        body = _require_object(payload)
        record_id = body.get(PRIMARY_KEY_FIELD)
        if record_id in (None, ""):
            record_id = str(uuid.uuid4())

        record = SyncRecord.from_client(body, identity.subject, record_id=str(record_id))
        created = await self._call(
            "create", self._store.insert(self._collection, record), identity
        )
        return created.to_dict()

    async def update(
        self, identity: AuthenticatedIdentity, record_id: str, payload: Any
    ) -> dict[str, Any]:
        """Apply a partial update; ``user_id`` and ``id`` in the patch are ignored."""
        patch = _require_object(payload)
        updated = await self._call(
            "update",
            self._store.update(self._collection, identity.subject, record_id, patch),
            identity,
        )
        if updated is None:
            raise NotFound(f"{self._label} not found")
        return updated.to_dict()

    async def delete(self, identity: AuthenticatedIdentity, record_id: str) -> None:
        deleted = await self._call(
            "delete", self._store.delete(self._collection, identity.subject, record_id), identity
        )
        if not deleted:
            raise NotFound(f"{self._label} not found")

    async def _call(self, op: str, pending: Any, identity: AuthenticatedIdentity) -> Any:
        try:
            return await pending
        except StorageError as e:
            logger.error(
                f"Failed to {op} {self._collection}: {e}",
                extra={"structured": {"entity": self._collection, "subject": identity.subject}},
            )
            raise Internal(f"Failed to {op} {self._label.lower()}") from e


def _require_object(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise BadRequest("Request body must be a JSON object")
    return payload
