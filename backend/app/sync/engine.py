"""Generic entity sync: tenant-scoped read and batch upsert.

Conflict resolution is last-write-wins on the record id. Two devices pushing
the same id concurrently may clobber each other; there is no field merge and
no optimistic concurrency check. Reads return the caller's full collection
with no pagination, which bounds how large a per-user collection can grow
before the mobile client needs incremental sync.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from backend.app.db.context import AuthenticatedIdentity
from backend.app.db.models import invalid_promoted_fields
from backend.app.db.repositories import PRIMARY_KEY_FIELD, RecordStore, SyncRecord
from backend.app.errors import BadRequest, Internal, StorageError
from backend.app.sync.registry import EntityDescriptor, resolve
from backend.app.utils.metrics import PrometheusSyncMetrics

logger = logging.getLogger(__name__)

MAX_SYNC_BATCH = 500


@dataclass
class UpsertResult:
    """Outcome of a batch upsert."""

    data: list[dict[str, Any]]
    upserted: int

    def to_body(self) -> dict[str, Any]:
        return {"data": self.data, "upserted": self.upserted}


def _record_id(item: Mapping[str, Any], index: int) -> str:
    """Natural key of a client item; must be a non-empty string or integer."""
    value = item.get(PRIMARY_KEY_FIELD)
    if isinstance(value, bool) or not isinstance(value, (str, int)) or value == "":
        raise BadRequest(f'Item at index {index} is missing a valid "{PRIMARY_KEY_FIELD}"')
    return str(value)


class SyncEngine:
    """Batch read/upsert protocol over the record store."""

    def __init__(
        self,
        store: RecordStore,
        max_batch: int = MAX_SYNC_BATCH,
        metrics: PrometheusSyncMetrics | None = None,
    ) -> None:
        self._store = store
        self._max_batch = max_batch
        self._metrics = metrics or PrometheusSyncMetrics()

    async def read(self, entity_name: str, identity: AuthenticatedIdentity) -> list[dict[str, Any]]:
        """Fetch every record the caller owns, most recently changed first.

        Raises:
            UnknownEntityError: Entity not allow-listed (no storage access)
            Internal: Storage failure
        """
        descriptor = resolve(entity_name)

        try:
            records = await self._store.list_owned(
                descriptor.storage_collection, identity.subject, order_by="updated_at"
            )
        except StorageError as e:
            self._fail(descriptor, identity, "read", e)
            raise Internal("Failed to fetch data") from e

        self._metrics.record_request(descriptor.name, "read", "ok")
        return [record.to_dict() for record in records]

    async def batch_upsert(
        self, entity_name: str, identity: AuthenticatedIdentity, items: Any
    ) -> UpsertResult:
        """Insert or replace a bounded batch of the caller's records.

        Every item is re-owned by the caller before it is persisted. Validation
        runs over the whole batch first, so a rejected batch writes nothing.

        Raises:
            UnknownEntityError: Entity not allow-listed
            BadRequest: ``items`` not a list, too many items, or an item
                without an object shape or id, or with a mistyped promoted field
            Internal: Storage failure
        """
        descriptor = resolve(entity_name)

        if not isinstance(items, list):
            raise BadRequest('"items" must be an array')

        if not items:
            return UpsertResult(data=[], upserted=0)

        if len(items) > self._max_batch:
            raise BadRequest(f"Batch size exceeds maximum of {self._max_batch} items")

        records = [
            self._scope(descriptor, item, index, identity) for index, item in enumerate(items)
        ]

        try:
            persisted = await self._store.upsert_many(descriptor.storage_collection, records)
        except StorageError as e:
            self._fail(descriptor, identity, "upsert", e)
            raise Internal("Failed to sync data") from e

        self._metrics.record_request(descriptor.name, "upsert", "ok")
        self._metrics.record_upserted(descriptor.name, len(persisted))
        logger.info(
            f"Synced {len(persisted)} {descriptor.name} records",
            extra={"structured": {"entity": descriptor.name, "subject": identity.subject}},
        )

        return UpsertResult(data=[record.to_dict() for record in persisted], upserted=len(persisted))

    def _scope(
        self,
        descriptor: EntityDescriptor,
        item: Any,
        index: int,
        identity: AuthenticatedIdentity,
    ) -> SyncRecord:
        if not isinstance(item, Mapping):
            raise BadRequest(f"Item at index {index} must be an object")
        # Promoted fields land in typed columns, not the JSON bag.
        invalid = invalid_promoted_fields(descriptor.storage_collection, item)
        if invalid:
            raise BadRequest(f'Item at index {index} has an invalid "{invalid[0]}" value')
        return SyncRecord.from_client(
            item, owner_subject=identity.subject, record_id=_record_id(item, index)
        )

    def _fail(
        self, descriptor: EntityDescriptor, identity: AuthenticatedIdentity, op: str, exc: Exception
    ) -> None:
        self._metrics.record_request(descriptor.name, op, "error")
        logger.error(
            f"Storage {op} failed for {descriptor.name}: {exc}",
            extra={"structured": {"entity": descriptor.name, "subject": identity.subject}},
        )
