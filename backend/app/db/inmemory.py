"""In-memory implementations of repository interfaces."""

from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from backend.app.db.models import COLLECTION_MODELS, invalid_promoted_fields, promoted_defaults
from backend.app.db.repositories import SyncRecord, UserRecord, strip_reserved
from backend.app.errors import StorageError


def _utc_now() -> datetime:
    return datetime.now(UTC)


class InMemoryRecordStore:
    """In-memory implementation of RecordStore.

    Records every call in ``calls`` so tests can assert that storage was (or
    was not) touched. Setting ``fail`` makes every call raise StorageError.
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._records: dict[tuple[str, str, str], SyncRecord] = {}
        self._clock = clock
        self.calls: list[tuple[str, str]] = []
        self.fail = False

    def _enter(self, op: str, collection: str) -> None:
        self.calls.append((op, collection))
        if self.fail:
            raise StorageError(f"Simulated storage failure during {op}")
        if collection not in COLLECTION_MODELS:
            raise StorageError(f"No storage model for collection {collection!r}")

    def _with_defaults(self, collection: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        invalid = invalid_promoted_fields(collection, fields)
        if invalid:
            raise StorageError(f"Cannot store {collection} field {invalid[0]!r}")
        merged = dict(fields)
        for name, default in promoted_defaults(collection).items():
            if merged.get(name) is None:
                merged[name] = default
        return merged

    async def list_owned(
        self,
        collection: str,
        owner: str,
        *,
        order_by: str = "updated_at",
        limit: int | None = None,
        offset: int = 0,
        filters: Mapping[str, Any] | None = None,
    ) -> list[SyncRecord]:
        """List the owner's records, newest first."""
        self._enter("list_owned", collection)

        results = [
            record
            for (coll, rec_owner, _), record in self._records.items()
            if coll == collection and rec_owner == owner
        ]
        for name, value in (filters or {}).items():
            results = [r for r in results if r.fields.get(name) == value]

        # Newest first, ties broken by id like the SQL store
        results.sort(key=lambda r: r.record_id)
        results.sort(key=lambda r: getattr(r, order_by), reverse=True)

        end = None if limit is None else offset + limit
        return results[offset:end]

    async def get(self, collection: str, owner: str, record_id: str) -> SyncRecord | None:
        """Get one owned record."""
        self._enter("get", collection)
        return self._records.get((collection, owner, record_id))

    async def upsert_many(self, collection: str, records: list[SyncRecord]) -> list[SyncRecord]:
        """Insert or replace a batch of records."""
        self._enter("upsert_many", collection)
        now = self._clock()

        persisted: dict[tuple[str, str, str], SyncRecord] = {}
        for record in records:
            key = (collection, record.owner_subject, record.record_id)
            existing = persisted.get(key) or self._records.get(key)
            persisted[key] = SyncRecord(
                record_id=record.record_id,
                owner_subject=record.owner_subject,
                fields=self._with_defaults(collection, record.fields),
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )

        self._records.update(persisted)
        return list(persisted.values())

    async def insert(self, collection: str, record: SyncRecord) -> SyncRecord:
        """Insert a new record."""
        self._enter("insert", collection)
        key = (collection, record.owner_subject, record.record_id)
        if key in self._records:
            raise StorageError(f"Duplicate {collection} record {record.record_id}")

        now = self._clock()
        stored = replace(
            record,
            fields=self._with_defaults(collection, record.fields),
            created_at=now,
            updated_at=now,
        )
        self._records[key] = stored
        return stored

    async def update(
        self, collection: str, owner: str, record_id: str, patch: Mapping[str, Any]
    ) -> SyncRecord | None:
        """Merge a patch into an owned record."""
        self._enter("update", collection)
        key = (collection, owner, record_id)
        record = self._records.get(key)
        if record is None:
            return None

        updated = replace(
            record,
            fields=self._with_defaults(collection, {**record.fields, **strip_reserved(patch)}),
            updated_at=self._clock(),
        )
        self._records[key] = updated
        return updated

    async def delete(self, collection: str, owner: str, record_id: str) -> bool:
        """Delete an owned record."""
        self._enter("delete", collection)
        return self._records.pop((collection, owner, record_id), None) is not None

    async def ping(self) -> None:
        if self.fail:
            raise StorageError("Simulated storage failure during ping")

    def all_records(self, collection: str) -> list[SyncRecord]:
        """Every stored record in a collection regardless of owner (test helper)."""
        return [r for (coll, _, _), r in self._records.items() if coll == collection]


class InMemoryUserStore:
    """In-memory implementation of UserStore."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._users: dict[str, UserRecord] = {}
        self._clock = clock
        self.fail = False

    async def upsert_user(self, user: UserRecord) -> UserRecord:
        """Create or refresh a provisioned user."""
        if self.fail:
            raise StorageError("Simulated storage failure during upsert_user")

        existing = self._users.get(user.user_id)
        stored = replace(
            user,
            created_at=existing.created_at if existing else (user.created_at or self._clock()),
        )
        self._users[user.user_id] = stored
        return stored

    async def get_user(self, user_id: str) -> UserRecord | None:
        """Get a user by subject."""
        if self.fail:
            raise StorageError("Simulated storage failure during get_user")
        return self._users.get(user_id)

    @property
    def users(self) -> list[UserRecord]:
        return list(self._users.values())
