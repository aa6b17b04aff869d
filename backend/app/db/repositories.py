"""Repository protocol interfaces for data access."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

OWNER_FIELD = "user_id"
PRIMARY_KEY_FIELD = "id"

# Server-managed keys never stored inside the client field bag.
RESERVED_FIELDS = frozenset({PRIMARY_KEY_FIELD, OWNER_FIELD, "created_at", "updated_at"})


def strip_reserved(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Drop the primary key, owner and timestamps from a client payload."""
    return {key: value for key, value in payload.items() if key not in RESERVED_FIELDS}


@dataclass
class SyncRecord:
    """Typed envelope around a loosely-typed client record.

    The owner is always supplied by the server; ``from_client`` discards any
    ``user_id`` present in the payload.
    """

    record_id: str
    owner_subject: str
    fields: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_client(
        cls, payload: Mapping[str, Any], owner_subject: str, record_id: str | None = None
    ) -> "SyncRecord":
        if record_id is None:
            record_id = str(payload[PRIMARY_KEY_FIELD])
        return cls(
            record_id=record_id,
            owner_subject=owner_subject,
            fields=strip_reserved(payload),
        )

    def to_dict(self) -> dict[str, Any]:
        """Flatten back to the wire shape used by the mobile client."""
        body: dict[str, Any] = dict(self.fields)
        body[PRIMARY_KEY_FIELD] = self.record_id
        body[OWNER_FIELD] = self.owner_subject
        body["created_at"] = self.created_at.isoformat() if self.created_at else None
        body["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return body


@dataclass
class UserRecord:
    """Tenant user row keyed by the identity provider subject."""

    user_id: str
    email: str | None
    name: str
    created_at: datetime | None = None


class RecordStore(Protocol):
    """Tenant-scoped storage for syncable collections.

    Every read and write is keyed by ``(collection, owner, id)``; a record
    owned by another subject is indistinguishable from a missing one.
    """

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
        """List the owner's records, newest first by ``order_by``.

        Args:
            collection: Storage collection name
            owner: Tenant-owner subject
            order_by: ``updated_at`` or ``created_at``
            limit: Maximum number of rows (None for all)
            offset: Rows to skip
            filters: Equality filters on promoted columns

        Returns:
            Matching records
        """
        ...

    async def get(self, collection: str, owner: str, record_id: str) -> SyncRecord | None:
        """Get one record, or None if absent or not owned."""
        ...

    async def upsert_many(self, collection: str, records: list[SyncRecord]) -> list[SyncRecord]:
        """Insert or replace records in a single transaction.

        Existing rows keep their ``created_at``; their fields are replaced
        wholesale (last write wins).

        Returns:
            The persisted records, one per distinct key
        """
        ...

    async def insert(self, collection: str, record: SyncRecord) -> SyncRecord:
        """Insert a new record."""
        ...

    async def update(
        self, collection: str, owner: str, record_id: str, patch: Mapping[str, Any]
    ) -> SyncRecord | None:
        """Merge ``patch`` into an owned record's fields.

        Returns:
            Updated record or None if absent or not owned
        """
        ...

    async def delete(self, collection: str, owner: str, record_id: str) -> bool:
        """Delete an owned record. Returns False if absent or not owned."""
        ...

    async def ping(self) -> None:
        """Raise StorageError if the backend is unreachable."""
        ...


class UserStore(Protocol):
    """Storage for provisioned tenant users."""

    async def upsert_user(self, user: UserRecord) -> UserRecord:
        """Create the user row, replacing email/name if it already exists."""
        ...

    async def get_user(self, user_id: str) -> UserRecord | None:
        """Get a user by identity provider subject."""
        ...
