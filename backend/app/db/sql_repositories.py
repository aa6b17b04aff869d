"""SQL implementations of repository interfaces."""

import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Select, delete, select, text
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db.models import COLLECTION_MODELS, OwnedRecord, User, promoted_defaults
from backend.app.db.repositories import SyncRecord, UserRecord, strip_reserved
from backend.app.errors import StorageError

logger = logging.getLogger(__name__)

ORDERABLE_COLUMNS = ("updated_at", "created_at")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _as_aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back out.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _model_for(collection: str) -> type[OwnedRecord]:
    try:
        return COLLECTION_MODELS[collection]
    except KeyError as e:
        raise StorageError(f"No storage model for collection {collection!r}") from e


def _split_fields(
    model: type[OwnedRecord], fields: Mapping[str, Any]
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Separate promoted column values from the JSON field bag."""
    bag = dict(fields)
    promoted = {name: bag.pop(name) for name in model.__promoted__ if name in bag}
    return bag, promoted


def _to_record(model: type[OwnedRecord], row: Any) -> SyncRecord:
    """Build a record from an ORM row or a RETURNING row."""
    fields = dict(row.fields or {})
    for name in model.__promoted__:
        fields[name] = getattr(row, name)
    return SyncRecord(
        record_id=row.id,
        owner_subject=row.user_id,
        fields=fields,
        created_at=_as_aware(row.created_at),
        updated_at=_as_aware(row.updated_at),
    )


class SqlRecordStore:
    """SQL implementation of RecordStore.

    Each call runs in its own transaction; ``upsert_many`` commits the whole
    batch or nothing.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def _owned(self, model: type[OwnedRecord], owner: str) -> Select[Any]:
        return select(model).where(model.user_id == owner)

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
        model = _model_for(collection)
        if order_by not in ORDERABLE_COLUMNS:
            raise ValueError(f"Cannot order by {order_by!r}")

        query = self._owned(model, owner)
        for name, value in (filters or {}).items():
            if name not in model.__promoted__:
                raise ValueError(f"Cannot filter {collection} on {name!r}")
            query = query.where(getattr(model, name) == value)

        query = query.order_by(getattr(model, order_by).desc(), model.id).offset(offset)
        if limit is not None:
            query = query.limit(limit)

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query)).scalars().all()
                return [_to_record(model, row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list {collection}") from e

    async def get(self, collection: str, owner: str, record_id: str) -> SyncRecord | None:
        """Get one owned record."""
        model = _model_for(collection)
        try:
            async with self._session_factory() as session:
                row = await session.get(model, {"user_id": owner, "id": record_id})
                return _to_record(model, row) if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to fetch {collection} record") from e

    async def upsert_many(self, collection: str, records: list[SyncRecord]) -> list[SyncRecord]:
        """Insert or replace a batch of records in one transaction.

        Runs as a single ``INSERT ... ON CONFLICT (user_id, id) DO UPDATE`` so
        concurrent writers of the same new id cannot collide on the primary
        key. ``created_at`` is only written on insert.
        """
        model = _model_for(collection)
        if not records:
            return []

        # Later items in the batch win over earlier ones with the same key.
        latest: dict[tuple[str, str], SyncRecord] = {}
        for record in records:
            latest[(record.owner_subject, record.record_id)] = record

        now = self._clock()
        values: list[dict[str, Any]] = []
        for record in latest.values():
            bag, promoted = _split_fields(model, record.fields)
            value: dict[str, Any] = {
                "user_id": record.owner_subject,
                "id": record.record_id,
                "fields": bag,
                "created_at": now,
                "updated_at": now,
            }
            for name in model.__promoted__:
                value[name] = _promoted_value(model, name, promoted)
            values.append(value)

        try:
            async with self._session_factory.begin() as session:
                statement = _upsert_statement(session.get_bind().dialect.name, model, values)
                result = await session.execute(statement)
                return [_to_record(model, row) for row in result]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to upsert {len(latest)} {collection} records") from e

    async def insert(self, collection: str, record: SyncRecord) -> SyncRecord:
        """Insert a new record."""
        model = _model_for(collection)
        bag, promoted = _split_fields(model, record.fields)
        now = self._clock()
        row = model(
            user_id=record.owner_subject,
            id=record.record_id,
            fields=bag,
            created_at=now,
            updated_at=now,
        )
        for name in model.__promoted__:
            setattr(row, name, _promoted_value(model, name, promoted))

        try:
            async with self._session_factory.begin() as session:
                session.add(row)
                await session.flush()
                return _to_record(model, row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to insert {collection} record") from e

    async def update(
        self, collection: str, owner: str, record_id: str, patch: Mapping[str, Any]
    ) -> SyncRecord | None:
        """Merge a patch into an owned record."""
        model = _model_for(collection)
        bag, promoted = _split_fields(model, strip_reserved(patch))
        try:
            async with self._session_factory.begin() as session:
                row = await session.get(model, {"user_id": owner, "id": record_id})
                if row is None:
                    return None

                row.fields = {**(row.fields or {}), **bag}
                for name, value in promoted.items():
                    if value is not None:
                        setattr(row, name, value)
                row.updated_at = self._clock()

                await session.flush()
                return _to_record(model, row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update {collection} record") from e

    async def delete(self, collection: str, owner: str, record_id: str) -> bool:
        """Delete an owned record."""
        model = _model_for(collection)
        try:
            async with self._session_factory.begin() as session:
                result = await session.execute(
                    delete(model).where(model.user_id == owner, model.id == record_id)
                )
                return bool(result.rowcount)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete {collection} record") from e

    async def ping(self) -> None:
        """Run a trivial query against the database."""
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StorageError("Database unreachable") from e


def _promoted_value(model: type[OwnedRecord], name: str, promoted: Mapping[str, Any]) -> Any:
    """Value for a promoted column, falling back to the column default when unset."""
    value = promoted.get(name)
    if value is not None:
        return value
    return promoted_defaults(model.__tablename__)[name]  # type: ignore[attr-defined]


_DIALECT_INSERTS = {"postgresql": postgresql_insert, "sqlite": sqlite_insert}


def _upsert_statement(
    dialect: str, model: type[OwnedRecord], values: list[dict[str, Any]]
) -> Any:
    """Build a dialect-specific insert that replaces rows on key conflict."""
    try:
        insert = _DIALECT_INSERTS[dialect]
    except KeyError as e:
        raise StorageError(f"Upsert is not supported on {dialect!r}") from e

    table = model.__table__  # type: ignore[attr-defined]
    statement = insert(table).values(values)
    replace = {
        name: statement.excluded[name]
        for name in ("fields", "updated_at", *model.__promoted__)
    }
    return statement.on_conflict_do_update(
        index_elements=[table.c.user_id, table.c.id], set_=replace
    ).returning(*table.c)


class SqlUserStore:
    """SQL implementation of UserStore."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def upsert_user(self, user: UserRecord) -> UserRecord:
        """Create or refresh a provisioned user."""
        try:
            async with self._session_factory.begin() as session:
                row = await session.get(User, user.user_id)
                if row is None:
                    row = User(
                        id=user.user_id,
                        email=user.email,
                        name=user.name,
                        created_at=user.created_at or self._clock(),
                    )
                    session.add(row)
                else:
                    logger.info(
                        "User already provisioned, refreshing profile",
                        extra={"structured": {"user_id": user.user_id}},
                    )
                    row.email = user.email
                    row.name = user.name

                await session.flush()
                return UserRecord(
                    user_id=row.id,
                    email=row.email,
                    name=row.name,
                    created_at=_as_aware(row.created_at),
                )
        except SQLAlchemyError as e:
            raise StorageError("Failed to insert user") from e

    async def get_user(self, user_id: str) -> UserRecord | None:
        """Get a user by subject."""
        try:
            async with self._session_factory() as session:
                row = await session.get(User, user_id)
        except SQLAlchemyError as e:
            raise StorageError("Failed to fetch user") from e

        if row is None:
            return None

        return UserRecord(
            user_id=row.id,
            email=row.email,
            name=row.name,
            created_at=_as_aware(row.created_at),
        )
