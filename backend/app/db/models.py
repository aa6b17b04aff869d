"""SQLAlchemy ORM models.

Every syncable collection shares the same row shape: a composite primary key of
``(user_id, id)``, a JSON bag of client fields and server-managed timestamps.
Columns listed in ``__promoted__`` are lifted out of the JSON bag so they can
be filtered in SQL.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class User(Base):
    """Tenant user provisioned from identity provider webhooks."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class OwnedRecord:
    """Columns shared by every per-user collection."""

    __promoted__: tuple[str, ...] = ()

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    fields: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @declared_attr.directive
    def __table_args__(cls) -> tuple[Index, ...]:
        return (Index(f"idx_{cls.__tablename__}_owner_updated", "user_id", "updated_at"),)


class Habit(OwnedRecord, Base):
    __tablename__ = "habits"


class DsaProblem(OwnedRecord, Base):
    """Catalog of practice problems tracked by the user."""

    __tablename__ = "dsa"


class HealthLog(OwnedRecord, Base):
    __tablename__ = "health"


class JournalEntry(OwnedRecord, Base):
    __tablename__ = "journal"


class Task(OwnedRecord, Base):
    __tablename__ = "tasks"


class Goal(OwnedRecord, Base):
    __tablename__ = "goals"


class Notification(OwnedRecord, Base):
    """In-app notification; ``read`` is promoted for unread filtering."""

    __tablename__ = "notifications"
    __promoted__ = ("read",)

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


COLLECTION_MODELS: dict[str, type[OwnedRecord]] = {
    model.__tablename__: model  # type: ignore[attr-defined]
    for model in (Habit, DsaProblem, HealthLog, JournalEntry, Task, Goal, Notification)
}


def promoted_defaults(collection: str) -> dict[str, Any]:
    """Column defaults for a collection's promoted fields."""
    model = COLLECTION_MODELS[collection]
    defaults: dict[str, Any] = {}
    for name in model.__promoted__:
        default = model.__table__.columns[name].default  # type: ignore[attr-defined]
        defaults[name] = default.arg if default is not None else None
    return defaults


def invalid_promoted_fields(collection: str, fields: Mapping[str, Any]) -> list[str]:
    """Names of promoted fields whose values the column type cannot hold.

    ``None`` is accepted and means the column default.
    """
    model = COLLECTION_MODELS[collection]
    invalid: list[str] = []
    for name in model.__promoted__:
        value = fields.get(name)
        if value is None:
            continue
        expected = model.__table__.columns[name].type.python_type  # type: ignore[attr-defined]
        if not isinstance(value, expected):
            invalid.append(name)
    return invalid
