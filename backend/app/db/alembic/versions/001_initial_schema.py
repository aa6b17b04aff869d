"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates:
- users
- habits, dsa, health, journal, tasks, goals, notifications
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

COLLECTIONS = ("habits", "dsa", "health", "journal", "tasks", "goals", "notifications")

JsonType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _owned_columns() -> list[sa.Column]:
    return [
        sa.Column("user_id", sa.Text(), primary_key=True),
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("fields", JsonType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    for name in COLLECTIONS:
        columns = _owned_columns()
        if name == "notifications":
            columns.append(
                sa.Column("read", sa.Boolean(), server_default=sa.false(), nullable=False)
            )
        op.create_table(name, *columns)
        op.create_index(f"idx_{name}_owner_updated", name, ["user_id", "updated_at"])


def downgrade() -> None:
    """Drop all tables."""
    for name in reversed(COLLECTIONS):
        op.drop_index(f"idx_{name}_owner_updated", table_name=name)
        op.drop_table(name)
    op.drop_table("users")
