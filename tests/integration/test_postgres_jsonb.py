"""PostgreSQL-specific integration test for the JSONB field bag.

This test requires a real PostgreSQL instance (SQLite doesn't support JSONB).

Run with: DATABASE_URL='postgresql://...' pytest -m postgres
"""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.db.engine import create_session_factory
from backend.app.db.repositories import SyncRecord
from backend.app.db.sql_repositories import SqlRecordStore


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_nested_fields_round_trip(postgres_engine: AsyncEngine) -> None:
    """Nested client fields survive a JSONB upsert and read."""
    store = SqlRecordStore(create_session_factory(postgres_engine))
    fields = {
        "name": "Morning run",
        "schedule": {"days": ["mon", "wed", "fri"], "time": "06:30"},
        "history": [{"date": "2026-01-01", "done": True}],
        "target": 5.5,
    }

    await store.upsert_many(
        "habits", [SyncRecord(record_id="h1", owner_subject="user_pg", fields=fields)]
    )
    fetched = await store.get("habits", "user_pg", "h1")

    assert fetched is not None
    assert fetched.fields == fields


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_unread_filter_uses_promoted_column(postgres_engine: AsyncEngine) -> None:
    store = SqlRecordStore(create_session_factory(postgres_engine))
    await store.insert(
        "notifications",
        SyncRecord(record_id="n1", owner_subject="user_pg", fields={"title": "t", "read": True}),
    )
    await store.insert(
        "notifications", SyncRecord(record_id="n2", owner_subject="user_pg", fields={"title": "u"})
    )

    unread = await store.list_owned(
        "notifications", "user_pg", order_by="created_at", filters={"read": False}
    )

    assert [r.record_id for r in unread] == ["n2"]


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_concurrent_upserts_of_new_id(postgres_engine: AsyncEngine) -> None:
    store = SqlRecordStore(create_session_factory(postgres_engine))

    results = await asyncio.gather(
        *(
            store.upsert_many(
                "habits", [SyncRecord(record_id="h_race", owner_subject="user_pg", fields={"n": n})]
            )
            for n in range(5)
        ),
        return_exceptions=True,
    )

    assert all(isinstance(r, list) for r in results)
    fetched = await store.get("habits", "user_pg", "h_race")
    assert fetched is not None
    assert fetched.fields["n"] in range(5)
