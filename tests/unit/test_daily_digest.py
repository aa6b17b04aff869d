"""Tests for daily digest statistics."""

from datetime import UTC, datetime, timedelta

import pytest

from backend.app.db.inmemory import InMemoryRecordStore
from backend.app.db.repositories import SyncRecord
from backend.app.email.digest import gather_daily_stats

NOW = datetime(2026, 5, 20, 18, 0, tzinfo=UTC)
TODAY = "2026-05-20T08:15:00Z"
YESTERDAY = "2026-05-19T22:00:00+00:00"


def rec(record_id: str, owner: str = "user_1", **fields: object) -> SyncRecord:
    return SyncRecord(record_id=record_id, owner_subject=owner, fields=dict(fields))


@pytest.mark.asyncio
async def test_counts_todays_activity() -> None:
    store = InMemoryRecordStore(clock=lambda: NOW - timedelta(hours=1))
    await store.upsert_many(
        "habits",
        [
            rec("h1", is_active=True, last_completed_at=TODAY),
            rec("h2", is_active=True, last_completed_at=YESTERDAY),
            rec("h3", is_active=False, last_completed_at=TODAY),
            rec("h4", owner="user_2", is_active=True, last_completed_at=TODAY),
        ],
    )
    await store.upsert_many(
        "tasks",
        [
            rec("t1", status="completed", completion_date=TODAY),
            rec("t2", status="completed", completion_date=YESTERDAY),
            rec("t3", status="pending"),
            rec("t4", status="completed", completion_date=TODAY, is_archived=True),
        ],
    )
    await store.upsert_many("journal", [rec("j1"), rec("j2")])

    stats = await gather_daily_stats(store, "user_1", NOW)

    assert stats.habits_completed == 1
    assert stats.habits_total == 2
    assert stats.tasks_completed == 1
    assert stats.tasks_total == 3
    assert stats.journal_entries == 2
    assert stats.streak == "0"


@pytest.mark.asyncio
async def test_journal_entries_before_midnight_do_not_count() -> None:
    store = InMemoryRecordStore(clock=lambda: NOW - timedelta(days=1))
    await store.upsert_many("journal", [rec("j1")])

    stats = await gather_daily_stats(store, "user_1", NOW)

    assert stats.journal_entries == 0


@pytest.mark.asyncio
async def test_unparseable_timestamps_are_ignored() -> None:
    store = InMemoryRecordStore(clock=lambda: NOW)
    await store.upsert_many(
        "habits",
        [rec("h1", last_completed_at="not a date"), rec("h2", last_completed_at="2026-05-20T10:00:00")],
    )

    stats = await gather_daily_stats(store, "user_1", NOW)

    assert stats.habits_total == 2
    assert stats.habits_completed == 0


@pytest.mark.asyncio
async def test_empty_collections() -> None:
    stats = await gather_daily_stats(InMemoryRecordStore(), "user_1", NOW)

    assert stats.to_dict()["habitsTotal"] == 0
