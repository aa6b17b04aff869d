"""Daily digest statistics gathered from the caller's synced records."""

from datetime import datetime
from typing import Any

from backend.app.db.repositories import RecordStore, SyncRecord
from backend.app.email.templates import DigestStats
from backend.app.sync.registry import Entity, resolve


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


def _since(value: Any, start: datetime) -> bool:
    parsed = value if isinstance(value, datetime) else _parse_timestamp(value)
    return parsed is not None and parsed >= start


async def _owned(store: RecordStore, entity: Entity, owner: str) -> list[SyncRecord]:
    return await store.list_owned(resolve(entity.value).storage_collection, owner)


async def gather_daily_stats(store: RecordStore, owner: str, now: datetime) -> DigestStats:
    """Count today's activity for ``owner``.

    "Today" starts at midnight in ``now``'s timezone. Habits count when active,
    tasks when not archived, and journal entries by creation time.

    Raises:
        StorageError: If the store fails
    """
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)

    habits = [h for h in await _owned(store, Entity.habits, owner) if h.fields.get("is_active", True)]
    tasks = [t for t in await _owned(store, Entity.tasks, owner) if not t.fields.get("is_archived", False)]
    journal = await _owned(store, Entity.journal, owner)

    return DigestStats(
        habits_completed=sum(1 for h in habits if _since(h.fields.get("last_completed_at"), start)),
        habits_total=len(habits),
        tasks_completed=sum(
            1
            for t in tasks
            if t.fields.get("status") == "completed" and _since(t.fields.get("completion_date"), start)
        ),
        tasks_total=len(tasks),
        journal_entries=sum(1 for j in journal if _since(j.created_at, start)),
    )
