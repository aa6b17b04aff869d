"""Dev seeding helper - a local user with a few records in each collection."""

import asyncio

from backend.app.config import get_settings
from backend.app.db.engine import create_all, create_async_engine_from_settings, create_session_factory
from backend.app.db.repositories import SyncRecord, UserRecord
from backend.app.db.sql_repositories import SqlRecordStore, SqlUserStore

# Matches the "sub" of locally minted dev tokens
DEV_USER_ID = "user_dev_000000000000000001"
DEV_USER_EMAIL = "dev@example.com"

SAMPLE_RECORDS: dict[str, list[dict[str, object]]] = {
    "habits": [
        {"id": "habit-water", "name": "Drink water", "is_active": True},
        {"id": "habit-read", "name": "Read 20 pages", "is_active": True},
    ],
    "tasks": [
        {"id": "task-taxes", "title": "File taxes", "status": "pending", "is_archived": False},
    ],
    "goals": [
        {"id": "goal-marathon", "title": "Run a marathon", "progress": 0.1},
    ],
    "journal": [
        {"id": "journal-first", "content": "First entry", "mood": "good"},
    ],
}


async def seed_dev_user_and_records() -> None:
    """Seed the dev user and sample records.

    This function is idempotent - safe to run multiple times. Sample records
    are upserted, so local edits to them are overwritten.
    """
    engine = create_async_engine_from_settings(get_settings())
    try:
        await create_all(engine)
        session_factory = create_session_factory(engine)
        users = SqlUserStore(session_factory)
        records = SqlRecordStore(session_factory)

        existing = await users.get_user(DEV_USER_ID)
        if existing is None:
            print(f"Creating dev user with id {DEV_USER_ID}...")
        else:
            print(f"Dev user already exists: {existing.email}")
        await users.upsert_user(UserRecord(user_id=DEV_USER_ID, email=DEV_USER_EMAIL, name="Dev User"))

        for collection, items in SAMPLE_RECORDS.items():
            batch = [SyncRecord.from_client(item, owner_subject=DEV_USER_ID) for item in items]
            persisted = await records.upsert_many(collection, batch)
            print(f"Seeded {len(persisted)} {collection} records")

        print("✅ Dev seeding complete")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_dev_user_and_records())
