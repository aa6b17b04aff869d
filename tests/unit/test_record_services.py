"""Tests for per-entity record CRUD and notifications."""

import pytest

from backend.app.db.context import AuthenticatedIdentity
from backend.app.db.inmemory import InMemoryRecordStore
from backend.app.errors import BadRequest, Internal, NotFound
from backend.app.sync.notifications import NotificationService
from backend.app.sync.records import OwnedRecordService
from backend.app.sync.registry import REST_ENTITIES, Entity, UnknownEntityError, resolve

ALICE = AuthenticatedIdentity(subject="user_alice", claims={})
BOB = AuthenticatedIdentity(subject="user_bob", claims={})


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def habits(store: InMemoryRecordStore) -> OwnedRecordService:
    return OwnedRecordService(store, Entity.habits, "Habit")


class TestRegistry:
    def test_resolve_known_entity(self) -> None:
        assert resolve("journal").storage_collection == "journal"

    @pytest.mark.parametrize("name", ["users", "Habits", "", "habits;drop"])
    def test_resolve_rejects_unknown(self, name: str) -> None:
        with pytest.raises(UnknownEntityError):
            resolve(name)

    def test_rest_entities_are_allow_listed(self) -> None:
        assert {e.value for e in REST_ENTITIES} == {"habits", "tasks", "goals", "health", "journal"}


class TestOwnedRecordService:
    @pytest.mark.asyncio
    async def test_create_generates_id_and_owner(self, habits: OwnedRecordService) -> None:
        created = await habits.create(ALICE, {"name": "Meditate", "user_id": "user_bob"})

        assert created["id"]
        assert created["user_id"] == "user_alice"
        assert created["name"] == "Meditate"

    @pytest.mark.asyncio
    async def test_create_keeps_client_id(self, habits: OwnedRecordService) -> None:
        created = await habits.create(ALICE, {"id": "h-1", "name": "Meditate"})

        assert created["id"] == "h-1"

    @pytest.mark.asyncio
    async def test_create_requires_object(self, habits: OwnedRecordService) -> None:
        with pytest.raises(BadRequest):
            await habits.create(ALICE, ["not", "an", "object"])

    @pytest.mark.asyncio
    async def test_other_owner_sees_not_found(self, habits: OwnedRecordService) -> None:
        await habits.create(ALICE, {"id": "h-1", "name": "Meditate"})

        with pytest.raises(NotFound) as exc_info:
            await habits.get(BOB, "h-1")
        assert exc_info.value.message == "Habit not found"

        with pytest.raises(NotFound):
            await habits.update(BOB, "h-1", {"name": "Hijacked"})
        with pytest.raises(NotFound):
            await habits.delete(BOB, "h-1")

        assert (await habits.get(ALICE, "h-1"))["name"] == "Meditate"

    @pytest.mark.asyncio
    async def test_update_merges_patch_and_ignores_owner(self, habits: OwnedRecordService) -> None:
        await habits.create(ALICE, {"id": "h-1", "name": "Meditate", "streak": 3})

        updated = await habits.update(ALICE, "h-1", {"streak": 4, "user_id": "user_bob", "id": "x"})

        assert updated["id"] == "h-1"
        assert updated["user_id"] == "user_alice"
        assert updated["name"] == "Meditate"
        assert updated["streak"] == 4

    @pytest.mark.asyncio
    async def test_delete_then_get(self, habits: OwnedRecordService) -> None:
        await habits.create(ALICE, {"id": "h-1"})
        await habits.delete(ALICE, "h-1")

        with pytest.raises(NotFound):
            await habits.get(ALICE, "h-1")

    @pytest.mark.asyncio
    async def test_list_is_scoped(self, habits: OwnedRecordService) -> None:
        await habits.create(ALICE, {"id": "a"})
        await habits.create(BOB, {"id": "b"})

        assert [r["id"] for r in await habits.list_records(ALICE)] == ["a"]

    @pytest.mark.asyncio
    async def test_storage_failure_maps_to_internal(
        self, habits: OwnedRecordService, store: InMemoryRecordStore
    ) -> None:
        store.fail = True

        with pytest.raises(Internal):
            await habits.list_records(ALICE)


class TestNotificationService:
    @pytest.mark.asyncio
    async def test_send_creates_unread_notification(self, store: InMemoryRecordStore) -> None:
        service = NotificationService(store)

        created = await service.send(ALICE, {"title": "Hi", "body": "There"})

        assert created["read"] is False
        assert created["type"] == "general"
        assert created["metadata"] == {}
        assert created["user_id"] == "user_alice"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("payload", "field"),
        [({}, "title"), ({"title": "Hi"}, "body"), ({"title": 1, "body": "x"}, "title"), (None, "title")],
    )
    async def test_send_validates_fields(
        self, store: InMemoryRecordStore, payload: object, field: str
    ) -> None:
        service = NotificationService(store)

        with pytest.raises(BadRequest) as exc_info:
            await service.send(ALICE, payload)

        assert exc_info.value.message == f'"{field}" is required and must be a string'
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_list_unread_only(self, store: InMemoryRecordStore) -> None:
        service = NotificationService(store)
        first = await service.send(ALICE, {"title": "1", "body": "x"})
        await service.send(ALICE, {"title": "2", "body": "y"})
        await store.update("notifications", "user_alice", first["id"], {"read": True})

        unread = await service.list_notifications(ALICE, unread_only=True)
        everything = await service.list_notifications(ALICE)

        assert [n["title"] for n in unread] == ["2"]
        assert len(everything) == 2

    @pytest.mark.asyncio
    async def test_list_paginates(self, store: InMemoryRecordStore) -> None:
        service = NotificationService(store)
        for i in range(5):
            await service.send(ALICE, {"title": str(i), "body": "x"})

        page = await service.list_notifications(ALICE, limit=2, offset=1)

        assert len(page) == 2
