"""Integration tests for /notifications and /email routes."""

import asyncio
from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from backend.app.db.inmemory import InMemoryUserStore
from backend.app.db.repositories import UserRecord
from backend.app.email.client import InMemoryEmailSender
from backend.app.email.templates import DigestStats

Headers = Callable[..., dict[str, str]]


class TestNotifications:
    def test_send_and_list(self, client: TestClient, auth_headers: Headers) -> None:
        sent = client.post(
            "/notifications/send",
            json={"title": "Streak!", "body": "7 days", "type": "achievement"},
            headers=auth_headers(),
        )

        assert sent.status_code == 201
        notification = sent.json()["data"]
        assert notification["type"] == "achievement"
        assert notification["read"] is False

        listed = client.get("/notifications", headers=auth_headers())
        assert [n["id"] for n in listed.json()["data"]] == [notification["id"]]

        assert client.get("/notifications", headers=auth_headers("user_bob")).json() == {"data": []}

    def test_send_requires_title(self, client: TestClient, auth_headers: Headers) -> None:
        response = client.post("/notifications/send", json={"body": "x"}, headers=auth_headers())

        assert response.status_code == 400
        assert response.json() == {
            "error": "Bad Request",
            "message": '"title" is required and must be a string',
        }

    def test_unread_only_filter(self, client: TestClient, auth_headers: Headers) -> None:
        client.post("/notifications/send", json={"title": "a", "body": "b"}, headers=auth_headers())

        response = client.get("/notifications?unread_only=true&limit=10", headers=auth_headers())

        assert response.status_code == 200
        assert len(response.json()["data"]) == 1

    @pytest.mark.parametrize("query", ["limit=0", "limit=501", "offset=-1", "unread_only=maybe"])
    def test_invalid_query_is_400(self, client: TestClient, auth_headers: Headers, query: str) -> None:
        response = client.get(f"/notifications?{query}", headers=auth_headers())

        assert response.status_code == 400
        assert response.json()["error"] == "Bad Request"


class TestEmail:
    @pytest.fixture
    def known_user(self, user_store: InMemoryUserStore) -> None:
        asyncio.run(
            user_store.upsert_user(
                UserRecord(user_id="user_alice", email="alice@example.com", name="Alice")
            )
        )

    @pytest.mark.usefixtures("known_user")
    def test_daily_digest(
        self, client: TestClient, auth_headers: Headers, email_sender: InMemoryEmailSender
    ) -> None:
        client.post("/sync/journal/sync", json={"items": [{"id": "j1"}]}, headers=auth_headers())

        response = client.post("/email/daily-digest", headers=auth_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["stats"]["journalEntries"] == 1
        assert [(m.kind, m.to) for m in email_sender.sent] == [("daily_digest", "alice@example.com")]

    @pytest.mark.usefixtures("known_user")
    def test_test_email_uses_sample_stats(
        self, client: TestClient, auth_headers: Headers, email_sender: InMemoryEmailSender
    ) -> None:
        response = client.post("/email/test", headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["message"] == "Test email sent to alice@example.com"
        payload = email_sender.sent[0].payload
        assert isinstance(payload, DigestStats)
        assert payload.streak == "14"

    def test_unknown_user_is_404(self, client: TestClient, auth_headers: Headers) -> None:
        response = client.post("/email/daily-digest", headers=auth_headers("user_ghost"))

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found", "message": "User email not found"}

    @pytest.mark.usefixtures("known_user")
    def test_delivery_failure_is_500(
        self, client: TestClient, auth_headers: Headers, email_sender: InMemoryEmailSender
    ) -> None:
        email_sender.fail = True

        response = client.post("/email/test", headers=auth_headers())

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to send test email"
