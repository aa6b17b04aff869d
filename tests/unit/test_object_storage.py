"""Tests for the Supabase signed upload client."""

import httpx
import pytest

from backend.app.errors import ObjectStorageError
from backend.app.storage.uploads import SupabaseObjectStorage


def storage_with(
    handler: httpx.MockTransport, service_key: str = "sb_service_key"
) -> SupabaseObjectStorage:
    return SupabaseObjectStorage(
        base_url="https://project.supabase.test/",
        service_key=service_key,
        client=httpx.AsyncClient(transport=handler),
    )


@pytest.mark.asyncio
async def test_signs_upload_and_builds_absolute_url() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200, json={"url": "/object/upload/sign/avatars/user_alice/me.png?token=tok_123"}
        )

    storage = storage_with(httpx.MockTransport(handler))
    upload = await storage.create_signed_upload_url("avatars", "user_alice/me.png")

    request = captured[0]
    assert request.method == "POST"
    assert str(request.url) == (
        "https://project.supabase.test/storage/v1/object/upload/sign/avatars/user_alice/me.png"
    )
    assert request.headers["Authorization"] == "Bearer sb_service_key"
    assert request.headers["apikey"] == "sb_service_key"

    assert upload.to_body() == {
        "signedUrl": (
            "https://project.supabase.test/storage/v1"
            "/object/upload/sign/avatars/user_alice/me.png?token=tok_123"
        ),
        "path": "user_alice/me.png",
        "token": "tok_123",
    }


@pytest.mark.asyncio
async def test_unconfigured_storage_raises_without_network() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("storage should not be called")

    storage = storage_with(httpx.MockTransport(handler), service_key="")

    with pytest.raises(ObjectStorageError, match="not configured"):
        await storage.create_signed_upload_url("avatars", "a.png")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(400, json={"statusCode": "404", "error": "Bucket not found"}),
        httpx.Response(200, json={"unexpected": True}),
        httpx.Response(200, json={"url": "/object/upload/sign/avatars/a.png"}),
        httpx.Response(200, text="not json"),
    ],
)
async def test_failed_signing_raises(response: httpx.Response) -> None:
    storage = storage_with(httpx.MockTransport(lambda request: response))

    with pytest.raises(ObjectStorageError):
        await storage.create_signed_upload_url("avatars", "a.png")


@pytest.mark.asyncio
async def test_transport_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    storage = storage_with(httpx.MockTransport(handler))

    with pytest.raises(ObjectStorageError, match="connection refused"):
        await storage.create_signed_upload_url("avatars", "a.png")
