"""Signed upload URLs for client-side object uploads.

The mobile app uploads attachments straight to object storage; the gateway
only mints short-lived signed URLs via the Supabase Storage HTTP API.
"""

import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import parse_qs, quote, urlsplit

import httpx

from backend.app.errors import ObjectStorageError
from backend.app.utils.metrics import signed_uploads_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedUpload:
    """A one-shot upload target for ``path`` in a bucket."""

    signed_url: str
    path: str
    token: str

    def to_body(self) -> dict[str, str]:
        return {"signedUrl": self.signed_url, "path": self.path, "token": self.token}


class ObjectStorage(Protocol):
    """Capability for issuing signed upload URLs."""

    async def create_signed_upload_url(self, bucket: str, path: str) -> SignedUpload:
        """Mint a signed URL the client can PUT the object to.

        Raises:
            ObjectStorageError: If storage is unconfigured or refuses the request
        """
        ...


class SupabaseObjectStorage:
    """ObjectStorage backed by ``POST {base_url}/storage/v1/object/upload/sign/...``."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._storage_url = f"{base_url.rstrip('/')}/storage/v1" if base_url else ""
        self._service_key = service_key
        self._client = client or httpx.AsyncClient(timeout=10.0)

    async def create_signed_upload_url(self, bucket: str, path: str) -> SignedUpload:
        if not self._storage_url or not self._service_key:
            signed_uploads_total.labels(outcome="unconfigured").inc()
            raise ObjectStorageError(
                "Object storage is not configured - SUPABASE_URL or SUPABASE_SERVICE_KEY is missing"
            )

        object_path = quote(f"{bucket}/{path}")
        try:
            response = await self._client.post(
                f"{self._storage_url}/object/upload/sign/{object_path}",
                headers={
                    "Authorization": f"Bearer {self._service_key}",
                    "apikey": self._service_key,
                },
            )
            response.raise_for_status()
            relative_url = str(response.json()["url"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            signed_uploads_total.labels(outcome="error").inc()
            raise ObjectStorageError(f"Failed to sign upload for {bucket}/{path}: {e}") from e

        token = parse_qs(urlsplit(relative_url).query).get("token", [""])[0]
        if not token:
            signed_uploads_total.labels(outcome="error").inc()
            raise ObjectStorageError(f"Signed upload for {bucket}/{path} came back without a token")

        signed_uploads_total.labels(outcome="signed").inc()
        logger.info("Signed object upload", extra={"structured": {"bucket": bucket}})
        return SignedUpload(signed_url=f"{self._storage_url}{relative_url}", path=path, token=token)

    async def aclose(self) -> None:
        await self._client.aclose()


class InMemoryObjectStorage:
    """ObjectStorage that hands out fake URLs and remembers what it signed."""

    def __init__(self, base_url: str = "https://storage.test/storage/v1") -> None:
        self._base_url = base_url
        self.signed: list[tuple[str, str]] = []
        self.fail = False

    async def create_signed_upload_url(self, bucket: str, path: str) -> SignedUpload:
        if self.fail:
            raise ObjectStorageError(f"Simulated signing failure for {bucket}/{path}")
        self.signed.append((bucket, path))
        token = f"token-{len(self.signed)}"
        return SignedUpload(
            signed_url=f"{self._base_url}/object/upload/sign/{bucket}/{path}?token={token}",
            path=path,
            token=token,
        )
