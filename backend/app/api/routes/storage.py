"""Object storage helpers - POST /api/storage/presigned-url."""

import logging
from collections.abc import Mapping
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from backend.app.api.auth import CurrentIdentity
from backend.app.errors import BadRequest, Internal, ObjectStorageError
from backend.app.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/storage", tags=["storage"])


@router.post("/presigned-url")
async def create_presigned_url(
    identity: CurrentIdentity,
    services: Annotated[Services, Depends(get_services)],
    payload: Annotated[Any, Body()] = None,
) -> dict[str, str]:
    """Issue a signed URL the caller can upload one object to.

    Body: ``{"bucket": str, "path": str}``
    """
    body = payload if isinstance(payload, Mapping) else {}
    bucket, path = body.get("bucket"), body.get("path")
    if not isinstance(bucket, str) or not bucket or not isinstance(path, str) or not path:
        raise BadRequest("Bucket and path are required")

    try:
        upload = await services.storage.create_signed_upload_url(bucket, path)
    except ObjectStorageError as e:
        logger.error(
            f"Failed to generate presigned URL: {e}",
            extra={"structured": {"subject": identity.subject, "bucket": bucket}},
        )
        raise Internal("Failed to generate presigned URL") from e

    return upload.to_body()
