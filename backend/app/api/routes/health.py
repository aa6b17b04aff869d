"""Health check endpoints.

- /health: unauthenticated liveness check
- /healthz: readiness, checks the database through the record store
"""

import time
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from backend.app.errors import StorageError
from backend.app.services import Services, get_services

router = APIRouter()

_STARTED_AT = time.monotonic()


@router.get("/health")
async def health() -> dict[str, Any]:
    """Liveness check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
    }


async def check_db(services: Services) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        await services.records.ping()
        return (True, "ok")
    except StorageError as e:
        return (False, f"error: {type(e.__cause__ or e).__name__}")


@router.get("/healthz", response_model=None)
async def healthz(
    services: Annotated[Services, Depends(get_services)],
) -> dict[str, Any] | JSONResponse:
    """Readiness check.

    Returns:
        200 with component status if the database answers
        503 otherwise
    """
    db_ok, db_status = await check_db(services)

    response_body = {
        "status": "ok" if db_ok else "degraded",
        "components": {
            "db": db_status,
            "webhooks": "configured" if services.signature_verifier else "not_configured",
            "email": "configured" if services.settings.resend_api_key else "not_configured",
        },
    }

    if not db_ok:
        return JSONResponse(content=response_body, status_code=503)

    return response_body
