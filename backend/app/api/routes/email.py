"""Transactional email triggers - POST /email/daily-digest, POST /email/test."""

import logging
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from backend.app.api.auth import CurrentIdentity
from backend.app.db.context import AuthenticatedIdentity
from backend.app.email.digest import gather_daily_stats
from backend.app.email.templates import DigestStats
from backend.app.errors import EmailDeliveryError, Internal, NotFound, StorageError
from backend.app.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/email", tags=["email"])

SAMPLE_STATS = DigestStats(
    habits_completed=3,
    habits_total=5,
    tasks_completed=7,
    tasks_total=10,
    journal_entries=1,
    streak="14",
)


async def _caller_email(services: Services, identity: AuthenticatedIdentity) -> str:
    try:
        user = await services.users.get_user(identity.subject)
    except StorageError as e:
        logger.error(f"Failed to look up user email: {e}")
        raise Internal("Failed to look up user") from e

    if user is None or not user.email:
        logger.error(
            "User email not found", extra={"structured": {"subject": identity.subject}}
        )
        raise NotFound("User email not found")
    return user.email


@router.post("/daily-digest")
async def send_daily_digest(
    identity: CurrentIdentity,
    services: Annotated[Services, Depends(get_services)],
) -> dict[str, Any]:
    """Compute today's stats for the caller and email the digest."""
    email = await _caller_email(services, identity)

    try:
        stats = await gather_daily_stats(services.records, identity.subject, datetime.now(UTC))
        await services.email.send_daily_digest(email, stats)
    except (StorageError, EmailDeliveryError) as e:
        logger.error(f"Failed to send daily digest: {e}")
        raise Internal("Failed to send daily digest") from e

    return {"success": True, "message": "Daily digest sent", "stats": stats.to_dict()}


@router.post("/test")
async def send_test_email(
    identity: CurrentIdentity,
    services: Annotated[Services, Depends(get_services)],
) -> dict[str, Any]:
    """Send a digest with placeholder stats to the caller."""
    email = await _caller_email(services, identity)

    try:
        await services.email.send_daily_digest(email, SAMPLE_STATS)
    except EmailDeliveryError as e:
        logger.error(f"Failed to send test email: {e}")
        raise Internal("Failed to send test email") from e

    return {"success": True, "message": f"Test email sent to {email}"}
