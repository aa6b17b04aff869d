"""Identity provider webhook receiver - POST /webhooks/clerk.

No bearer auth: deliveries are authenticated by their Svix signature, checked
against the raw request bytes before the JSON is looked at.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from backend.app.errors import Internal
from backend.app.services import Services, get_services
from backend.app.webhooks.dispatcher import WebhookHandlingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/clerk")
async def clerk_webhook(
    request: Request,
    services: Annotated[Services, Depends(get_services)],
) -> dict[str, bool]:
    """Verify and dispatch an identity provider event.

    Returns:
        ``{"received": true}`` for every verified event whose required
        side effects succeeded, including event types that are ignored
    """
    verifier = services.signature_verifier
    if verifier is None:
        logger.error("CLERK_WEBHOOK_SECRET is not configured")
        raise Internal("Webhook secret not configured")

    raw_body = await request.body()
    event = verifier.verify(request.headers, raw_body)

    try:
        await services.dispatcher.dispatch(event)
    except WebhookHandlingError as e:
        logger.error(f"Failed to handle {event.type} event: {e}")
        raise Internal(f"Failed to process {event.type} event") from e

    return {"received": True}
