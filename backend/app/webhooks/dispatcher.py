"""Routes verified identity provider events to side effects.

Only ``user.created`` does anything. Its handling has two phases:

1. Provision the user row. Failure raises ``WebhookHandlingError`` so the
   route answers 500 and the provider redelivers.
2. Send the welcome email. Failure is logged and recorded on the result; the
   user row is already committed, so the event still counts as handled.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from backend.app.db.repositories import UserRecord, UserStore
from backend.app.email.client import EmailSender
from backend.app.errors import EmailDeliveryError, StorageError
from backend.app.utils.metrics import webhook_events_total
from backend.app.webhooks.signature import WebhookEvent

logger = logging.getLogger(__name__)

USER_CREATED = "user.created"
DEFAULT_DISPLAY_NAME = "there"
OTHER_EVENT_LABEL = "other"


class WebhookHandlingError(Exception):
    """The required phase of a handled event failed; the provider should retry."""


@dataclass
class DispatchResult:
    """What happened while handling one event."""

    event_type: str
    handled: bool = False
    user_id: str | None = None
    welcome_email: str = "skipped"  # skipped | sent | failed
    warnings: list[str] = field(default_factory=list)


def derive_primary_email(data: Mapping[str, Any]) -> str | None:
    """Primary address if marked, otherwise the first one listed."""
    addresses = [a for a in data.get("email_addresses") or [] if isinstance(a, Mapping)]
    primary_id = data.get("primary_email_address_id")

    for address in addresses:
        if primary_id is not None and address.get("id") == primary_id and address.get("email_address"):
            return str(address["email_address"])

    for address in addresses:
        if address.get("email_address"):
            return str(address["email_address"])

    return None


def event_type_label(event_type: str) -> str:
    """Metric label for an event type; unhandled types share one bucket."""
    return event_type if event_type == USER_CREATED else OTHER_EVENT_LABEL


def derive_display_name(data: Mapping[str, Any]) -> str:
    parts = [data.get("first_name"), data.get("last_name")]
    return " ".join(str(p) for p in parts if p) or DEFAULT_DISPLAY_NAME


class WebhookDispatcher:
    """Dispatches verified events to their handlers."""

    def __init__(self, users: UserStore, email: EmailSender) -> None:
        self._users = users
        self._email = email

    async def dispatch(self, event: WebhookEvent) -> DispatchResult:
        """Handle one verified event.

        Raises:
            WebhookHandlingError: The event is handled and its required phase failed
        """
        logger.info(
            f"Received webhook event {event.type}",
            extra={"structured": {"event_type": event.type}},
        )

        label = event_type_label(event.type)
        if event.type != USER_CREATED:
            webhook_events_total.labels(type=label, outcome="ignored").inc()
            return DispatchResult(event_type=event.type)

        try:
            result = await self._handle_user_created(event.data)
        except WebhookHandlingError:
            webhook_events_total.labels(type=label, outcome="error").inc()
            raise

        webhook_events_total.labels(type=label, outcome="handled").inc()
        return result

    async def _handle_user_created(self, data: Mapping[str, Any]) -> DispatchResult:
        user_id = data.get("id")
        if not user_id or not isinstance(user_id, str):
            raise WebhookHandlingError("user.created event has no user id")

        email = derive_primary_email(data)
        name = derive_display_name(data)
        result = DispatchResult(event_type=USER_CREATED, handled=True, user_id=user_id)

        # Phase 1: required
        try:
            await self._users.upsert_user(UserRecord(user_id=user_id, email=email, name=name))
        except StorageError as e:
            logger.error(
                f"Failed to insert user: {e}",
                extra={"structured": {"user_id": user_id}},
            )
            raise WebhookHandlingError("Failed to process user.created event") from e

        logger.info(
            "User provisioned",
            extra={"structured": {"user_id": user_id, "has_email": email is not None}},
        )

        # Phase 2: best effort
        if email is None:
            return result

        try:
            await self._email.send_welcome(email, name)
            result.welcome_email = "sent"
        except EmailDeliveryError as e:
            logger.error(
                f"Failed to send welcome email (non-fatal): {e}",
                extra={"structured": {"user_id": user_id}},
            )
            result.welcome_email = "failed"
            result.warnings.append(str(e))

        return result
