"""Transactional email delivery via the Resend HTTP API."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

import httpx

from backend.app.email.templates import APP_NAME, DigestStats, daily_digest_html, welcome_html
from backend.app.errors import EmailDeliveryError
from backend.app.utils.metrics import emails_sent_total

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    """Capability for sending transactional email."""

    async def send_welcome(self, to: str, name: str) -> None:
        """Send the welcome message to a newly provisioned user.

        Raises:
            EmailDeliveryError: If delivery fails
        """
        ...

    async def send_daily_digest(self, to: str, stats: DigestStats) -> None:
        """Send the daily digest.

        Raises:
            EmailDeliveryError: If delivery fails
        """
        ...


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ResendEmailSender:
    """EmailSender backed by ``POST {base_url}/emails``."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        base_url: str = "https://api.resend.com",
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._api_key = api_key
        self._from = from_address
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._clock = clock

    async def send_welcome(self, to: str, name: str) -> None:
        """Send the welcome message."""
        await self._send(
            kind="welcome",
            to=to,
            subject=f"Welcome to {APP_NAME}!",
            html=welcome_html(name, self._clock().year),
        )

    async def send_daily_digest(self, to: str, stats: DigestStats) -> None:
        """Send the daily digest."""
        await self._send(
            kind="daily_digest",
            to=to,
            subject=f"Your Daily Digest - {APP_NAME}",
            html=daily_digest_html(stats, self._clock().year),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, kind: str, to: str, subject: str, html: str) -> str:
        if not self._api_key:
            emails_sent_total.labels(kind=kind, outcome="unconfigured").inc()
            raise EmailDeliveryError("Resend is not configured - RESEND_API_KEY is missing")

        try:
            response = await self._client.post(
                f"{self._base_url}/emails",
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"from": self._from, "to": [to], "subject": subject, "html": html},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            emails_sent_total.labels(kind=kind, outcome="error").inc()
            raise EmailDeliveryError(f"Failed to send {kind} email: {e}") from e

        emails_sent_total.labels(kind=kind, outcome="sent").inc()
        try:
            message_id = str(response.json().get("id", ""))
        except ValueError:
            message_id = ""
        logger.info(
            f"Sent {kind} email",
            extra={"structured": {"kind": kind, "message_id": message_id}},
        )
        return message_id


@dataclass
class SentEmail:
    kind: str
    to: str
    payload: object


class InMemoryEmailSender:
    """EmailSender that records messages instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[SentEmail] = []
        self.fail = False

    async def send_welcome(self, to: str, name: str) -> None:
        self._record("welcome", to, name)

    async def send_daily_digest(self, to: str, stats: DigestStats) -> None:
        self._record("daily_digest", to, stats)

    def _record(self, kind: str, to: str, payload: object) -> None:
        if self.fail:
            raise EmailDeliveryError(f"Simulated delivery failure for {kind}")
        self.sent.append(SentEmail(kind=kind, to=to, payload=payload))
