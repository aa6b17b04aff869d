"""Svix-style webhook signature verification.

The signature covers ``"{msg_id}.{timestamp}."`` followed by the request body
exactly as received. Callers must pass the raw bytes; parsing and
re-serialising JSON before verification changes key order and whitespace and
breaks (or worse, weakens) the check.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from backend.app.errors import BadRequest

logger = logging.getLogger(__name__)

ID_HEADER = "svix-id"
TIMESTAMP_HEADER = "svix-timestamp"
SIGNATURE_HEADER = "svix-signature"
SECRET_PREFIX = "whsec_"
SIGNATURE_VERSION = "v1"


@dataclass(frozen=True)
class WebhookEvent:
    """A verified provider event."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)


class SignatureVerifier:
    """Verifies signed webhook deliveries against a shared secret.

    Args:
        secret: Signing secret, optionally prefixed with ``whsec_``; the rest
            is base64-encoded key material
        tolerance_seconds: Maximum clock skew accepted on the timestamp header
        clock: Source of the current Unix time
    """

    def __init__(
        self,
        secret: str,
        tolerance_seconds: int = 5 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if secret.startswith(SECRET_PREFIX):
            secret = secret[len(SECRET_PREFIX):]
        try:
            self._key = base64.b64decode(secret, validate=True)
        except binascii.Error as e:
            raise ValueError("Webhook secret is not valid base64") from e
        if not self._key:
            raise ValueError("Webhook secret is empty")

        self._tolerance = tolerance_seconds
        self._clock = clock

    def sign(self, msg_id: str, timestamp: int, body: bytes) -> str:
        """Compute the ``v1,<base64>`` signature for a delivery."""
        signed = f"{msg_id}.{timestamp}.".encode() + body
        digest = hmac.new(self._key, signed, hashlib.sha256).digest()
        return f"{SIGNATURE_VERSION},{base64.b64encode(digest).decode()}"

    def verify(self, headers: Mapping[str, str], body: bytes) -> WebhookEvent:
        """Verify a delivery and parse it into a WebhookEvent.

        Raises:
            BadRequest: Missing headers, stale timestamp, signature mismatch
                or an unparseable payload
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        msg_id = lowered.get(ID_HEADER)
        timestamp_raw = lowered.get(TIMESTAMP_HEADER)
        signature_header = lowered.get(SIGNATURE_HEADER)

        if not msg_id or not timestamp_raw or not signature_header:
            raise BadRequest("Missing svix verification headers")

        try:
            timestamp = int(timestamp_raw)
        except ValueError as e:
            raise BadRequest("Invalid webhook timestamp") from e

        if abs(self._clock() - timestamp) > self._tolerance:
            logger.warning(
                "Webhook timestamp outside tolerance",
                extra={"structured": {"svix_id": msg_id, "timestamp": timestamp}},
            )
            raise BadRequest("Webhook timestamp outside tolerance")

        expected = self.sign(msg_id, timestamp, body).split(",", 1)[1]
        if not self._matches(signature_header, expected):
            logger.error(
                "Webhook signature verification failed",
                extra={"structured": {"svix_id": msg_id}},
            )
            raise BadRequest("Invalid webhook signature")

        return self._parse(body)

    @staticmethod
    def _matches(signature_header: str, expected: str) -> bool:
        # Header may carry several space-separated "v1,<sig>" entries during key rotation.
        for candidate in signature_header.split():
            version, _, signature = candidate.partition(",")
            if version != SIGNATURE_VERSION:
                continue
            if hmac.compare_digest(signature.encode(), expected.encode()):
                return True
        return False

    @staticmethod
    def _parse(body: bytes) -> WebhookEvent:
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise BadRequest("Invalid webhook payload") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
            raise BadRequest("Invalid webhook payload")

        data = payload.get("data")
        return WebhookEvent(type=payload["type"], data=data if isinstance(data, dict) else {})
