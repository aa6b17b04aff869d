"""Request identity for tenancy enforcement."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Verified caller identity, built once per request by the session authenticator.

    ``subject`` is the identity provider's stable user id and is the value
    written to every tenant-owner field. Never persisted.
    """

    subject: str
    claims: dict[str, Any] = field(default_factory=dict)
