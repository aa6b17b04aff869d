"""Identity provider session token verification."""

import logging
from typing import Any, Protocol

import jwt

logger = logging.getLogger(__name__)


class TokenVerificationError(Exception):
    """Token rejected by the verifier.

    ``expired`` only changes the message shown to the client.
    """

    def __init__(self, message: str, expired: bool = False) -> None:
        super().__init__(message)
        self.expired = expired


class TokenVerifier(Protocol):
    """Capability that turns a bearer token into a verified claim set."""

    def verify(self, token: str) -> dict[str, Any]:
        """Verify ``token`` and return its claims.

        Raises:
            TokenVerificationError: If the token is invalid or expired
        """
        ...


class JwtTokenVerifier:
    """Verifies identity provider session JWTs with PyJWT.

    Keys come either from a static key (shared secret for HS* or PEM public
    key for RS*/ES*) or from the provider's JWKS endpoint.
    """

    def __init__(
        self,
        key: str = "",
        algorithms: list[str] | None = None,
        jwks_url: str | None = None,
        issuer: str | None = None,
        audience: str | None = None,
        leeway_seconds: int = 0,
    ) -> None:
        if not key and not jwks_url:
            raise ValueError("Either a signing key or a JWKS URL is required")

        self._key = key
        self._algorithms = algorithms or ["RS256"]
        self._jwks_client = jwt.PyJWKClient(jwks_url) if jwks_url else None
        self._issuer = issuer
        self._audience = audience
        self._leeway = leeway_seconds

    def verify(self, token: str) -> dict[str, Any]:
        """Decode and verify a session token."""
        try:
            key: Any = self._key
            if self._jwks_client is not None:
                key = self._jwks_client.get_signing_key_from_jwt(token).key

            return jwt.decode(
                token,
                key,
                algorithms=self._algorithms,
                issuer=self._issuer,
                audience=self._audience,
                leeway=self._leeway,
                options={"verify_aud": self._audience is not None},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenVerificationError("Token has expired", expired=True) from e
        except jwt.PyJWTError as e:
            logger.debug(f"Session token rejected: {e}")
            raise TokenVerificationError(str(e)) from e
