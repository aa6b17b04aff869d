"""Bearer-token session authentication dependency."""

import logging
from typing import Annotated

from fastapi import Depends, Header
from starlette.concurrency import run_in_threadpool

from backend.app.auth.tokens import TokenVerificationError
from backend.app.db.context import AuthenticatedIdentity
from backend.app.errors import Unauthenticated
from backend.app.services import Services, get_services

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


async def get_current_identity(
    services: Annotated[Services, Depends(get_services)],
    authorization: Annotated[str | None, Header()] = None,
) -> AuthenticatedIdentity:
    """Verify the bearer token and return the caller's identity.

    Args:
        services: Capability container
        authorization: Authorization header (e.g., "Bearer <token>")

    Returns:
        AuthenticatedIdentity with the provider subject and claims

    Raises:
        Unauthenticated: If the header is missing or malformed, or the token
            is invalid, expired or has no subject
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthenticated("Missing or malformed Authorization header")

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthenticated("No token provided")

    verifier = services.token_verifier
    if verifier is None:
        logger.error("Token verification requested but session auth is not configured")
        raise Unauthenticated("Invalid or expired token")

    try:
        # JWKS lookups may hit the network
        claims = await run_in_threadpool(verifier.verify, token)
    except TokenVerificationError as e:
        logger.info(f"Session token verification failed: {e}")
        if e.expired:
            raise Unauthenticated("Token has expired") from e
        raise Unauthenticated("Invalid or expired token") from e

    subject = claims.get("sub") if isinstance(claims, dict) else None
    if not subject or not isinstance(subject, str):
        raise Unauthenticated("Invalid session token")

    return AuthenticatedIdentity(subject=subject, claims=dict(claims))


CurrentIdentity = Annotated[AuthenticatedIdentity, Depends(get_current_identity)]
