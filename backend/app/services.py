"""Process-wide capability objects, built once at startup.

Routes reach these through ``get_services``; tests inject their own
container (in-memory stores, fake verifiers) via ``create_app(services=...)``.
"""

import logging
from dataclasses import dataclass, field

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.auth.tokens import JwtTokenVerifier, TokenVerifier
from backend.app.config import Settings
from backend.app.db.engine import create_async_engine_from_settings, create_session_factory
from backend.app.db.repositories import RecordStore, UserStore
from backend.app.db.sql_repositories import SqlRecordStore, SqlUserStore
from backend.app.email.client import EmailSender, ResendEmailSender
from backend.app.storage.uploads import ObjectStorage, SupabaseObjectStorage
from backend.app.sync.engine import SyncEngine
from backend.app.sync.notifications import NotificationService
from backend.app.sync.records import OwnedRecordService
from backend.app.sync.registry import REST_ENTITIES, Entity
from backend.app.webhooks.dispatcher import WebhookDispatcher
from backend.app.webhooks.signature import SignatureVerifier

logger = logging.getLogger(__name__)

ENTITY_LABELS: dict[Entity, str] = {
    Entity.habits: "Habit",
    Entity.tasks: "Task",
    Entity.goals: "Goal",
    Entity.health: "Health log",
    Entity.journal: "Journal entry",
}


@dataclass
class Services:
    """Capabilities shared by all requests."""

    settings: Settings
    records: RecordStore
    users: UserStore
    email: EmailSender
    storage: ObjectStorage
    token_verifier: TokenVerifier | None
    signature_verifier: SignatureVerifier | None
    engine: AsyncEngine | None = None
    sync: SyncEngine = field(init=False)
    notifications: NotificationService = field(init=False)
    dispatcher: WebhookDispatcher = field(init=False)
    entity_services: dict[Entity, OwnedRecordService] = field(init=False)

    def __post_init__(self) -> None:
        self.sync = SyncEngine(self.records, max_batch=self.settings.max_sync_batch)
        self.notifications = NotificationService(self.records)
        self.dispatcher = WebhookDispatcher(self.users, self.email)
        self.entity_services = {
            entity: OwnedRecordService(self.records, entity, ENTITY_LABELS[entity])
            for entity in REST_ENTITIES
        }

    async def aclose(self) -> None:
        """Release network resources."""
        if isinstance(self.email, ResendEmailSender):
            await self.email.aclose()
        if isinstance(self.storage, SupabaseObjectStorage):
            await self.storage.aclose()
        if self.engine is not None:
            await self.engine.dispose()


def build_token_verifier(settings: Settings) -> TokenVerifier | None:
    if not settings.auth_jwt_key and not settings.auth_jwks_url:
        logger.error("Session auth is not configured; every authenticated route will answer 401")
        return None
    return JwtTokenVerifier(
        key=settings.auth_jwt_key,
        algorithms=settings.auth_jwt_algorithms,
        jwks_url=settings.auth_jwks_url,
        issuer=settings.auth_jwt_issuer,
        audience=settings.auth_jwt_audience,
    )


def build_signature_verifier(settings: Settings) -> SignatureVerifier | None:
    if not settings.clerk_webhook_secret:
        logger.warning("CLERK_WEBHOOK_SECRET is not configured; webhooks will answer 500")
        return None
    return SignatureVerifier(
        settings.clerk_webhook_secret, tolerance_seconds=settings.webhook_tolerance_seconds
    )


def build_object_storage(settings: Settings) -> SupabaseObjectStorage:
    if not settings.supabase_url or not settings.supabase_service_key:
        logger.warning("Object storage is not configured; signed upload requests will answer 500")
    return SupabaseObjectStorage(settings.supabase_url, settings.supabase_service_key)


def create_services(settings: Settings) -> Services:
    """Build the production capability container from settings.

    Raises:
        ValueError: If DATABASE_URL is missing or the webhook secret is malformed
    """
    engine = create_async_engine_from_settings(settings)
    session_factory = create_session_factory(engine)

    return Services(
        settings=settings,
        records=SqlRecordStore(session_factory),
        users=SqlUserStore(session_factory),
        email=ResendEmailSender(
            api_key=settings.resend_api_key,
            from_address=settings.email_from,
            base_url=settings.resend_api_url,
        ),
        storage=build_object_storage(settings),
        token_verifier=build_token_verifier(settings),
        signature_verifier=build_signature_verifier(settings),
        engine=engine,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the app's capability container."""
    return request.app.state.services
