"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Runtime
    environment: str = "development"
    log_level: str = "INFO"
    cors_origin: str = "*"

    # Database
    database_url: str | None = None

    # Session auth (identity provider JWTs)
    auth_jwt_key: str = ""
    auth_jwt_algorithms: list[str] = ["RS256"]
    auth_jwks_url: str | None = None
    auth_jwt_issuer: str | None = None
    auth_jwt_audience: str | None = None

    # Identity provider webhooks (Svix signing secret, "whsec_..." form)
    clerk_webhook_secret: str = ""
    webhook_tolerance_seconds: int = 5 * 60

    # Transactional email
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com"
    email_from: str = "MyLife OS <noreply@mylifeos.app>"

    # Object storage (signed client uploads)
    supabase_url: str = ""
    supabase_service_key: str = ""

    # Sync
    max_sync_batch: int = 500

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def missing_required(self) -> list[str]:
        """Names of required settings that are unset."""
        missing: list[str] = []
        if not self.auth_jwt_key and not self.auth_jwks_url:
            missing.append("AUTH_JWT_KEY or AUTH_JWKS_URL")
        if not self.database_url:
            missing.append("DATABASE_URL")
        return missing


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
