"""FastAPI application - mobile app gateway."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.app.api.routes.email import router as email_router
from backend.app.api.routes.entities import entity_routers
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.metrics import router as metrics_router
from backend.app.api.routes.notifications import router as notifications_router
from backend.app.api.routes.storage import router as storage_router
from backend.app.api.routes.sync import router as sync_router
from backend.app.api.routes.webhooks import router as webhooks_router
from backend.app.config import Settings, get_settings
from backend.app.errors import ApiError
from backend.app.services import Services, create_services
from backend.app.utils.logging import configure_logging

logger = logging.getLogger(__name__)

APP_TITLE = "MyLife OS Gateway"
APP_VERSION = "0.1.0"


def register_error_handlers(app: FastAPI, settings: Settings) -> None:
    """Render every error as ``{"error": ..., "message": ...}``."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code, content=exc.to_body(), headers=exc.headers
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Unmatched routes and wrong methods raised by the router itself
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": HTTPStatus(exc.status_code).phrase, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
        return JSONResponse(status_code=400, content={"error": "Bad Request", "message": message})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error", extra={"structured": {"path": request.url.path}}
        )
        message = "An unexpected error occurred" if settings.is_production else str(exc)
        return JSONResponse(
            status_code=500, content={"error": "Internal Server Error", "message": message}
        )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use (defaults to environment)
        services: Pre-built capability container; when omitted it is built
            from settings on startup and torn down on shutdown
    """
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services is not None:
            yield
            return

        configure_logging(settings.log_level)
        for name in settings.missing_required():
            logger.error(f"Missing required setting: {name}")
        if settings.is_production and settings.missing_required():
            raise RuntimeError("Refusing to start with missing required settings")

        app.state.services = create_services(settings)
        logger.info(f"{APP_TITLE} started", extra={"structured": {"environment": settings.environment}})
        try:
            yield
        finally:
            await app.state.services.aclose()

    app = FastAPI(title=APP_TITLE, version=APP_VERSION, lifespan=lifespan)
    if services is not None:
        app.state.services = services

    origins = ["*"] if settings.cors_origin == "*" else settings.cors_origin.split(",")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=settings.cors_origin != "*",
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )

    register_error_handlers(app, settings)

    # Register routes
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(sync_router)
    app.include_router(webhooks_router)
    app.include_router(notifications_router)
    app.include_router(email_router)
    app.include_router(storage_router)
    for router in entity_routers:
        app.include_router(router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": APP_TITLE, "version": APP_VERSION}

    return app


app = create_app()
