"""
CoveTalks API Application

Main application entry point for the CoveTalks speaker marketplace API.
Provides the session gate, directory, workflow, messaging and billing
endpoints, and the Stripe webhook.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from covetalks.auth.session_gate import SessionGateMiddleware
from covetalks.config import Settings, get_settings
from covetalks.dependencies import init_clients, session_resolver_for
from covetalks.routes import (
    applications,
    billing,
    health,
    members,
    messages,
    opportunities,
    organizations,
    pages,
    webhook,
)
from covetalks.utils.exceptions import CoveTalksException
from covetalks.utils.logging_config import (
    clear_request_context,
    get_logger,
    set_correlation_id,
    setup_logging,
)

logger = get_logger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.
    Handles startup and shutdown events.
    """
    settings: Settings = app.state.settings
    redis_service = app.state.clients.redis_service

    logger.info(
        f"Starting {settings.app_name} v{settings.app_version}",
        extra={"environment": settings.environment},
    )

    if redis_service is not None:
        try:
            await redis_service.connect()
        except CoveTalksException as e:
            # Auto-login rejects tokens until Redis is reachable
            logger.error(f"Failed to connect to Redis: {e.message}")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")

    if redis_service is not None:
        try:
            await redis_service.disconnect()
        except Exception as e:
            logger.warning(f"Error closing Redis connection: {e}")

    logger.info("Application shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(log_level=settings.log_level, environment=settings.environment)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Speaker and organization marketplace API",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    init_clients(app, settings)

    # Innermost first: the gate sees requests after CORS and correlation ids
    app.add_middleware(
        SessionGateMiddleware,
        resolver_factory=session_resolver_for,
        settings=settings,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        """Add correlation ID to all requests for tracing"""
        correlation_id = set_correlation_id(request.headers.get("X-Correlation-ID"))
        try:
            response = await call_next(request)
        finally:
            clear_request_context()

        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(CoveTalksException)
    async def covetalks_exception_handler(request: Request, exc: CoveTalksException):
        """Map application exceptions to their status and public message"""
        if exc.status_code >= 500:
            logger.error(
                f"{type(exc).__name__}: {exc.message}",
                extra={"error": exc.to_dict(), "path": request.url.path},
            )
        else:
            logger.info(
                f"{type(exc).__name__}: {exc.message}",
                extra={"error_code": exc.error_code, "path": request.url.path},
            )

        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": _validation_message(exc), "code": "VALIDATION_ERROR"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions"""
        logger.error(
            f"Unexpected exception: {exc}",
            extra={"error": str(exc), "type": type(exc).__name__},
            exc_info=True,
        )

        return JSONResponse(
            status_code=500,
            content={"error": "An unexpected error occurred", "code": "INTERNAL_ERROR"},
        )

    app.include_router(webhook.router)
    app.include_router(billing.router)
    app.include_router(members.router)
    app.include_router(organizations.router)
    app.include_router(opportunities.router)
    app.include_router(applications.router)
    app.include_router(messages.router)
    app.include_router(pages.router)
    app.include_router(health.router)

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "docs_url": "/docs" if settings.is_development else None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "covetalks.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.is_development,
        log_level=_settings.log_level.lower(),
    )
