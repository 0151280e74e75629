"""
FastAPI application factory.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shelflife.api.router import api_router
from shelflife.clients.base import ServiceError
from shelflife.clients.registry import build_service_clients
from shelflife.config import settings
from shelflife.deletion.orchestrator import DeletionOrchestrator
from shelflife.errors import ShelflifeError
from shelflife.models.database import async_session_factory, close_db, init_db
from shelflife.observability.logging import setup_logging
from shelflife.sync.dispatch import SyncDispatcher
from shelflife.sync.scheduler import SyncScheduler

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # Startup
    setup_logging()

    # Sentry init if configured
    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            traces_sample_rate=0.1,
        )

    await init_db()

    if settings.API_KEY is None:
        logger.warning("api_key_not_configured", debug=settings.DEBUG)

    clients = build_service_clients(settings)
    app.state.clients = clients
    app.state.orchestrator = DeletionOrchestrator(async_session_factory, clients)
    app.state.dispatcher = SyncDispatcher(async_session_factory, clients)
    app.state.scheduler = SyncScheduler(app.state.dispatcher, async_session_factory)
    await app.state.scheduler.start()

    logger.info("startup_complete", version=settings.APP_VERSION)

    yield

    # Shutdown
    await app.state.scheduler.stop()
    await clients.aclose()
    await close_db()


def register_exception_handlers(app: FastAPI) -> None:
    """Typed errors map to their status; everything else is a bare 500."""

    @app.exception_handler(ShelflifeError)
    async def shelflife_error_handler(request: Request, exc: ShelflifeError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "error_code": exc.error_code},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=400,
            content={
                "error": f"{location}: {message}" if location else message,
                "error_code": "ERR_VALIDATION",
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "error_code": f"ERR_HTTP_{exc.status_code}"},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        logger.error("upstream_service_error", service=exc.service, error=exc.message, path=request.url.path)
        return JSONResponse(
            status_code=502,
            content={"error": exc.message, "error_code": "ERR_UPSTREAM"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path, method=request.method)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "error_code": "ERR_INTERNAL"},
        )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Shelflife",
        description="Community review and coordinated removal of Plex requests.",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics endpoint
    if settings.PROMETHEUS_ENABLED:
        from prometheus_client import make_asgi_app
        metrics_app = make_asgi_app()
        app.mount("/metrics", metrics_app)

    register_exception_handlers(app)

    # Include all API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()
