"""
Paste service: a key-addressed content cache with disposable reads,
expiring records and per-IP quotas.
"""

# Performance: Install uvloop if available (Linux/macOS only)
try:
    import uvloop
    uvloop.install()
except ImportError:
    pass  # Windows - uvloop not available, use default asyncio

from contextlib import asynccontextmanager
from typing import Optional

from dependency_injector import providers
from fastapi import FastAPI, Request, status
from fastapi.responses import ORJSONResponse, PlainTextResponse

from core.config import Settings
from core.container import Container
from core.errors import (
    APIKeyInvalidError,
    BodyTooLargeError,
    ClientInputError,
    InfrastructureError,
    NonAuthorizedError,
    NotFoundError,
    PasteError,
    QuotaExhaustedError,
    RequestedKeyExistsError,
    StorageTimeoutError,
)
from core.health import set_startup_time
from core.logging import configure_logging, get_logger
from middleware.request_context import CatchAllExceptionsMiddleware, RequestContextMiddleware
from routers import health, paste

logger = get_logger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS = (
    (BodyTooLargeError, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE),
    (NonAuthorizedError, status.HTTP_401_UNAUTHORIZED),
    (APIKeyInvalidError, status.HTTP_401_UNAUTHORIZED),
    (RequestedKeyExistsError, status.HTTP_409_CONFLICT),
    (ClientInputError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (QuotaExhaustedError, status.HTTP_429_TOO_MANY_REQUESTS),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StorageTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (InfrastructureError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: PasteError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def paste_error_handler(request: Request, exc: PasteError):
    code = status_for(exc)
    if code >= 500:
        logger.error("Request failed", error_type=type(exc).__name__, error=str(exc), status=code)
        # Infrastructure details stay in the logs
        return PlainTextResponse("internal server error" if code == 500 else str(exc), status_code=code)
    logger.info("Request rejected", error_type=type(exc).__name__, error=str(exc), status=code)
    return PlainTextResponse(str(exc), status_code=code)


def create_container(settings: Settings) -> Container:
    container = Container()
    container.settings.override(providers.Object(settings))
    return container


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    container: Container = app.state.container
    settings = container.settings()

    # Startup
    logger.info("Starting paste service", version=settings.version,
                backend="redis" if settings.redis_enabled else "memory")
    set_startup_time()

    if settings.redis_enabled:
        await container.store().startup()
    publisher = container.usage_publisher()
    await publisher.start()

    logger.info("Services started successfully")
    yield

    # Shutdown
    await publisher.stop()
    if settings.redis_enabled:
        await container.store().shutdown()
    logger.info("Services shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application and its container."""
    settings = settings or Settings()
    configure_logging(settings)

    app = FastAPI(
        title="Paste Service",
        version=settings.version,
        description="Key-addressed content cache with disposable and expiring records",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.container = create_container(settings)

    app.add_exception_handler(PasteError, paste_error_handler)

    # Outermost last: request context wraps the catch-all so its log lines carry request_id
    app.add_middleware(CatchAllExceptionsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    if settings.health_enabled:
        app.include_router(health.router)
    app.include_router(paste.router)

    return app


if __name__ == "__main__":
    import uvicorn
    settings = Settings()
    logger.info("Starting paste service",
               host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=settings.debug,
    )
