"""FastAPI application for the order console API.

This module provides:
- Application factory wiring the shared service container
- Mapping of domain errors to HTTP status codes
- Health check endpoints
- CORS configuration
"""

from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.api.container import ServiceContainer
from src.api.health import ServiceStatus, create_health_service
from src.errors import (
    AuthenticationError,
    DataAccessError,
    InvalidTransitionError,
    OrderConsoleError,
    OrderNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from src.observability.logs import configure_logging

logger = structlog.get_logger(__name__)

# Most specific first
ERROR_STATUS_CODES: list[tuple[type[OrderConsoleError], int]] = [
    (ValidationError, 400),
    (AuthenticationError, 401),
    (PermissionDeniedError, 403),
    (OrderNotFoundError, 404),
    (InvalidTransitionError, 409),
    (DataAccessError, 502),
]


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error message")
    error_type: str | None = Field(default=None, description="Exception class name")
    detail: dict[str, Any] | None = Field(default=None, description="Detailed error information")


def status_code_for(exc: OrderConsoleError) -> int:
    """Map a domain error to its HTTP status code."""
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging()
    logger.info("application_starting")

    yield

    logger.info("application_shutting_down")
    await app.state.container.close()


OPENAPI_TAGS = [
    {
        "name": "Orders",
        "description": "Place orders, list them and move them through their statuses.",
    },
    {
        "name": "Webhooks",
        "description": "Per-client webhook destinations and global message templates.",
    },
    {
        "name": "Health",
        "description": "Liveness and readiness probes.",
    },
]


def create_app(
    container: ServiceContainer | None = None,
    title: str = "Order Console API",
    version: str = "1.0.0",
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        container: Shared services (built from settings if not provided).
        title: API title.
        version: API version.
        cors_origins: Allowed CORS origins.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title=title,
        version=version,
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
    )
    app.state.container = container or ServiceContainer.from_settings()
    app.state.health = create_health_service(
        app.state.container.store,
        app.state.container.dispatcher,
        version=version,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(OrderConsoleError)
    async def domain_exception_handler(
        request: Request, exc: OrderConsoleError  # noqa: ARG001
    ) -> JSONResponse:
        status_code = status_code_for(exc)
        log = logger.error if status_code >= 500 else logger.info
        log("request_failed", status_code=status_code, **exc.to_dict())
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=exc.message,
                error_type=exc.__class__.__name__,
                detail=exc.details or None,
            ).model_dump(),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException  # noqa: ARG001
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
            ).model_dump(),
        )

    register_routes(app)

    return app


def register_routes(app: FastAPI) -> None:
    """Register all routes on the application.

    Args:
        app: FastAPI application.
    """
    from src.api.orders import router as orders_router
    from src.api.profiles import router as profiles_router
    from src.api.webhooks import router as webhooks_router

    app.include_router(orders_router)
    app.include_router(profiles_router)
    app.include_router(webhooks_router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, Any]:
        """Basic liveness check."""
        return await app.state.health.liveness()

    @app.get("/health/ready", tags=["Health"])
    async def readiness() -> JSONResponse:
        """Readiness check of the store and notifier."""
        result = await app.state.health.readiness()
        status_code = 200 if result.status != ServiceStatus.NOT_READY else 503
        return JSONResponse(content=result.to_dict(), status_code=status_code)
