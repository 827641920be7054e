"""FastAPI application factory for the JobScout gateway.

This module creates and configures the FastAPI application with:
- Lifespan management for startup/shutdown events
- Middleware configuration (CORS, request ID, logging)
- Exception handlers
- API routers
"""

import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated, Any

import httpx
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobscout.agents import AGENTS
from jobscout.config import Settings, get_settings
from jobscout.core.database import Database
from jobscout.core.exceptions import GatewayError
from jobscout.core.logging import (
    bind_request_id,
    clear_request_context,
    configure_logging,
    get_logger,
)
from jobscout.dependencies import SettingsDep, get_database, get_provider
from jobscout.schemas.common import HealthCheckResponse, ServiceInfo
from jobscout.services.cache import CacheService
from jobscout.services.executions import ExecutionLogger
from jobscout.services.gateway import AgentGateway, GatewayPolicy
from jobscout.services.provider import ProviderClient
from jobscout.services.rate_limiter import RateLimiter

# Initialize logger for this module
logger = get_logger(__name__)


def build_gateway(
    settings: Settings, database: Database, provider: ProviderClient
) -> AgentGateway:
    """Wire the gateway services around shared collaborators."""
    return AgentGateway(
        rate_limiter=RateLimiter(
            database,
            capacity=settings.rate_limit_capacity,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        cache=CacheService(database),
        executions=ExecutionLogger(database),
        provider=provider,
        policy=GatewayPolicy.from_settings(settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan events.

    Handles initialization and cleanup of:
    - Logging configuration
    - Database engine (and optional table creation)
    - Provider HTTP client
    - Gateway services

    Args:
        app: The FastAPI application instance

    Yields:
        None: Control back to the application
    """
    settings: Settings = app.state.settings

    # ========================================
    # Startup
    # ========================================
    # Configure logging first
    configure_logging(settings)

    # Re-get logger after configuration
    startup_logger = get_logger(__name__)

    database = Database.from_settings(settings)
    if settings.database_create_tables:
        await database.create_all()

    http_client = httpx.AsyncClient(
        base_url=settings.openai_base_url,
        timeout=settings.openai_timeout,
        headers={"User-Agent": f"{settings.app_name}/{settings.app_version}"},
    )
    provider = ProviderClient.from_settings(settings, http_client)
    if not provider.is_configured:
        startup_logger.warning(
            "provider_not_configured",
            detail="OPENAI_API_KEY is empty; agent streams will report an error",
        )

    # Store collaborators in app state for access in dependencies
    app.state.database = database
    app.state.provider = provider
    app.state.gateway = build_gateway(settings, database, provider)

    # Log startup
    startup_logger.info(
        "Application starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.app_env.value,
        debug=settings.debug,
    )

    yield

    # ========================================
    # Shutdown
    # ========================================
    await provider.aclose()
    await database.dispose()

    startup_logger.info("Application shutting down", app_name=settings.app_name)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    This is the application factory function that creates a fully configured
    FastAPI instance with all middleware, routes, and exception handlers.

    Args:
        settings: Optional settings override for testing

    Returns:
        FastAPI: Configured application instance
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "AI request gateway for the JobScout job-search assistant. "
            "Streams research briefs, project ideas and outreach emails as "
            "Server-Sent Events with per-user rate limiting and caching."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ========================================
    # Middleware
    # ========================================
    configure_middleware(app, settings)

    # ========================================
    # Exception Handlers
    # ========================================
    configure_exception_handlers(app)

    # ========================================
    # Routes
    # ========================================
    configure_routes(app)

    return app


def configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure application middleware.

    Args:
        app: The FastAPI application instance
        settings: Application settings
    """
    # CORS middleware (the browser client calls the stream routes directly)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def logging_middleware(request: Request, call_next: Any) -> Any:
        """Log requests and responses under their request id."""
        # Generate or extract request ID
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id

        bind_request_id(request_id)

        # Log request start
        request_logger = get_logger("jobscout.request")
        start_time = time.perf_counter()

        request_logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            query=str(request.query_params) if request.query_params else None,
        )

        try:
            response = await call_next(request)

            # Calculate duration (for streams: time until headers were sent)
            duration_ms = (time.perf_counter() - start_time) * 1000

            # Log request completion
            request_logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            # Add request ID to response headers
            response.headers["X-Request-ID"] = request_id

            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            request_logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
                error=str(exc),
            )
            raise

        finally:
            clear_request_context()


def configure_exception_handlers(app: FastAPI) -> None:
    """Configure global exception handlers.

    Args:
        app: The FastAPI application instance
    """
    exception_logger = get_logger("jobscout.exceptions")

    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(
        request: Request, exc: GatewayError
    ) -> JSONResponse:
        """Handle gateway exceptions with structured error response."""
        request_id = getattr(request.state, "request_id", None)

        # Log at appropriate level based on status code
        if exc.status_code >= 500:
            exception_logger.error(
                "Application error",
                error_code=exc.code,
                error_message=exc.message,
                status_code=exc.status_code,
                path=request.url.path,
            )
        else:
            exception_logger.warning(
                "Client error",
                error_code=exc.code,
                error_message=exc.message,
                status_code=exc.status_code,
                path=request.url.path,
            )

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(request_id=request_id),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions with a consistent error response."""
        request_id = getattr(request.state, "request_id", None)

        exception_logger.exception(
            "Unhandled exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": "An unexpected error occurred",
                    "request_id": request_id,
                }
            },
        )


def configure_routes(app: FastAPI) -> None:
    """Configure application routes.

    Args:
        app: The FastAPI application instance
    """

    @app.get(
        "/health/live",
        tags=["Health"],
        summary="Liveness probe",
        description="Returns OK if the service is running",
    )
    async def liveness() -> dict[str, str]:
        """Liveness probe for container orchestration."""
        return {"status": "ok"}

    @app.get(
        "/health/ready",
        tags=["Health"],
        summary="Readiness probe",
        description="Returns OK if the service is ready to accept requests",
        response_model=HealthCheckResponse,
    )
    async def readiness(
        database: Annotated[Database, Depends(get_database)],
        provider: Annotated[ProviderClient, Depends(get_provider)],
    ) -> JSONResponse:
        """Readiness probe checking the database and provider credentials."""
        db_ok = await database.check_connection()
        provider_ok = provider.is_configured

        if db_ok and provider_ok:
            overall_status = "ok"
        elif db_ok or provider_ok:
            overall_status = "degraded"
        else:
            overall_status = "error"

        body = HealthCheckResponse(
            status=overall_status,
            checks={
                "database": "ok" if db_ok else "error",
                "provider": "ok" if provider_ok else "error",
            },
        )
        return JSONResponse(
            status_code=(
                status.HTTP_200_OK
                if db_ok
                else status.HTTP_503_SERVICE_UNAVAILABLE
            ),
            content=body.model_dump(),
        )

    # Root endpoint
    @app.get(
        "/",
        tags=["Root"],
        summary="API root",
        description="Returns API information",
        response_model=ServiceInfo,
    )
    async def root(settings: SettingsDep) -> ServiceInfo:
        """API root endpoint with service information."""
        return ServiceInfo(
            service=settings.app_name,
            version=settings.app_version,
            endpoints=[f"/{name}/stream" for name in AGENTS],
        )

    # Include API v1 router
    from jobscout.api.v1.agents import router as agents_router
    from jobscout.api.v1.router import router as v1_router

    app.include_router(v1_router, prefix="/api/v1")
    # Paths used by the browser client: /research/stream etc.
    app.include_router(agents_router, tags=["Agents"])


# Create the application instance
app = create_app()


def cli() -> None:
    """CLI entry point for running the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "jobscout.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    cli()
