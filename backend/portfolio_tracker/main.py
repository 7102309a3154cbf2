# backend/portfolio_tracker/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application and its lifespan (engine disposal)
- Registers middleware and global exception handlers
- Registers all routers
- Defines global endpoints (health checks)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.orm import Session

from portfolio_tracker.config import settings
from portfolio_tracker.database import engine, get_db, dispose_engine, check_database_health
from portfolio_tracker.middleware import (
    CorrelationIdMiddleware,
    ScopedCORSMiddleware,
    limiter,
    rate_limit_exceeded_handler,
    SlowAPIMiddleware,
    RATE_LIMIT_HEALTH,
)
from portfolio_tracker.models import Base
from portfolio_tracker.routers import holdings_router, price_history_router
from portfolio_tracker.schemas.errors import ErrorDetail, ValidationErrorDetail
from portfolio_tracker.services.exceptions import (
    ServiceError,
    ValidationError,
    NotFoundError,
    HoldingNotFoundError,
    DuplicateHoldingError,
    MarketDataError,
    ProviderConfigurationError,
    ProviderUnavailableError,
    RateLimitError,
)
from portfolio_tracker.utils import setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()


# =============================================================================
# APPLICATION SETUP
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on SQLite, dispose the engine on shutdown."""
    if settings.is_sqlite:
        Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.app_name} started ({settings.environment})")
    yield
    dispose_engine()


app = FastAPI(
    title=settings.app_name,
    description="Personal portfolio tracker with daily price history sync",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================
# Must be added before other middleware
# The web UI gets the strict policy from CORS_ORIGINS. The bulk import
# route is called by the browser extension and gets its own open policy.

app.add_middleware(
    ScopedCORSMiddleware,
    allow_origins=settings.cors_origins,
    extension_paths=["/holdings/batch"],
    extension_origins=settings.extension_cors_origins,
)


# =============================================================================
# MIDDLEWARE (order matters: last added = first executed)
# =============================================================================

# Attach limiter to app state (required by slowapi)
app.state.limiter = limiter

app.add_middleware(SlowAPIMiddleware)

# Add correlation ID tracking for request tracing
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
# These handlers catch service-layer exceptions and convert them to
# consistent HTTP responses. The sync endpoint catches its own failures
# to answer with the {success: false, error} envelope.
# =============================================================================

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(HoldingNotFoundError)
async def holding_not_found_handler(request: Request, exc: HoldingNotFoundError) -> JSONResponse:
    """Handle holding not found errors (404)."""
    logger.warning(f"Holding not found: {exc.holding_id}")
    return JSONResponse(
        status_code=404,
        content=ErrorDetail(
            error="HoldingNotFoundError",
            message=str(exc),
            details={"holding_id": exc.holding_id},
        ).model_dump(),
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle generic not found errors (404)."""
    logger.warning(f"Not found: {exc}")
    return JSONResponse(
        status_code=404,
        content=ErrorDetail(
            error="NotFoundError",
            message=str(exc),
            details={
                "resource_type": exc.resource_type,
                "resource_id": exc.resource_id,
            } if exc.resource_type else None,
        ).model_dump(),
    )


@app.exception_handler(DuplicateHoldingError)
async def duplicate_holding_handler(request: Request, exc: DuplicateHoldingError) -> JSONResponse:
    """Handle duplicate ticker errors (409)."""
    logger.warning(f"Duplicate holding: {exc.ticker}")
    return JSONResponse(
        status_code=409,
        content=ErrorDetail(
            error="DuplicateHoldingError",
            message=str(exc),
            details={"ticker": exc.ticker},
        ).model_dump(),
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """Handle validation errors (400)."""
    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error="ValidationError",
            message=str(exc),
            details={"field": exc.field} if exc.field else None,
        ).model_dump(),
    )


@app.exception_handler(ProviderConfigurationError)
async def provider_configuration_handler(
    request: Request, exc: ProviderConfigurationError
) -> JSONResponse:
    """Handle missing provider credentials (500)."""
    logger.error(f"Provider misconfigured: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="ProviderConfigurationError",
            message=str(exc),
            details={"provider": exc.provider},
        ).model_dump(),
    )


@app.exception_handler(ProviderUnavailableError)
async def provider_unavailable_handler(request: Request, exc: ProviderUnavailableError) -> JSONResponse:
    """Handle market data provider unavailable (503)."""
    logger.error(f"Provider unavailable: {exc}")
    return JSONResponse(
        status_code=503,
        content=ErrorDetail(
            error="ProviderUnavailableError",
            message=str(exc),
            details={"status_code": exc.status_code} if exc.status_code else None,
        ).model_dump(),
    )


@app.exception_handler(RateLimitError)
async def rate_limit_handler(request: Request, exc: RateLimitError) -> JSONResponse:
    """Handle provider rate limit exceeded (429)."""
    logger.warning(f"Rate limit exceeded: {exc}")
    return JSONResponse(
        status_code=429,
        content=ErrorDetail(
            error="RateLimitError",
            message=str(exc),
            details={"retry_after": exc.retry_after} if exc.retry_after else None,
        ).model_dump(),
    )


@app.exception_handler(MarketDataError)
async def market_data_error_handler(request: Request, exc: MarketDataError) -> JSONResponse:
    """Handle generic market data errors (500)."""
    logger.error(f"Market data error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="MarketDataError",
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle generic service errors (500)."""
    logger.error(f"Service error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="ServiceError",
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle all HTTPExceptions with consistent error format.

    Converts FastAPI's default {"detail": "..."} format to our standard
    ErrorDetail format for API consistency.
    """
    error_types = {
        400: "BadRequestError",
        404: "NotFoundError",
        405: "MethodNotAllowedError",
        409: "ConflictError",
        422: "ValidationError",
        429: "RateLimitError",
        500: "InternalServerError",
        503: "ServiceUnavailableError",
    }
    error_type = error_types.get(exc.status_code, "HTTPError")

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error=error_type,
            message=str(exc.detail) if exc.detail else "An error occurred",
            details=None,
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors with consistent format.

    Converts the default 422 validation error to our ValidationErrorDetail format.
    """
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(
            error="ValidationError",
            message="Request validation failed",
            details=errors,
        ).model_dump(),
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(holdings_router)  # /holdings/*
app.include_router(price_history_router)  # /price-history/*


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def root(request: Request):
    """
    API root - returns basic application info.
    """
    return {
        "message": f"Welcome to {settings.app_name}!",
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def health_check(request: Request):
    """
    Comprehensive health check endpoint.

    Returns HTTP 503 if the database is unreachable.
    Returns HTTP 200 with degraded status if price sync is not configured.

    **Response Status Codes:**
    - 200: All systems healthy, or non-critical systems degraded
    - 503: Critical systems (database) unhealthy
    """
    from portfolio_tracker.dependencies import get_sync_service

    checks = {}
    critical_healthy = True
    overall_status = "healthy"

    # Check 1: Database (CRITICAL)
    database = check_database_health()
    checks["database"] = {**database, "critical": True}
    if database["status"] != "healthy":
        critical_healthy = False
        overall_status = "unhealthy"

    # Check 2: Market data credentials - NON-CRITICAL
    # Holdings work without them; only the sync needs them.
    try:
        providers = get_sync_service().provider_names
        if settings.has_alpaca_credentials:
            checks["market_data"] = {
                "status": "healthy",
                "critical": False,
                "providers": providers,
            }
        else:
            checks["market_data"] = {
                "status": "unconfigured",
                "critical": False,
                "providers": providers,
                "error": "ALPACA_API_KEY and ALPACA_SECRET_KEY are required for price sync",
            }
            if overall_status == "healthy":
                overall_status = "degraded"
    except Exception as e:
        logger.warning(f"Market data health check failed: {e}")
        checks["market_data"] = {
            "status": "unknown",
            "critical": False,
            "error": str(e),
        }

    response_data = {
        "status": overall_status,
        "checks": checks,
    }

    if not critical_healthy:
        return JSONResponse(
            status_code=503,
            content=response_data,
        )

    return response_data


@app.get("/health/live", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def liveness_check(request: Request):
    """
    Liveness probe endpoint.

    Returns HTTP 200 if the application is running. Does NOT check
    dependencies; use /health/ready for that.
    """
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def readiness_check(request: Request, db: Session = Depends(get_db)):
    """
    Readiness probe endpoint.

    Returns HTTP 200 if the database is reachable, 503 otherwise.
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready"}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "error": "Database unavailable",
            },
        )
