"""AdsDash — FastAPI Application Entry Point.

Marketing dashboard backend: syncs Meta Ads daily metrics and serves
aggregated totals, comparisons and filter options.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adsdash.api.marketing_routes import router as marketing_router
from adsdash.api.meta_routes import router as meta_router
from adsdash.api.sync_routes import router as sync_router
from adsdash.config import is_serverless
from adsdash.core.errors import (
    AdsDashError,
    ConfigError,
    FatalUpstreamError,
    UpstreamError,
    ValidationError,
)
from adsdash.core.logging import get_logger
from adsdash.database import init_db, test_connection
from adsdash.scheduler.jobs import start_scheduler, stop_scheduler

logger = get_logger("main")

# Function hosts get the daily sync from the platform cron hitting
# /api/cron/sync-meta, so the in-process scheduler only runs elsewhere.
IS_SERVERLESS = is_serverless()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("AdsDash starting up...")
    logger.info(f"Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
    db_ok = test_connection()
    if db_ok:
        try:
            init_db()
        except Exception as e:
            logger.error(f"Table creation failed: {e}")
    else:
        logger.error("Database NOT connected, endpoints will fail")
    if not IS_SERVERLESS:
        start_scheduler()
    yield
    if not IS_SERVERLESS:
        stop_scheduler()
    logger.info("AdsDash shut down")


app = FastAPI(
    title="AdsDash",
    description="Marketing dashboard backend: Meta Ads daily sync, aggregation and period comparison.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(marketing_router)
app.include_router(sync_router)
app.include_router(meta_router)


# ── Error handlers ──
# Every failure is answered as JSON with an `error` key.


def _error_response(request: Request, status_code: int, body: dict) -> JSONResponse:
    logger.error(
        f"{request.method} {request.url.path} failed: {body.get('error')}",
        extra={"endpoint": request.url.path, "status_code": status_code},
    )
    return JSONResponse(status_code=status_code, content={"ok": False, **body})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(request, status.HTTP_400_BAD_REQUEST, {"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        {"error": "Invalid request parameters", "detail": exc.errors()},
    )


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, {"error": str(exc)}
    )


@app.exception_handler(FatalUpstreamError)
async def fatal_upstream_handler(request: Request, exc: FatalUpstreamError):
    return _error_response(
        request,
        status.HTTP_502_BAD_GATEWAY,
        {
            "error": exc.kind,
            "detail": exc.meta_message,
            "remediation": exc.remediation,
        },
    )


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    return _error_response(request, status.HTTP_502_BAD_GATEWAY, {"error": str(exc)})


@app.exception_handler(AdsDashError)
async def adsdash_error_handler(request: Request, exc: AdsDashError):
    """Schema drift and reconciliation gaps."""
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, {"error": str(exc)}
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unexpected errors answer 500 with the usual JSON error body."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, {"error": str(exc) or "Internal server error"}
    )


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "adsdash",
        "version": "1.0.0",
    }
