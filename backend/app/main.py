"""
FitSense - Main FastAPI Application
"""
from contextlib import asynccontextmanager
from datetime import datetime

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.v1 import router as api_v1_router
from app.core.config import settings
from app.core.limiter import apply_rate_limiting
from app.exceptions import FitSenseException
from app.logging_config import setup_logging, get_logger
from app.services.sync_scheduler import SyncScheduler

# Setup structured logging
setup_logging()
logger = get_logger(__name__)

# Error tracking is opt-in through SENTRY_DSN
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.ENVIRONMENT,
        release=f"fitsense@{settings.VERSION}",
    )
else:
    logger.info("SENTRY_DSN not set - error tracking disabled")


# ===================
# Security Headers Middleware
# ===================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


def init_database():
    """Create missing tables on startup (idempotent). Deployments run Alembic."""
    from app.db.session import engine
    from app.db.base import Base
    import app.models  # noqa: F401

    logger.info("Checking database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(
        "Starting FitSense API",
        extra={
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "debug": settings.DEBUG,
        }
    )
    init_database()
    if not getattr(app.state, "member_sync_scheduler", None):
        app.state.member_sync_scheduler = SyncScheduler()
    if not settings.SUPER_ADMIN_EMAILS:
        logger.warning("SUPER_ADMIN_EMAILS is empty - bulk member record actions are disabled")
    yield
    logger.info("Shutting down FitSense API")


# Create FastAPI app
app = FastAPI(
    title="FitSense API",
    description="Gym member ledger and reconciliation service",
    version=settings.VERSION,
    lifespan=lifespan,
)

app.state.limiter, RATE_LIMITS_ENABLED = apply_rate_limiting(app)

# Security headers middleware (outermost)
app.add_middleware(SecurityHeadersMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"],
)


# ===================
# Exception Handlers
# ===================

def _timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


@app.exception_handler(FitSenseException)
async def fitsense_exception_handler(request: Request, exc: FitSenseException):
    logger.warning(
        f"FitSense Exception: {exc.error_code} - {exc.message}",
        extra={"error_code": exc.error_code, "details": exc.details, "path": request.url.path}
    )
    error_dict = exc.to_dict()
    error_dict["timestamp"] = _timestamp()
    return JSONResponse(status_code=exc.status_code, content=error_dict)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        errors.append({"field": field, "message": error["msg"], "type": error["type"]})
    logger.warning(f"Validation error on {request.url.path}", extra={"errors": errors})
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": {"errors": errors},
            "timestamp": _timestamp(),
        },
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "DATABASE_ERROR",
            "message": "A database error occurred. Please try again.",
            "timestamp": _timestamp(),
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error on {request.url.path}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
            "timestamp": _timestamp(),
        },
    )


# Include API routes
app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"message": "FitSense API", "version": settings.VERSION, "status": "online"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8001, reload=True)
