"""
Chalkboard - Main Application Entry Point
Billiard hall table sessions, F&B orders and billing
"""

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import structlog

from chalkboard.core.config import get_settings
from chalkboard.core.database import init_db
from chalkboard.core.dependencies import get_current_identity
from chalkboard.core.errors import ChalkboardError, InternalError, InvalidArgumentError
from chalkboard.api import (
    fnb, payments, pricing_packages, settings as settings_api, staff,
    table_sessions, tables
)

settings = get_settings()

# Configure structured logging on top of stdlib logging
logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Initializing Chalkboard backend")
    init_db()

    yield

    # Shutdown
    logger.info("Shutting down Chalkboard backend")


# Create FastAPI application
app = FastAPI(
    title="Chalkboard API",
    description="Billiard hall table sessions, F&B orders and billing",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure middleware stack
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChalkboardError)
async def chalkboard_error_handler(request: Request, exc: ChalkboardError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.kind}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = None
    error = InvalidArgumentError(message)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
    error = InternalError()
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error.to_dict())


# Include routers, every one behind the authentication gate
authenticated = [Depends(get_current_identity)]
prefix = settings.API_V1_PREFIX

app.include_router(tables.router, prefix=f"{prefix}/tables", tags=["tables"], dependencies=authenticated)
app.include_router(
    table_sessions.router, prefix=f"{prefix}/table-sessions", tags=["table-sessions"], dependencies=authenticated
)
app.include_router(
    pricing_packages.router, prefix=f"{prefix}/pricing-packages", tags=["pricing-packages"], dependencies=authenticated
)
app.include_router(fnb.router, prefix=f"{prefix}/fnb", tags=["fnb"], dependencies=authenticated)
app.include_router(payments.router, prefix=f"{prefix}/payments", tags=["payments"], dependencies=authenticated)
app.include_router(settings_api.router, prefix=f"{prefix}/settings", tags=["settings"], dependencies=authenticated)
app.include_router(staff.router, prefix=f"{prefix}/staff", tags=["staff"], dependencies=authenticated)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "chalkboard-api"}


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Chalkboard API",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "chalkboard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level="info",
    )
