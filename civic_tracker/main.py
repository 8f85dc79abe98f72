"""
Civic Report Tracker - FastAPI Application Entry Point

Tracks citizen-submitted civic issue reports through their lifecycle.

DESIGN PRINCIPLES:
- Strict forward-only status lifecycle with a history row per change
- One capability resolver decides who may do what
- One filter engine serves citizen and staff list views
- Domain errors reach the caller verbatim (code + message + field)
"""

import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from civic_tracker.core.errors import CivicTrackerError
from civic_tracker.core.settings import settings
from civic_tracker.routes import admin, health, profiles, reports
from civic_tracker.services.storage import get_report_store

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Lifecycle and access engine for citizen-reported civic issues",
    debug=settings.DEBUG
)


@app.exception_handler(CivicTrackerError)
async def domain_exception_handler(request: Request, exc: CivicTrackerError):
    """Surface domain errors verbatim with their HTTP status."""
    if exc.retryable and exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log pydantic validation errors and return them in FastAPI's shape."""
    logger.warning(f"{request.method} {request.url.path} - validation failed: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": {"code": "internal_error", "message": "Internal server error", "field": None}}
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


# CORS configuration - explicit origins only, configured via settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """
    Initialize the report store on application startup.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    try:
        get_report_store()
    except RuntimeError as e:
        logger.warning(f"Store initialization failed: {e}")
        logger.warning("The app will start but report operations will fail.")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(reports.router)
app.include_router(admin.router)
app.include_router(profiles.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
    }
