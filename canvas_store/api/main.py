"""Main FastAPI application entry point."""

import time
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from canvas_store.modules.folders.router import router as folders_router
from canvas_store.modules.storage.router import router as storage_router
from canvas_store.shared.exceptions import (
    CanvasStoreException,
    CorruptRecordError,
    DocumentNotFoundError,
    FolderNotFoundError,
    SearchCancelledError,
    ValidationError,
)
from .config import get_settings

settings = get_settings()

# Configure logging
logger.add(
    settings.log_dir / "canvas_store_{time}.log",
    rotation="1 day",
    retention="7 days",
    level=settings.log_level,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage directory: {settings.storage_dir.resolve()}")

    yield

    logger.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Local storage, caching and search for canvas documents",
    version=settings.app_version,
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    openapi_url=f"{settings.api_prefix}/openapi.json",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(storage_router, prefix=settings.api_prefix)
app.include_router(folders_router, prefix=settings.api_prefix)


# Middleware for request logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests."""
    start_time = time.time()

    logger.debug(f"{request.method} {request.url.path}")

    response = await call_next(request)

    duration = time.time() - start_time
    logger.debug(f"{request.method} {request.url.path} - {response.status_code} ({duration:.3f}s)")

    return response


# Health check endpoint
@app.get("/health")
async def health_check() -> Dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
    }


def _status_for(exc: CanvasStoreException) -> int:
    if isinstance(exc, (DocumentNotFoundError, FolderNotFoundError)):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, SearchCancelledError):
        return 409
    if isinstance(exc, CorruptRecordError):
        return 422
    return 500


# Error handlers
@app.exception_handler(CanvasStoreException)
async def store_error_handler(request: Request, exc: CanvasStoreException):
    """Map store errors onto HTTP status codes."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.message, "type": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected error occurred. Please try again later."},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "canvas_store.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
