"""
FastAPI application for the paper-practice service.

Provides REST API for:
- Paper catalog browsing (answer keys hidden)
- Session start/resume, answers, navigation and completion
- Global leaderboard
- Result history and per-user reset
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from src.db.database import check_connection, init_db
from src.db.utils import utcnow
from src.quiz.errors import (
    ConflictError,
    FatalError,
    InvalidInputError,
    NotFoundError,
    PracticeError,
    RetryableIOError,
)

settings = get_settings()

ERROR_STATUS: dict[type[PracticeError], int] = {
    InvalidInputError: 422,
    NotFoundError: 404,
    ConflictError: 409,
    RetryableIOError: 503,
    FatalError: 500,
}


def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        check_connection()
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    logger.info("Starting paper-practice service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down paper-practice service...")


app = FastAPI(
    title="Paper Practice",
    description="""
    Quiz-practice backend for candidates working through fixed 100-question papers.

    ## Features

    - **Resume anywhere**: progress is held server-side per (user, paper)
    - **Versioned writes**: every answer carries the version the client last read
    - **Exactly-once completion**: completion is keyed by a caller-supplied idempotency key
    - **Leaderboard**: global top 20 across all papers
    - **Reset**: clear all of a user's in-progress sessions at once
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PracticeError)
async def practice_error_handler(request: Request, exc: PracticeError) -> JSONResponse:
    """Map the error taxonomy onto HTTP status codes."""
    status = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        500,
    )
    if status >= 500:
        logger.error("{} {} failed: {}", request.method, request.url.path, exc.message)
    headers = {"Retry-After": "1"} if isinstance(exc, RetryableIOError) else None
    return JSONResponse(
        status_code=status,
        content={"detail": jsonable_encoder(exc.to_dict())},
        headers=headers,
    )


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "paper-practice",
        "version": "1.0.0",
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check endpoint with an actual connectivity test."""
    db_status, db_error = _check_database_health()

    result = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": utcnow().isoformat(),
        "components": {"database": db_status},
    }
    if db_error:
        result["errors"] = {"database": db_error}

    return result


@app.get("/config", tags=["Health"])
def get_config() -> dict[str, Any]:
    """Get current configuration (non-sensitive)."""
    return {
        "database_url": settings.database_url.split("@")[-1]
        if "@" in settings.database_url
        else "configured",
        "practice": settings.get_practice_config(),
    }


# ========================================
# Import and mount routers
# ========================================

from src.api.routers import catalog_router, practice_router

app.include_router(catalog_router.router, prefix="/api/papers", tags=["Catalog"])
app.include_router(practice_router.router, prefix="/api", tags=["Practice"])
