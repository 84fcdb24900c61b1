"""API routers for the paper-practice service."""

from src.api.routers import (
    catalog_router,
    practice_router,
)

__all__ = [
    "catalog_router",
    "practice_router",
]
