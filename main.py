"""
API server entry point for paper-practice.

Run with:
    python main.py
    uvicorn main:app --port 8100

Catalog and user maintenance live in the ``paper-practice`` CLI.
"""
import uvicorn

from config import get_settings
from src.api.main import app
from src.core.logging_config import configure_logging

__all__ = ["app", "serve"]


def serve(reload: bool = False) -> None:
    """Configure loguru sinks and run the API under uvicorn."""
    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(
        "src.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    serve()
