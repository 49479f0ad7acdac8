"""
FastAPI application for CodeMemory.

Provides REST API for:
- Submitting reviews and previewing ratings
- Due-item queues
- Concept mastery, streaks and learner statistics
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from codememory import __version__
from codememory.api.routers.review_router import router as review_router
from codememory.core.exceptions import (
    CodeMemoryError,
    ComputationError,
    ConcurrentReviewError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from codememory.review.service import ReviewService

# Most specific first
_STATUS_CODES: list[tuple[type[CodeMemoryError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConcurrentReviewError, 409),
    (PersistenceError, 503),
    (ComputationError, 500),
]


def status_code_for(error: CodeMemoryError) -> int:
    for error_type, status in _STATUS_CODES:
        if isinstance(error, error_type):
            return status
    return 500


def create_app(service: ReviewService) -> FastAPI:
    """
    Build the API around a ReviewService.

    Args:
        service: Fully wired service (see build_review_service)
    """
    app = FastAPI(
        title="CodeMemory",
        description="Spaced-repetition review engine: FSRS scheduling, mastery and streaks.",
        version=__version__,
    )
    app.state.review_service = service

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CodeMemoryError)
    async def handle_engine_error(request: Request, exc: CodeMemoryError) -> JSONResponse:
        status = status_code_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.get("/health", tags=["Health"])
    def health_check() -> dict[str, Any]:
        """Service info and scheduler parameter version."""
        return {
            "status": "healthy",
            "version": __version__,
            "scheduler": service.scheduler.params.version,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    app.include_router(review_router, tags=["Reviews"])
    return app
