"""
Review router.

Endpoints for reviewing items and reading learner progress. The learner is
identified by the `X-Learner-Id` header; without it the request runs
against the device-local anonymous store.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import BaseModel

from codememory.review.service import ReviewService

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class InitializeRequest(BaseModel):
    """Items to make known to the learner (all catalog items if omitted)."""

    item_ids: list[str] | None = None


class ReviewRequest(BaseModel):
    """A rating for one item: 1-4 or Again/Hard/Good/Easy."""

    rating: int | str


# ========================================
# Dependencies
# ========================================


def get_service(request: Request) -> ReviewService:
    return request.app.state.review_service


def get_learner_id(x_learner_id: str | None = Header(default=None)) -> str | None:
    return x_learner_id


# ========================================
# Card Endpoints
# ========================================


@router.post("/cards/initialize", summary="Initialize items for the learner")
def initialize_cards(
    body: InitializeRequest,
    service: ReviewService = Depends(get_service),
    learner_id: str | None = Depends(get_learner_id),
) -> dict[str, int]:
    created = service.initialize_items(learner_id, body.item_ids)
    return {"created": created}


@router.post("/cards/{item_id}/review", summary="Submit a review")
def review_card(
    item_id: str,
    body: ReviewRequest,
    service: ReviewService = Depends(get_service),
    learner_id: str | None = Depends(get_learner_id),
) -> dict[str, Any]:
    """
    Rate an item and persist the new schedule.

    Returns the new due date, the full memory state, and the updated
    concept mastery and streak.
    """
    result = service.submit_review(learner_id, item_id, body.rating)
    return result.to_dict()


@router.get("/cards/{item_id}/preview", summary="Preview every rating")
def preview_card(
    item_id: str,
    service: ReviewService = Depends(get_service),
    learner_id: str | None = Depends(get_learner_id),
) -> dict[str, Any]:
    outcomes = service.preview_review(learner_id, item_id)
    return {rating.label: state.to_dict() for rating, state in outcomes.items()}


@router.get("/cards/due", summary="List due items")
def due_cards(
    service: ReviewService = Depends(get_service),
    learner_id: str | None = Depends(get_learner_id),
) -> dict[str, Any]:
    states = service.list_due_items(learner_id)
    return {"count": len(states), "items": [s.to_dict() for s in states]}


# ========================================
# Progress Endpoints
# ========================================


@router.get("/concepts/{concept_id}/mastery", summary="Concept mastery")
def concept_mastery(
    concept_id: str,
    service: ReviewService = Depends(get_service),
    learner_id: str | None = Depends(get_learner_id),
) -> dict[str, Any]:
    record = service.get_concept_mastery(learner_id, concept_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No mastery recorded for {concept_id}")
    return record.to_dict()


@router.get("/streak", summary="Daily streak")
def streak(
    service: ReviewService = Depends(get_service),
    learner_id: str | None = Depends(get_learner_id),
) -> dict[str, Any]:
    return service.get_streak(learner_id).to_dict()


@router.get("/stats", summary="Learner statistics")
def stats(
    days: int = Query(default=30, ge=1, le=365),
    recent: int = Query(default=10, ge=1, le=100),
    service: ReviewService = Depends(get_service),
    learner_id: str | None = Depends(get_learner_id),
) -> dict[str, Any]:
    return {
        "summary": service.get_stats(learner_id).to_dict(),
        "activity": service.get_activity_summary(learner_id, days=days).to_dict(),
        "recent": [event.to_dict() for event in service.recent_reviews(learner_id, limit=recent)],
    }


@router.delete("/progress", summary="Reset all progress")
def reset_progress(
    service: ReviewService = Depends(get_service),
    learner_id: str | None = Depends(get_learner_id),
) -> dict[str, str]:
    service.reset_all(learner_id)
    return {"status": "reset"}
