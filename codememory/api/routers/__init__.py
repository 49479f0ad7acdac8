"""API routers."""

from codememory.api.routers.review_router import router as review_router

__all__ = ["review_router"]
