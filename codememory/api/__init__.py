"""HTTP API for the review engine."""

from codememory.api.main import create_app

__all__ = ["create_app"]
