# src/score_oracle/api/endpoints/__init__.py
"""API endpoint modules."""

from .admin import router as admin_router
from .scores import router as scores_router
from .system import router as system_router

__all__ = [
    "admin_router",
    "scores_router",
    "system_router",
]
