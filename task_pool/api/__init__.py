"""API routes for the Task Pool."""

from fastapi import APIRouter

from .stats import router as stats_router
from .steps import router as steps_router
from .suggestions import router as suggestions_router
from .tasks import router as tasks_router

# Main API router
api_router = APIRouter()

api_router.include_router(stats_router)
api_router.include_router(tasks_router)
api_router.include_router(steps_router)
api_router.include_router(suggestions_router)

__all__ = ["api_router"]
