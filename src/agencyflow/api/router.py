"""Master API router mounted at /api/v1."""

from fastapi import APIRouter

from agencyflow.api.routes import (
    approvals,
    audit,
    health,
    notifications,
    projects,
    stage_transitions,
)

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(projects.router)
api_router.include_router(approvals.router)
api_router.include_router(stage_transitions.router)
api_router.include_router(notifications.router)
api_router.include_router(audit.router)
