"""API router for v1 endpoints."""

from fastapi import APIRouter

from context_engine.api import knowledge, workspace

router = APIRouter()

# Knowledge base retrieval, context assembly and relation routes
router.include_router(knowledge.router, prefix="/kb", tags=["knowledge"])

# Workspace assistant context routes
router.include_router(workspace.router, prefix="/workspaces", tags=["workspace"])
