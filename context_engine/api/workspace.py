"""Workspace assistant context endpoint."""

from fastapi import APIRouter, HTTPException, Path, Query
from pydantic import BaseModel

from context_engine.context import (
    WorkspaceSnapshot,
    build_workspace_context,
    format_workspace_context,
)
from context_engine.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


class WorkspaceContextResponse(BaseModel):
    """Snapshot plus its rendered prompt text."""
    snapshot: WorkspaceSnapshot
    context_text: str


@router.get("/{project_id}/context", response_model=WorkspaceContextResponse)
async def get_workspace_context(
    project_id: str = Path(..., description="Project UUID"),
    workspace_id: str = Query(..., description="Workspace UUID"),
) -> WorkspaceContextResponse:
    """
    Build a fresh workspace snapshot for the assistant.

    Domains that fail or time out are left empty and listed in
    ``snapshot.unavailable_domains``; they never fail the request.

    Raises:
        HTTPException 500: If the snapshot cannot be built at all
    """
    try:
        snapshot = await build_workspace_context(project_id, workspace_id)
    except Exception as e:
        logger.error(
            f"Failed to build workspace context: {e}",
            exc_info=True,
            extra={"project_id": project_id},
        )
        raise HTTPException(
            status_code=500, detail=f"Failed to build workspace context: {e}"
        ) from e

    return WorkspaceContextResponse(
        snapshot=snapshot, context_text=format_workspace_context(snapshot)
    )
