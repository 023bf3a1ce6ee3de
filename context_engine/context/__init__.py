"""Workspace context for the project assistant.

This module provides:
- Concurrent, timeout-bounded domain queries for a project and its workspace
- Per-domain summaries (counts, recent items, key field previews)
- Phase date suggestions spread across the scope-of-work timeline
- Deterministic prompt rendering of the snapshot
"""

from context_engine.context.models import (
    PhaseDateRange,
    PhaseSummary,
    WorkspaceSnapshot,
)
from context_engine.context.workspace_context import (
    build_workspace_context,
    suggest_phase_dates,
)
from context_engine.context.workspace_format import format_workspace_context

__all__ = [
    # Models
    "PhaseDateRange",
    "PhaseSummary",
    "WorkspaceSnapshot",
    # Builder
    "build_workspace_context",
    "suggest_phase_dates",
    # Rendering
    "format_workspace_context",
]
