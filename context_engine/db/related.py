"""Database reads for cross-domain relation discovery (tasks, phases, dashboards)."""

from typing import Any

from supabase import Client

from context_engine.core.errors import StoreFailure
from context_engine.db.supabase_client import get_supabase


def list_organization_projects(
    organization_id: str,
    client: Client | None = None,
) -> list[dict[str, Any]]:
    """
    List ``{id, name}`` for every project in an organization.

    Raises:
        StoreFailure: If the query fails
    """
    client = client or get_supabase()
    try:
        response = (
            client.table("projects")
            .select("id, name")
            .eq("organization_id", organization_id)
            .execute()
        )
        return response.data or []
    except Exception as e:
        raise StoreFailure(f"Project listing failed: {e}") from e


def list_project_tasks(
    project_ids: list[str],
    limit: int,
    client: Client | None = None,
) -> list[dict[str, Any]]:
    """
    List tasks across the given projects.

    Raises:
        StoreFailure: If the query fails
    """
    client = client or get_supabase()
    try:
        response = (
            client.table("project_tasks")
            .select("id, title, project_id, description")
            .in_("project_id", project_ids)
            .limit(limit)
            .execute()
        )
        return response.data or []
    except Exception as e:
        raise StoreFailure(f"Task listing failed: {e}") from e


def list_project_phases(
    project_ids: list[str],
    limit: int,
    client: Client | None = None,
) -> list[dict[str, Any]]:
    """
    List phases (with their JSON ``data``) across the given projects.

    Raises:
        StoreFailure: If the query fails
    """
    client = client or get_supabase()
    try:
        response = (
            client.table("project_phases")
            .select("id, project_id, phase_number, phase_name, data")
            .in_("project_id", project_ids)
            .limit(limit)
            .execute()
        )
        return response.data or []
    except Exception as e:
        raise StoreFailure(f"Phase listing failed: {e}") from e


def search_dashboards(
    organization_id: str,
    keywords: list[str],
    limit: int,
    client: Client | None = None,
) -> list[dict[str, Any]]:
    """
    List organization dashboards whose name or description mentions any keyword.

    Raises:
        StoreFailure: If the query fails
    """
    client = client or get_supabase()
    keyword_filter = ",".join(
        f"name.ilike.%{kw}%,description.ilike.%{kw}%" for kw in keywords
    )
    try:
        response = (
            client.table("dashboards")
            .select("id, name, description")
            .eq("organization_id", organization_id)
            .or_(keyword_filter)
            .limit(limit)
            .execute()
        )
        return response.data or []
    except Exception as e:
        raise StoreFailure(f"Dashboard search failed: {e}") from e
