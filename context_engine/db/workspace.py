"""Per-domain reads for the workspace context snapshot.

Each function is one independent query. They are synchronous (the
Supabase client is) and are run in worker threads by the builder, which
also owns timeouts and failure handling. Single-row lookups return a
dict or None; everything else returns a list of rows.
"""

from typing import Any

from supabase import Client


def _single(response: Any) -> dict[str, Any] | None:
    # maybe_single() may hand back None instead of an empty response
    return response.data if response else None


def fetch_project(client: Client, project_id: str) -> dict[str, Any] | None:
    response = (
        client.table("projects")
        .select("name, description, status, primary_tool")
        .eq("id", project_id)
        .maybe_single()
        .execute()
    )
    return _single(response)


def fetch_sow_members(client: Client, project_id: str) -> dict[str, Any] | None:
    """Active project SOW with its members and their organization roles."""
    response = (
        client.table("project_scope_of_work")
        .select(
            "id, project_members:sow_project_members("
            "project_member:project_members!sow_project_members_project_member_id_fkey("
            "user_id, user:users!project_members_user_id_fkey(id, name, email)), "
            "organization_role:organization_roles!sow_project_members_organization_role_id_fkey("
            "id, name))"
        )
        .eq("project_id", project_id)
        .eq("status", "active")
        .order("version", desc=True)
        .limit(1)
        .maybe_single()
        .execute()
    )
    return _single(response)


def fetch_direct_members(client: Client, project_id: str) -> list[dict[str, Any]]:
    """Project members queried directly, used when no SOW lists any."""
    response = (
        client.table("project_members")
        .select(
            "user_id, organization_role_id, organization_role:organization_roles(id, name), "
            "user:users!project_members_user_id_fkey(id, name, email)"
        )
        .eq("project_id", project_id)
        .execute()
    )
    return response.data or []


def fetch_scope_of_work(client: Client, project_id: str) -> dict[str, Any] | None:
    response = (
        client.table("scope_of_work")
        .select("status, objectives, deliverables, timeline, budget")
        .eq("project_id", project_id)
        .in_("status", ["active", "approved", "completed"])
        .order("created_at", desc=True)
        .limit(1)
        .maybe_single()
        .execute()
    )
    return _single(response)


def fetch_phases(client: Client, project_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("project_phases")
        .select("phase_number, phase_name, completed, data")
        .eq("project_id", project_id)
        .eq("is_active", True)
        .order("phase_number")
        .execute()
    )
    return response.data or []


def fetch_tasks(client: Client, project_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("project_tasks")
        .select("title, status, priority, assignee_id, created_at")
        .eq("project_id", project_id)
        .order("created_at", desc=True)
        .limit(50)
        .execute()
    )
    return response.data or []


def fetch_clarity_specs(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("clarity_specs")
        .select(
            "version, status, problem_statement, business_goals, success_metrics, ai_readiness_score"
        )
        .eq("workspace_id", workspace_id)
        .order("version", desc=True)
        .limit(5)
        .execute()
    )
    return response.data or []


def fetch_epics(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("epic_drafts")
        .select("title, description, frontend_issues, backend_issues, tasks_generated, status")
        .eq("workspace_id", workspace_id)
        .eq("status", "draft")
        .order("created_at", desc=True)
        .limit(10)
        .execute()
    )
    return response.data or []


def fetch_decisions(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("workspace_decisions")
        .select("title, decision, decision_date")
        .eq("workspace_id", workspace_id)
        .order("decision_date", desc=True)
        .limit(5)
        .execute()
    )
    return response.data or []


def fetch_debt(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    """Open critical/high debt only."""
    response = (
        client.table("workspace_debt")
        .select("title, severity, debt_type, status")
        .eq("workspace_id", workspace_id)
        .in_("severity", ["critical", "high"])
        .eq("status", "open")
        .limit(10)
        .execute()
    )
    return response.data or []


def fetch_success_metrics(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("workspace_success_metrics")
        .select(
            "metric_name, metric_type, target_value, current_value, unit, status, "
            "health_status, updated_at"
        )
        .eq("workspace_id", workspace_id)
        .order("updated_at", desc=True)
        .limit(50)
        .execute()
    )
    return response.data or []


def fetch_user_insights(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("workspace_user_insights")
        .select("title, insight_type, summary, pain_points, insight_date")
        .eq("workspace_id", workspace_id)
        .order("insight_date", desc=True)
        .limit(50)
        .execute()
    )
    return response.data or []


def fetch_experiments(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("workspace_experiments")
        .select("title, hypothesis, status, hypothesis_validated, start_date")
        .eq("workspace_id", workspace_id)
        .order("created_at", desc=True)
        .limit(50)
        .execute()
    )
    return response.data or []


def fetch_feedback(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("workspace_feedback")
        .select("title, feedback_type, priority, status, category, upvote_count, feedback_date")
        .eq("workspace_id", workspace_id)
        .order("feedback_date", desc=True)
        .limit(100)
        .execute()
    )
    return response.data or []


def fetch_strategy(client: Client, workspace_id: str) -> dict[str, Any] | None:
    """Latest active strategy version."""
    response = (
        client.table("workspace_strategy")
        .select(
            "version, status, north_star_metric, north_star_definition, vision_statement, "
            "design_principles, strategic_bets, market_position"
        )
        .eq("workspace_id", workspace_id)
        .eq("status", "active")
        .order("version", desc=True)
        .limit(1)
        .maybe_single()
        .execute()
    )
    return _single(response)


def fetch_roadmap_items(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("workspace_roadmap_items")
        .select("title, item_type, roadmap_bucket, status, priority_score, target_quarter")
        .eq("workspace_id", workspace_id)
        .order("priority_score", desc=True)
        .limit(50)
        .execute()
    )
    return response.data or []


def fetch_releases(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("workspace_releases")
        .select("release_name, release_type, status, planned_date")
        .eq("workspace_id", workspace_id)
        .in_("status", ["planning", "in_progress", "testing"])
        .order("planned_date")
        .limit(5)
        .execute()
    )
    return response.data or []


def fetch_stakeholders(client: Client, workspace_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("workspace_stakeholders")
        .select("name, role, power_level, interest_level, alignment_status, key_concerns")
        .eq("workspace_id", workspace_id)
        .limit(50)
        .execute()
    )
    return response.data or []


def fetch_uploads(client: Client, project_id: str) -> list[dict[str, Any]]:
    response = (
        client.table("project_uploads")
        .select("file_name, file_type, created_at")
        .eq("project_id", project_id)
        .order("created_at", desc=True)
        .limit(10)
        .execute()
    )
    return response.data or []
