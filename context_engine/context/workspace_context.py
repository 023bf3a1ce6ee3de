"""Workspace context builder.

Assembles a live snapshot of a project for the workspace assistant:
project, team, scope of work, phases, tasks and the workspace's product
records (specs, epics, decisions, debt, metrics, discovery, strategy,
roadmap, stakeholders, uploads).

Every domain is one independent query with its own timeout, run on a
thread pool owned by the build. A domain whose query fails or times out,
or whose rows its reducer cannot summarize, is logged, left empty in the
snapshot and listed in ``unavailable_domains``. The build itself never
raises for a single domain.
"""

import asyncio
import json
import math
from collections import Counter
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, TypeVar

from supabase import Client

from context_engine.context.models import (
    ClaritySpecSummary,
    DebtItem,
    DecisionSummary,
    DiscoverySummary,
    EpicSummary,
    FeedbackCategory,
    InsightItem,
    KeyField,
    MetricItem,
    MetricsSummary,
    PhaseDateRange,
    PhaseSummary,
    ProjectSummary,
    RecentTask,
    ReleaseSummary,
    RoadmapItemSummary,
    RoadmapSummary,
    ScopeOfWorkSummary,
    StakeholderItem,
    StakeholderSummary,
    StrategySummary,
    TaskSummary,
    TeamMember,
    TeamSummary,
    Timeline,
    UploadItem,
    WorkspaceSnapshot,
)
from context_engine.core.config import EngineConfig, resolve_config
from context_engine.core.errors import TimeoutFailure
from context_engine.core.logging import get_logger
from context_engine.db import workspace as workspace_db
from context_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)

TASK_STATUSES = ("todo", "in_progress", "done", "archived")
TASK_PRIORITIES = ("low", "medium", "high", "critical")
MAX_KEY_FIELDS = 3
RECENT_TASKS = 10
RECENT_ITEMS = 5
TOP_FEEDBACK_CATEGORIES = 5


# =============================================================================
# Domain queries
# =============================================================================


@dataclass
class DomainResult:
    domain: str
    data: Any = None
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


async def run_domain_query(
    domain: str,
    fn: Callable[..., Any],
    *args: Any,
    timeout: float,
    executor: Executor | None = None,
) -> DomainResult:
    """
    Run one synchronous domain query on ``executor``, bounded by ``timeout``.

    ``executor=None`` means the loop's default executor. A timeout or query
    error is logged and returned as a failed result. Cancellation of the
    caller propagates.
    """
    loop = asyncio.get_running_loop()
    try:
        data = await asyncio.wait_for(loop.run_in_executor(executor, fn, *args), timeout=timeout)
    except TimeoutError:
        failure = TimeoutFailure(domain, timeout)
        logger.warning(f"Domain query timed out: {failure}", extra={"domain": domain})
        return DomainResult(domain=domain, error=failure)
    except Exception as e:
        logger.warning(f"Domain query failed: {e}", extra={"domain": domain})
        return DomainResult(domain=domain, error=e)
    return DomainResult(domain=domain, data=data)


# =============================================================================
# Reducers
# =============================================================================


def _first(value: Any) -> Any:
    # Embedded joins come back as either an object or a one-element list
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _member_from(row: dict[str, Any], role: Any) -> TeamMember:
    user = _first(row.get("user")) or {}
    role = _first(role) or {}
    return TeamMember(
        user_id=str(row.get("user_id") or ""),
        name=user.get("name") or None,
        email=user.get("email") or "Unknown",
        organization_role=role.get("name") or None,
    )


def summarize_project(row: dict[str, Any] | None) -> ProjectSummary:
    row = row or {}
    return ProjectSummary(
        name=row.get("name") or "Unknown Project",
        description=row.get("description") or None,
        status=row.get("status") or "idea",
        primary_tool=row.get("primary_tool") or None,
    )


def sow_team_members(sow_row: dict[str, Any] | None) -> list[TeamMember]:
    """Members listed on the active project SOW, with their custom organization roles."""
    if not sow_row or not isinstance(sow_row.get("project_members"), list):
        return []

    members = []
    for sow_member in sow_row["project_members"]:
        project_member = _first(sow_member.get("project_member"))
        if not project_member:
            continue
        members.append(_member_from(project_member, sow_member.get("organization_role")))
    return members


def direct_team_members(rows: list[dict[str, Any]] | None) -> list[TeamMember]:
    return [_member_from(row, row.get("organization_role")) for row in rows or []]


def summarize_team(members: list[TeamMember]) -> TeamSummary:
    return TeamSummary(members=members, total_members=len(members))


def _parse_date(value: Any) -> date | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _timeline_from(raw: Any) -> Timeline | None:
    if not isinstance(raw, dict):
        return None
    start, end = raw.get("start_date"), raw.get("end_date")
    if not start or not end:
        return None
    return Timeline(start_date=str(start), end_date=str(end))


def summarize_sow(row: dict[str, Any] | None) -> ScopeOfWorkSummary:
    if not row:
        return ScopeOfWorkSummary()

    budget = row.get("budget") if isinstance(row.get("budget"), dict) else {}
    return ScopeOfWorkSummary(
        exists=True,
        status=row.get("status"),
        objectives=[str(o) for o in row.get("objectives") or []],
        deliverables=[str(d) for d in row.get("deliverables") or []],
        timeline=_timeline_from(row.get("timeline")),
        estimated_hours=budget.get("estimated_hours"),
        total_budget=budget.get("total_budget"),
    )


def preview_value(value: Any, max_chars: int) -> str:
    """Render a field value as text, capped at ``max_chars`` with an ellipsis."""
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    if len(text) <= max_chars:
        return text
    return text[: max(0, max_chars - 3)] + "..."


def extract_key_fields(data: Any, preview_chars: int) -> list[KeyField]:
    """First filled-in phase fields, skipping private ``_``-prefixed keys."""
    if not isinstance(data, dict):
        return []
    fields = [
        KeyField(name=key, preview=preview_value(value, preview_chars))
        for key, value in data.items()
        if not key.startswith("_") and value
    ]
    return fields[:MAX_KEY_FIELDS]


def suggest_phase_dates(start: date, end: date, phase_count: int) -> list[PhaseDateRange]:
    """
    Split a timeline evenly across ``phase_count`` phases.

    Both ends of a window are inclusive and windows never share a day:
    each phase starts the day after the previous one ends. The window
    length is rounded up, so the last window is clamped to the overall
    end date. When there are more phases than days the trailing phases
    get no window at all.
    """
    if phase_count <= 0 or end < start:
        return []

    days_per_phase = math.ceil(((end - start).days + 1) / phase_count)
    ranges = []
    for index in range(phase_count):
        phase_start = start + timedelta(days=index * days_per_phase)
        if phase_start > end:
            break
        phase_end = min(phase_start + timedelta(days=days_per_phase - 1), end)
        ranges.append(PhaseDateRange(start_date=phase_start, end_date=phase_end))
    return ranges


def summarize_phases(
    rows: list[dict[str, Any]] | None,
    timeline: Timeline | None,
    preview_chars: int,
) -> list[PhaseSummary]:
    rows = rows or []
    suggested: list[PhaseDateRange] = []
    if timeline:
        start, end = _parse_date(timeline.start_date), _parse_date(timeline.end_date)
        if start and end:
            suggested = suggest_phase_dates(start, end, len(rows))

    phases = []
    for index, row in enumerate(rows):
        phases.append(
            PhaseSummary(
                phase_number=row.get("phase_number") or index + 1,
                phase_name=row.get("phase_name") or f"Phase {index + 1}",
                completed=bool(row.get("completed")),
                key_fields=extract_key_fields(row.get("data"), preview_chars),
                suggested_dates=suggested[index] if index < len(suggested) else None,
            )
        )
    return phases


def summarize_tasks(
    rows: list[dict[str, Any]] | None, members: list[TeamMember]
) -> TaskSummary:
    rows = rows or []
    names = {m.user_id: m.name for m in members if m.user_id and m.name}

    status_counts = Counter(row.get("status") for row in rows)
    priority_counts = Counter(row.get("priority") for row in rows)

    recent = []
    for row in rows[:RECENT_TASKS]:
        assignee_id = row.get("assignee_id")
        recent.append(
            RecentTask(
                title=row.get("title") or "Untitled",
                status=row.get("status") or "todo",
                priority=row.get("priority") or "medium",
                assignee=names.get(assignee_id, "Unknown") if assignee_id else None,
                assignee_id=assignee_id,
            )
        )

    return TaskSummary(
        total=len(rows),
        by_status={status: status_counts.get(status, 0) for status in TASK_STATUSES},
        by_priority={priority: priority_counts.get(priority, 0) for priority in TASK_PRIORITIES},
        recent=recent,
    )


def summarize_clarity_specs(rows: list[dict[str, Any]] | None) -> list[ClaritySpecSummary]:
    return [
        ClaritySpecSummary(
            version=row.get("version") or 1,
            status=row.get("status") or "draft",
            problem_statement=row.get("problem_statement"),
            business_goals=[str(g) for g in row.get("business_goals") or []],
            success_metrics=[str(m) for m in row.get("success_metrics") or []],
            ai_readiness_score=row.get("ai_readiness_score"),
        )
        for row in rows or []
    ]


def summarize_epics(rows: list[dict[str, Any]] | None) -> list[EpicSummary]:
    def _count(value: Any) -> int:
        return len(value) if isinstance(value, list) else 0

    return [
        EpicSummary(
            title=row.get("title") or "Untitled",
            description=row.get("description"),
            frontend_issues_count=_count(row.get("frontend_issues")),
            backend_issues_count=_count(row.get("backend_issues")),
            tasks_generated=bool(row.get("tasks_generated")),
        )
        for row in rows or []
    ]


def summarize_decisions(rows: list[dict[str, Any]] | None) -> list[DecisionSummary]:
    return [
        DecisionSummary(
            title=row.get("title") or "Untitled",
            decision=row.get("decision") or "",
            decision_date=row.get("decision_date"),
        )
        for row in rows or []
    ]


def summarize_debt(rows: list[dict[str, Any]] | None) -> list[DebtItem]:
    return [
        DebtItem(
            title=row.get("title") or "Untitled",
            severity=row.get("severity") or "high",
            debt_type=row.get("debt_type") or "technical",
        )
        for row in rows or []
    ]


def summarize_metrics(rows: list[dict[str, Any]] | None) -> MetricsSummary:
    rows = rows or []
    health = Counter(row.get("health_status") for row in rows)
    return MetricsSummary(
        total=len(rows),
        on_track=health.get("on_track", 0),
        at_risk=health.get("at_risk", 0),
        off_track=health.get("off_track", 0),
        by_type=dict(Counter(row["metric_type"] for row in rows if row.get("metric_type"))),
        recent=[
            MetricItem(
                metric_name=row.get("metric_name") or "Unnamed metric",
                metric_type=row.get("metric_type"),
                current_value=row.get("current_value"),
                target_value=row.get("target_value"),
                unit=row.get("unit"),
                health_status=row.get("health_status"),
            )
            for row in rows[:RECENT_ITEMS]
        ],
    )


def summarize_discovery(
    insights: list[dict[str, Any]] | None,
    experiments: list[dict[str, Any]] | None,
    feedback: list[dict[str, Any]] | None,
) -> DiscoverySummary:
    insights, experiments, feedback = insights or [], experiments or [], feedback or []

    categories: Counter[str] = Counter()
    for row in feedback:
        for category in row.get("category") or []:
            categories[str(category)] += 1

    return DiscoverySummary(
        total_insights=len(insights),
        insights_by_type=dict(Counter(r["insight_type"] for r in insights if r.get("insight_type"))),
        recent_insights=[
            InsightItem(
                title=row.get("title") or "Untitled",
                insight_type=row.get("insight_type"),
                summary=row.get("summary"),
            )
            for row in insights[:RECENT_ITEMS]
        ],
        total_experiments=len(experiments),
        experiments_by_status=dict(Counter(r["status"] for r in experiments if r.get("status"))),
        active_experiments=sum(1 for r in experiments if r.get("status") == "running"),
        validated_hypotheses=sum(1 for r in experiments if r.get("hypothesis_validated") is True),
        invalidated_hypotheses=sum(
            1 for r in experiments if r.get("hypothesis_validated") is False
        ),
        total_feedback=len(feedback),
        feedback_by_type=dict(Counter(r["feedback_type"] for r in feedback if r.get("feedback_type"))),
        feedback_by_status=dict(Counter(r["status"] for r in feedback if r.get("status"))),
        top_feedback_categories=[
            FeedbackCategory(category=category, count=count)
            for category, count in categories.most_common(TOP_FEEDBACK_CATEGORIES)
        ],
    )


def _bet_label(bet: Any) -> str:
    if isinstance(bet, dict):
        label = str(bet.get("bet") or bet.get("title") or "")
        horizon = bet.get("horizon")
        return f"{label} ({horizon})" if label and horizon else label
    return str(bet)


def summarize_strategy(row: dict[str, Any] | None) -> StrategySummary | None:
    if not row:
        return None
    return StrategySummary(
        version=row.get("version"),
        north_star_metric=row.get("north_star_metric"),
        north_star_definition=row.get("north_star_definition"),
        vision_statement=row.get("vision_statement"),
        market_position=row.get("market_position"),
        design_principles=[str(p) for p in row.get("design_principles") or []],
        strategic_bets=[
            label for label in (_bet_label(b) for b in row.get("strategic_bets") or []) if label
        ],
    )


def summarize_roadmap(
    items: list[dict[str, Any]] | None, releases: list[dict[str, Any]] | None
) -> RoadmapSummary:
    items = items or []
    return RoadmapSummary(
        total=len(items),
        by_bucket=dict(Counter(r["roadmap_bucket"] for r in items if r.get("roadmap_bucket"))),
        by_status=dict(Counter(r["status"] for r in items if r.get("status"))),
        top_items=[
            RoadmapItemSummary(
                title=row.get("title") or "Untitled",
                roadmap_bucket=row.get("roadmap_bucket"),
                status=row.get("status"),
                target_quarter=row.get("target_quarter"),
            )
            for row in items[:RECENT_ITEMS]
        ],
        upcoming_releases=[
            ReleaseSummary(
                release_name=row.get("release_name") or "Unnamed release",
                status=row.get("status"),
                planned_date=row.get("planned_date"),
            )
            for row in releases or []
        ],
    )


def summarize_stakeholders(rows: list[dict[str, Any]] | None) -> StakeholderSummary:
    rows = rows or []
    # High-power stakeholders first, original order otherwise
    key = sorted(rows, key=lambda r: r.get("power_level") != "high")
    return StakeholderSummary(
        total=len(rows),
        by_alignment=dict(Counter(r["alignment_status"] for r in rows if r.get("alignment_status"))),
        key_stakeholders=[
            StakeholderItem(
                name=row.get("name") or "Unknown",
                role=row.get("role"),
                power_level=row.get("power_level"),
                interest_level=row.get("interest_level"),
                alignment_status=row.get("alignment_status"),
                key_concerns=[str(c) for c in row.get("key_concerns") or []],
            )
            for row in key[:RECENT_ITEMS]
        ],
    )


def summarize_uploads(rows: list[dict[str, Any]] | None) -> list[UploadItem]:
    return [
        UploadItem(
            file_name=row.get("file_name") or "unnamed",
            file_type=row.get("file_type"),
            uploaded_at=row.get("created_at"),
        )
        for row in rows or []
    ]


# =============================================================================
# Builder
# =============================================================================


_PROJECT_DOMAINS: dict[str, Callable[[Client, str], Any]] = {
    "project": workspace_db.fetch_project,
    "team": workspace_db.fetch_sow_members,
    "sow": workspace_db.fetch_scope_of_work,
    "phases": workspace_db.fetch_phases,
    "tasks": workspace_db.fetch_tasks,
    "uploads": workspace_db.fetch_uploads,
}

_WORKSPACE_DOMAINS: dict[str, Callable[[Client, str], Any]] = {
    "clarity_specs": workspace_db.fetch_clarity_specs,
    "epics": workspace_db.fetch_epics,
    "decisions": workspace_db.fetch_decisions,
    "debt": workspace_db.fetch_debt,
    "metrics": workspace_db.fetch_success_metrics,
    "insights": workspace_db.fetch_user_insights,
    "experiments": workspace_db.fetch_experiments,
    "feedback": workspace_db.fetch_feedback,
    "strategy": workspace_db.fetch_strategy,
    "roadmap": workspace_db.fetch_roadmap_items,
    "releases": workspace_db.fetch_releases,
    "stakeholders": workspace_db.fetch_stakeholders,
}


T = TypeVar("T")


def _reduce(
    domain: str,
    reducer: Callable[[], T],
    default: T,
    unavailable: set[str],
) -> T:
    """Run one domain's reducer; a malformed row empties that domain only."""
    try:
        return reducer()
    except Exception as e:
        logger.warning(f"Domain reducer failed: {e}", extra={"domain": domain})
        unavailable.add(domain)
        return default


async def build_workspace_context(
    project_id: str,
    workspace_id: str,
    *,
    client: Client | None = None,
    config: EngineConfig | None = None,
) -> WorkspaceSnapshot:
    """
    Build a fresh workspace snapshot for a project.

    Each build gets its own thread pool with a worker per domain, so one
    slow query never holds another domain's query in a queue while its
    timeout runs.

    Args:
        project_id: Project UUID
        workspace_id: Workspace UUID the product records belong to
        client: Supabase client (defaults to the shared one)
        config: Engine configuration (defaults to settings)

    Returns:
        WorkspaceSnapshot with failed domains left empty
    """
    config = resolve_config(config)
    client = client or get_supabase()
    timeout = config.workspace_query_timeout_seconds

    # One extra worker for the team fallback query
    executor = ThreadPoolExecutor(
        max_workers=len(_PROJECT_DOMAINS) + len(_WORKSPACE_DOMAINS) + 1,
        thread_name_prefix="workspace-context",
    )
    try:
        # ================================================================
        # Phase 1: independent domain queries
        # ================================================================
        queries = [
            run_domain_query(domain, fn, client, project_id, timeout=timeout, executor=executor)
            for domain, fn in _PROJECT_DOMAINS.items()
        ] + [
            run_domain_query(domain, fn, client, workspace_id, timeout=timeout, executor=executor)
            for domain, fn in _WORKSPACE_DOMAINS.items()
        ]
        results = {result.domain: result for result in await asyncio.gather(*queries)}

        # ================================================================
        # Phase 2: team fallback (depends on the SOW member lookup)
        # ================================================================
        unavailable = {domain for domain, result in results.items() if result.failed}
        members = _reduce("team", lambda: sow_team_members(results["team"].data), [], unavailable)
        if not members:
            direct = await run_domain_query(
                "team",
                workspace_db.fetch_direct_members,
                client,
                project_id,
                timeout=timeout,
                executor=executor,
            )
            unavailable.discard("team")
            if direct.failed:
                unavailable.add("team")
            members = _reduce("team", lambda: direct_team_members(direct.data), [], unavailable)
    finally:
        # Timed-out queries may still be running; don't wait for them
        executor.shutdown(wait=False)

    # ================================================================
    # Processing: all in-memory, no more DB calls
    # ================================================================
    data = {domain: result.data for domain, result in results.items()}
    preview_chars = config.workspace_value_preview_chars

    sow = _reduce("sow", lambda: summarize_sow(data["sow"]), ScopeOfWorkSummary(), unavailable)

    snapshot = WorkspaceSnapshot(
        project=_reduce(
            "project", lambda: summarize_project(data["project"]), ProjectSummary(), unavailable
        ),
        team=summarize_team(members),
        sow=sow,
        phases=_reduce(
            "phases",
            lambda: summarize_phases(data["phases"], sow.timeline, preview_chars),
            [],
            unavailable,
        ),
        tasks=_reduce(
            "tasks", lambda: summarize_tasks(data["tasks"], members), TaskSummary(), unavailable
        ),
        clarity_specs=_reduce(
            "clarity_specs", lambda: summarize_clarity_specs(data["clarity_specs"]), [], unavailable
        ),
        epics=_reduce("epics", lambda: summarize_epics(data["epics"]), [], unavailable),
        decisions=_reduce(
            "decisions", lambda: summarize_decisions(data["decisions"]), [], unavailable
        ),
        debt=_reduce("debt", lambda: summarize_debt(data["debt"]), [], unavailable),
        metrics=_reduce(
            "metrics", lambda: summarize_metrics(data["metrics"]), MetricsSummary(), unavailable
        ),
        discovery=_reduce(
            "discovery",
            lambda: summarize_discovery(data["insights"], data["experiments"], data["feedback"]),
            DiscoverySummary(),
            unavailable,
        ),
        strategy=_reduce("strategy", lambda: summarize_strategy(data["strategy"]), None, unavailable),
        roadmap=_reduce(
            "roadmap",
            lambda: summarize_roadmap(data["roadmap"], data["releases"]),
            RoadmapSummary(),
            unavailable,
        ),
        stakeholders=_reduce(
            "stakeholders",
            lambda: summarize_stakeholders(data["stakeholders"]),
            StakeholderSummary(),
            unavailable,
        ),
        uploads=_reduce("uploads", lambda: summarize_uploads(data["uploads"]), [], unavailable),
        unavailable_domains=sorted(unavailable),
    )

    logger.info(
        f"Built workspace context: {len(snapshot.phases)} phases, "
        f"{snapshot.tasks.total} tasks, {snapshot.team.total_members} members, "
        f"{len(snapshot.unavailable_domains)} unavailable domains",
        extra={"project_id": project_id},
    )
    return snapshot
