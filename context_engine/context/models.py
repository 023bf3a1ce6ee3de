"""Workspace snapshot models.

Every section defaults to empty so a domain that failed or timed out
simply leaves its section blank.
"""

from datetime import date

from pydantic import BaseModel, Field


class ProjectSummary(BaseModel):
    name: str = "Unknown Project"
    description: str | None = None
    status: str = "idea"
    primary_tool: str | None = None


class TeamMember(BaseModel):
    user_id: str
    name: str | None = None
    email: str = "Unknown"
    organization_role: str | None = None


class TeamSummary(BaseModel):
    members: list[TeamMember] = Field(default_factory=list)
    total_members: int = 0


class Timeline(BaseModel):
    start_date: str
    end_date: str


class ScopeOfWorkSummary(BaseModel):
    exists: bool = False
    status: str | None = None
    objectives: list[str] = Field(default_factory=list)
    deliverables: list[str] = Field(default_factory=list)
    timeline: Timeline | None = None
    estimated_hours: float | None = None
    total_budget: float | None = None


class KeyField(BaseModel):
    """A filled-in phase field with a capped preview of its value."""

    name: str
    preview: str


class PhaseDateRange(BaseModel):
    start_date: date
    end_date: date


class PhaseSummary(BaseModel):
    phase_number: int
    phase_name: str
    completed: bool = False
    key_fields: list[KeyField] = Field(default_factory=list)
    suggested_dates: PhaseDateRange | None = None


class RecentTask(BaseModel):
    title: str
    status: str
    priority: str
    assignee: str | None = None
    assignee_id: str | None = None


class TaskSummary(BaseModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
    recent: list[RecentTask] = Field(default_factory=list)


class ClaritySpecSummary(BaseModel):
    version: int
    status: str
    problem_statement: str | None = None
    business_goals: list[str] = Field(default_factory=list)
    success_metrics: list[str] = Field(default_factory=list)
    ai_readiness_score: float | None = None


class EpicSummary(BaseModel):
    title: str
    description: str | None = None
    frontend_issues_count: int = 0
    backend_issues_count: int = 0
    tasks_generated: bool = False


class DecisionSummary(BaseModel):
    title: str
    decision: str
    decision_date: str | None = None


class DebtItem(BaseModel):
    title: str
    severity: str
    debt_type: str


class MetricItem(BaseModel):
    metric_name: str
    metric_type: str | None = None
    current_value: float | None = None
    target_value: float | None = None
    unit: str | None = None
    health_status: str | None = None


class MetricsSummary(BaseModel):
    total: int = 0
    on_track: int = 0
    at_risk: int = 0
    off_track: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    recent: list[MetricItem] = Field(default_factory=list)


class InsightItem(BaseModel):
    title: str
    insight_type: str | None = None
    summary: str | None = None


class FeedbackCategory(BaseModel):
    category: str
    count: int


class DiscoverySummary(BaseModel):
    total_insights: int = 0
    insights_by_type: dict[str, int] = Field(default_factory=dict)
    recent_insights: list[InsightItem] = Field(default_factory=list)
    total_experiments: int = 0
    experiments_by_status: dict[str, int] = Field(default_factory=dict)
    active_experiments: int = 0
    validated_hypotheses: int = 0
    invalidated_hypotheses: int = 0
    total_feedback: int = 0
    feedback_by_type: dict[str, int] = Field(default_factory=dict)
    feedback_by_status: dict[str, int] = Field(default_factory=dict)
    top_feedback_categories: list[FeedbackCategory] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.total_insights or self.total_experiments or self.total_feedback)


class StrategySummary(BaseModel):
    version: int | None = None
    north_star_metric: str | None = None
    north_star_definition: str | None = None
    vision_statement: str | None = None
    market_position: str | None = None
    design_principles: list[str] = Field(default_factory=list)
    strategic_bets: list[str] = Field(default_factory=list)


class RoadmapItemSummary(BaseModel):
    title: str
    roadmap_bucket: str | None = None
    status: str | None = None
    target_quarter: str | None = None


class ReleaseSummary(BaseModel):
    release_name: str
    status: str | None = None
    planned_date: str | None = None


class RoadmapSummary(BaseModel):
    total: int = 0
    by_bucket: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    top_items: list[RoadmapItemSummary] = Field(default_factory=list)
    upcoming_releases: list[ReleaseSummary] = Field(default_factory=list)


class StakeholderItem(BaseModel):
    name: str
    role: str | None = None
    power_level: str | None = None
    interest_level: str | None = None
    alignment_status: str | None = None
    key_concerns: list[str] = Field(default_factory=list)


class StakeholderSummary(BaseModel):
    total: int = 0
    by_alignment: dict[str, int] = Field(default_factory=dict)
    key_stakeholders: list[StakeholderItem] = Field(default_factory=list)


class UploadItem(BaseModel):
    file_name: str
    file_type: str | None = None
    uploaded_at: str | None = None


class WorkspaceSnapshot(BaseModel):
    """Live project state for the workspace assistant. Built per request, never cached."""

    project: ProjectSummary = Field(default_factory=ProjectSummary)
    team: TeamSummary = Field(default_factory=TeamSummary)
    sow: ScopeOfWorkSummary = Field(default_factory=ScopeOfWorkSummary)
    phases: list[PhaseSummary] = Field(default_factory=list)
    tasks: TaskSummary = Field(default_factory=TaskSummary)
    clarity_specs: list[ClaritySpecSummary] = Field(default_factory=list)
    epics: list[EpicSummary] = Field(default_factory=list)
    decisions: list[DecisionSummary] = Field(default_factory=list)
    debt: list[DebtItem] = Field(default_factory=list)
    metrics: MetricsSummary = Field(default_factory=MetricsSummary)
    discovery: DiscoverySummary = Field(default_factory=DiscoverySummary)
    strategy: StrategySummary | None = None
    roadmap: RoadmapSummary = Field(default_factory=RoadmapSummary)
    stakeholders: StakeholderSummary = Field(default_factory=StakeholderSummary)
    uploads: list[UploadItem] = Field(default_factory=list)

    # Domains whose query failed or timed out
    unavailable_domains: list[str] = Field(default_factory=list)
