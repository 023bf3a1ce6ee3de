"""Render a WorkspaceSnapshot as prompt text for the workspace assistant.

Sections always appear in the same order and a section whose domain is
empty is left out entirely, so the same snapshot always renders to the
same text.
"""

from context_engine.context.models import WorkspaceSnapshot

MAX_LISTED = 5
PROBLEM_PREVIEW_CHARS = 200
DECISION_PREVIEW_CHARS = 150


def _clip(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _counts(counts: dict[str, int]) -> str:
    return ", ".join(f"{count} {name.replace('_', ' ')}" for name, count in counts.items())


def _project_section(snapshot: WorkspaceSnapshot) -> list[str]:
    # Defaults are placeholders when the project row could not be loaded
    if "project" in snapshot.unavailable_domains:
        return []
    project = snapshot.project
    lines = ["**PROJECT OVERVIEW:**", f"Name: {project.name}", f"Status: {project.status}"]
    if project.description:
        lines.append(f"Description: {project.description}")
    if project.primary_tool:
        lines.append(f"Primary Tool: {project.primary_tool}")
    return lines


def _team_section(snapshot: WorkspaceSnapshot) -> list[str]:
    team = snapshot.team
    if not team.members:
        return []
    lines = [f"**TEAM MEMBERS ({team.total_members} total):**"]
    for member in team.members:
        role = member.organization_role or "Team Member"
        lines.append(f"- {member.name or member.email} ({role}) [ID: {member.user_id}]")
    return lines


def _sow_section(snapshot: WorkspaceSnapshot) -> list[str]:
    sow = snapshot.sow
    if not sow.exists:
        return []
    lines = ["**SCOPE OF WORK:**", f"Status: {sow.status}"]
    if sow.objectives:
        lines.append("Objectives:")
        lines.extend(f"  - {o}" for o in sow.objectives[:MAX_LISTED])
    if sow.deliverables:
        lines.append("Deliverables:")
        lines.extend(f"  - {d}" for d in sow.deliverables[:MAX_LISTED])
    if sow.timeline:
        lines.append(f"Timeline: {sow.timeline.start_date} to {sow.timeline.end_date}")
    if sow.estimated_hours:
        lines.append(f"Estimated Hours: {sow.estimated_hours:g}h")
    if sow.total_budget:
        lines.append(f"Budget: ${sow.total_budget:g}")
    return lines


def _phases_section(snapshot: WorkspaceSnapshot) -> list[str]:
    if not snapshot.phases:
        return []
    lines = ["**PHASES PROGRESS:**"]
    for phase in snapshot.phases:
        state = "COMPLETED ✓" if phase.completed else "In Progress"
        line = f"- Phase {phase.phase_number}: {phase.phase_name} - {state}"
        if phase.suggested_dates:
            dates = phase.suggested_dates
            line += f" (suggested {dates.start_date.isoformat()} to {dates.end_date.isoformat()})"
        lines.append(line)
        for field in phase.key_fields:
            lines.append(f"  - {field.name}: {field.preview}")
    return lines


def _tasks_section(snapshot: WorkspaceSnapshot) -> list[str]:
    tasks = snapshot.tasks
    if not tasks.total:
        return []
    status, priority = tasks.by_status, tasks.by_priority
    lines = [
        "**TASKS SUMMARY:**",
        f"- Total Tasks: {tasks.total}",
        f"- Status: {status.get('todo', 0)} todo, {status.get('in_progress', 0)} in progress, "
        f"{status.get('done', 0)} done",
        f"- Priority: {priority.get('critical', 0)} critical, {priority.get('high', 0)} high, "
        f"{priority.get('medium', 0)} medium, {priority.get('low', 0)} low",
    ]
    if tasks.recent:
        lines.append("")
        lines.append("**RECENT TASKS:**")
        for task in tasks.recent[:MAX_LISTED]:
            assignee = f" - Assigned to: {task.assignee}" if task.assignee else " - Unassigned"
            lines.append(f"- [{task.priority.upper()}] {task.title} ({task.status}){assignee}")
    return lines


def _clarity_section(snapshot: WorkspaceSnapshot) -> list[str]:
    if not snapshot.clarity_specs:
        return []
    lines = ["**CLARITY SPECIFICATIONS:**"]
    for spec in snapshot.clarity_specs:
        lines.append(f"Version {spec.version} ({spec.status}):")
        if spec.problem_statement:
            lines.append(f"Problem: {_clip(spec.problem_statement, PROBLEM_PREVIEW_CHARS)}")
        if spec.business_goals:
            lines.append(f"Goals: {', '.join(spec.business_goals[:3])}")
        if spec.ai_readiness_score:
            lines.append(f"Readiness Score: {spec.ai_readiness_score:g}/10")
    return lines


def _epics_section(snapshot: WorkspaceSnapshot) -> list[str]:
    if not snapshot.epics:
        return []
    lines = ["**EPIC DRAFTS:**"]
    for epic in snapshot.epics:
        line = (
            f'- "{epic.title}": {epic.frontend_issues_count} FE issues, '
            f"{epic.backend_issues_count} BE issues"
        )
        if epic.tasks_generated:
            line += " (Tasks generated ✓)"
        lines.append(line)
    return lines


def _decisions_section(snapshot: WorkspaceSnapshot) -> list[str]:
    if not snapshot.decisions:
        return []
    lines = ["**RECENT DECISIONS:**"]
    lines.extend(
        f"- {d.title}: {_clip(d.decision, DECISION_PREVIEW_CHARS)}" for d in snapshot.decisions
    )
    return lines


def _debt_section(snapshot: WorkspaceSnapshot) -> list[str]:
    if not snapshot.debt:
        return []
    lines = ["**CRITICAL/HIGH DEBT:**"]
    lines.extend(f"- [{d.severity.upper()}] {d.title} ({d.debt_type})" for d in snapshot.debt)
    return lines


def _metrics_section(snapshot: WorkspaceSnapshot) -> list[str]:
    metrics = snapshot.metrics
    if not metrics.total:
        return []
    lines = [
        "**SUCCESS METRICS:**",
        f"- Total Metrics: {metrics.total}",
        f"- Health: {metrics.on_track} on track, {metrics.at_risk} at risk, "
        f"{metrics.off_track} off track",
    ]
    if metrics.by_type:
        lines.append(f"- By Type: {_counts(metrics.by_type)}")
    for metric in metrics.recent:
        value = "" if metric.current_value is None else f"{metric.current_value:g}"
        target = "" if metric.target_value is None else f" / target {metric.target_value:g}"
        unit = f" {metric.unit}" if metric.unit else ""
        health = f" [{metric.health_status}]" if metric.health_status else ""
        lines.append(f"- {metric.metric_name}: {value}{target}{unit}{health}".rstrip())
    return lines


def _discovery_section(snapshot: WorkspaceSnapshot) -> list[str]:
    discovery = snapshot.discovery
    if discovery.is_empty:
        return []
    lines = ["**PRODUCT DISCOVERY:**"]
    if discovery.total_insights:
        lines.append(f"- User Insights: {discovery.total_insights}")
        if discovery.insights_by_type:
            lines.append(f"  - By Type: {_counts(discovery.insights_by_type)}")
        for insight in discovery.recent_insights:
            kind = f" ({insight.insight_type})" if insight.insight_type else ""
            lines.append(f"  - {insight.title}{kind}")
    if discovery.total_experiments:
        lines.append(
            f"- Experiments: {discovery.total_experiments} "
            f"({discovery.active_experiments} running, "
            f"{discovery.validated_hypotheses} validated, "
            f"{discovery.invalidated_hypotheses} invalidated)"
        )
    if discovery.total_feedback:
        lines.append(f"- Feedback: {discovery.total_feedback}")
        if discovery.feedback_by_type:
            lines.append(f"  - By Type: {_counts(discovery.feedback_by_type)}")
        if discovery.feedback_by_status:
            lines.append(f"  - By Status: {_counts(discovery.feedback_by_status)}")
        if discovery.top_feedback_categories:
            top = ", ".join(f"{c.category} ({c.count})" for c in discovery.top_feedback_categories)
            lines.append(f"  - Top Categories: {top}")
    return lines


def _strategy_section(snapshot: WorkspaceSnapshot) -> list[str]:
    strategy = snapshot.strategy
    if strategy is None:
        return []
    header = "**PRODUCT STRATEGY:**"
    if strategy.version is not None:
        header = f"**PRODUCT STRATEGY (v{strategy.version}):**"
    lines = [header]
    if strategy.north_star_metric:
        lines.append(f"North Star: {strategy.north_star_metric}")
    if strategy.north_star_definition:
        lines.append(f"Definition: {strategy.north_star_definition}")
    if strategy.vision_statement:
        lines.append(f"Vision: {strategy.vision_statement}")
    if strategy.market_position:
        lines.append(f"Market Position: {strategy.market_position}")
    if strategy.design_principles:
        lines.append("Design Principles:")
        lines.extend(f"  - {p}" for p in strategy.design_principles[:MAX_LISTED])
    if strategy.strategic_bets:
        lines.append("Strategic Bets:")
        lines.extend(f"  - {b}" for b in strategy.strategic_bets[:MAX_LISTED])
    return lines


def _roadmap_section(snapshot: WorkspaceSnapshot) -> list[str]:
    roadmap = snapshot.roadmap
    if not roadmap.total and not roadmap.upcoming_releases:
        return []
    lines = ["**ROADMAP:**"]
    if roadmap.total:
        lines.append(f"- Total Items: {roadmap.total}")
        if roadmap.by_bucket:
            lines.append(f"- By Bucket: {_counts(roadmap.by_bucket)}")
        for item in roadmap.top_items:
            bucket = item.roadmap_bucket.upper() if item.roadmap_bucket else "UNSCHEDULED"
            quarter = f" - {item.target_quarter}" if item.target_quarter else ""
            lines.append(f"- [{bucket}] {item.title} ({item.status or 'planned'}){quarter}")
    if roadmap.upcoming_releases:
        lines.append("Upcoming Releases:")
        for release in roadmap.upcoming_releases:
            planned = f" - {release.planned_date}" if release.planned_date else ""
            lines.append(f"  - {release.release_name} ({release.status}){planned}")
    return lines


def _stakeholders_section(snapshot: WorkspaceSnapshot) -> list[str]:
    stakeholders = snapshot.stakeholders
    if not stakeholders.total:
        return []
    lines = [f"**STAKEHOLDERS ({stakeholders.total} total):**"]
    if stakeholders.by_alignment:
        lines.append(f"- Alignment: {_counts(stakeholders.by_alignment)}")
    for person in stakeholders.key_stakeholders:
        role = f" ({person.role})" if person.role else ""
        power = f" - {person.power_level} power" if person.power_level else ""
        alignment = f", {person.alignment_status}" if person.alignment_status else ""
        lines.append(f"- {person.name}{role}{power}{alignment}")
    return lines


def _uploads_section(snapshot: WorkspaceSnapshot) -> list[str]:
    if not snapshot.uploads:
        return []
    lines = ["**RECENT UPLOADS:**"]
    for upload in snapshot.uploads:
        kind = f" ({upload.file_type})" if upload.file_type else ""
        lines.append(f"- {upload.file_name}{kind}")
    return lines


_SECTIONS = (
    _project_section,
    _team_section,
    _sow_section,
    _phases_section,
    _tasks_section,
    _clarity_section,
    _epics_section,
    _decisions_section,
    _debt_section,
    _metrics_section,
    _discovery_section,
    _strategy_section,
    _roadmap_section,
    _stakeholders_section,
    _uploads_section,
)


def format_workspace_context(snapshot: WorkspaceSnapshot) -> str:
    """Serialize a snapshot into a single prompt document."""
    blocks = []
    for section in _SECTIONS:
        lines = section(snapshot)
        if lines:
            blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"
