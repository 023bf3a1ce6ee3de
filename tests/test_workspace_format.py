"""Tests for workspace context rendering."""

from datetime import date

import pytest

from context_engine.context import format_workspace_context
from context_engine.context.models import (
    DebtItem,
    PhaseDateRange,
    PhaseSummary,
    ProjectSummary,
    RecentTask,
    TaskSummary,
    TeamMember,
    TeamSummary,
    WorkspaceSnapshot,
)
from context_engine.context.workspace_context import build_workspace_context
from tests.fakes.fake_supabase import FakeSupabase
from tests.fakes.workspace_rows import PROJECT_ID, WORKSPACE_ID, workspace_tables

SECTION_HEADERS = [
    "**PROJECT OVERVIEW:**",
    "**TEAM MEMBERS (2 total):**",
    "**SCOPE OF WORK:**",
    "**PHASES PROGRESS:**",
    "**TASKS SUMMARY:**",
    "**CLARITY SPECIFICATIONS:**",
    "**EPIC DRAFTS:**",
    "**RECENT DECISIONS:**",
    "**CRITICAL/HIGH DEBT:**",
    "**SUCCESS METRICS:**",
    "**PRODUCT DISCOVERY:**",
    "**PRODUCT STRATEGY (v2):**",
    "**ROADMAP:**",
    "**STAKEHOLDERS (2 total):**",
    "**RECENT UPLOADS:**",
]


def test_empty_snapshot_renders_only_project():
    text = format_workspace_context(WorkspaceSnapshot())

    assert text == "**PROJECT OVERVIEW:**\nName: Unknown Project\nStatus: idea\n"


def test_team_member_lines():
    snapshot = WorkspaceSnapshot(
        team=TeamSummary(
            members=[
                TeamMember(user_id="u-1", name="Ada", organization_role="Tech Lead"),
                TeamMember(user_id="u-2", email="grace@example.com"),
            ],
            total_members=2,
        )
    )

    text = format_workspace_context(snapshot)

    assert "**TEAM MEMBERS (2 total):**" in text
    assert "- Ada (Tech Lead) [ID: u-1]" in text
    assert "- grace@example.com (Team Member) [ID: u-2]" in text


def test_phase_lines_with_suggested_dates_and_fields():
    snapshot = WorkspaceSnapshot(
        phases=[
            PhaseSummary(
                phase_number=1,
                phase_name="Discovery",
                completed=True,
                suggested_dates=PhaseDateRange(
                    start_date=date(2024, 1, 1), end_date=date(2024, 1, 11)
                ),
            ),
            PhaseSummary(phase_number=2, phase_name="Build"),
        ]
    )

    text = format_workspace_context(snapshot)

    assert "- Phase 1: Discovery - COMPLETED ✓ (suggested 2024-01-01 to 2024-01-11)" in text
    assert "- Phase 2: Build - In Progress\n" in text


def test_tasks_section_shows_counts_and_recent():
    snapshot = WorkspaceSnapshot(
        tasks=TaskSummary(
            total=1,
            by_status={"todo": 1},
            by_priority={"high": 1},
            recent=[
                RecentTask(title="Wire payments", status="todo", priority="high", assignee="Ada")
            ],
        )
    )

    text = format_workspace_context(snapshot)

    assert "- Status: 1 todo, 0 in progress, 0 done" in text
    assert "**RECENT TASKS:**\n- [HIGH] Wire payments (todo) - Assigned to: Ada" in text


def test_empty_sections_are_omitted():
    snapshot = WorkspaceSnapshot(
        project=ProjectSummary(name="Checkout"),
        debt=[DebtItem(title="Legacy cart", severity="critical", debt_type="technical")],
    )

    text = format_workspace_context(snapshot)

    assert "**CRITICAL/HIGH DEBT:**\n- [CRITICAL] Legacy cart (technical)" in text
    for header in ("TEAM MEMBERS", "TASKS SUMMARY", "SUCCESS METRICS", "ROADMAP", "STRATEGY"):
        assert header not in text


@pytest.mark.asyncio
async def test_sections_render_in_fixed_order(engine_config):
    snapshot = await build_workspace_context(
        PROJECT_ID, WORKSPACE_ID, client=FakeSupabase(workspace_tables()), config=engine_config
    )

    text = format_workspace_context(snapshot)

    positions = [text.index(header) for header in SECTION_HEADERS]
    assert positions == sorted(positions)
    assert text.endswith("\n")
    assert "Budget: $48000" in text
    assert "  - Top Categories: checkout (2), performance (1)" in text


@pytest.mark.asyncio
async def test_same_snapshot_renders_identically(engine_config):
    snapshot = await build_workspace_context(
        PROJECT_ID, WORKSPACE_ID, client=FakeSupabase(workspace_tables()), config=engine_config
    )

    assert format_workspace_context(snapshot) == format_workspace_context(
        WorkspaceSnapshot.model_validate(snapshot.model_dump())
    )


@pytest.mark.asyncio
async def test_unavailable_project_omits_overview(engine_config):
    store = FakeSupabase(workspace_tables(), failing_tables={"projects"})
    snapshot = await build_workspace_context(
        PROJECT_ID, WORKSPACE_ID, client=store, config=engine_config
    )

    text = format_workspace_context(snapshot)

    assert snapshot.unavailable_domains == ["project"]
    assert "PROJECT OVERVIEW" not in text
    assert "Unknown Project" not in text
    assert text.startswith("**TEAM MEMBERS (2 total):**")
