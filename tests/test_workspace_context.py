"""Tests for the workspace context builder."""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

import pytest

from context_engine.context import build_workspace_context, suggest_phase_dates
from context_engine.context.models import TeamMember
from context_engine.context.workspace_context import (
    extract_key_fields,
    preview_value,
    run_domain_query,
    summarize_discovery,
    summarize_stakeholders,
    summarize_tasks,
)
from context_engine.core.errors import TimeoutFailure
from tests.fakes.fake_supabase import FakeSupabase
from tests.fakes.workspace_rows import PROJECT_ID, WORKSPACE_ID, workspace_tables


@pytest.fixture
def workspace_store() -> FakeSupabase:
    return FakeSupabase(workspace_tables())


def _windows(ranges) -> list[tuple[str, str]]:
    return [(r.start_date.isoformat(), r.end_date.isoformat()) for r in ranges]


class TestSuggestPhaseDates:
    def test_january_split_into_three_windows(self):
        ranges = suggest_phase_dates(date(2024, 1, 1), date(2024, 1, 31), 3)

        assert _windows(ranges) == [
            ("2024-01-01", "2024-01-11"),
            ("2024-01-12", "2024-01-22"),
            ("2024-01-23", "2024-01-31"),
        ]

    def test_windows_never_share_a_day(self):
        ranges = suggest_phase_dates(date(2024, 1, 1), date(2024, 1, 5), 3)

        assert _windows(ranges) == [
            ("2024-01-01", "2024-01-02"),
            ("2024-01-03", "2024-01-04"),
            ("2024-01-05", "2024-01-05"),
        ]
        for previous, current in zip(ranges, ranges[1:]):
            assert current.start_date == previous.end_date + timedelta(days=1)

    def test_more_phases_than_days(self):
        ranges = suggest_phase_dates(date(2024, 1, 1), date(2024, 1, 3), 5)

        assert _windows(ranges) == [
            ("2024-01-01", "2024-01-01"),
            ("2024-01-02", "2024-01-02"),
            ("2024-01-03", "2024-01-03"),
        ]

    def test_last_window_always_ends_on_end_date(self):
        ranges = suggest_phase_dates(date(2024, 1, 1), date(2024, 3, 1), 7)
        assert ranges[-1].end_date == date(2024, 3, 1)
        assert all(r.start_date <= r.end_date <= date(2024, 3, 1) for r in ranges)

    def test_no_phases_or_inverted_timeline(self):
        assert suggest_phase_dates(date(2024, 1, 1), date(2024, 1, 31), 0) == []
        assert suggest_phase_dates(date(2024, 2, 1), date(2024, 1, 1), 3) == []


class TestReducers:
    def test_preview_value_caps_length(self):
        assert preview_value("short", 10) == "short"
        assert preview_value("x" * 20, 10) == "xxxxxxx..."
        assert preview_value({"a": 1}, 100) == '{"a": 1}'

    def test_key_fields_skip_private_and_empty_values(self):
        fields = extract_key_fields(
            {"_draft": "x", "goals": "Ship", "empty": "", "owner": "ada", "notes": "n", "more": "m"},
            preview_chars=50,
        )
        assert [f.name for f in fields] == ["goals", "owner", "notes"]

    def test_unmapped_assignee_shown_as_unknown(self):
        members = [TeamMember(user_id="u-1", name="Ada")]
        rows = [
            {"title": "A", "status": "todo", "priority": "high", "assignee_id": "u-1"},
            {"title": "B", "status": "todo", "priority": "low", "assignee_id": "u-gone"},
            {"title": "C", "status": "done", "priority": "low", "assignee_id": None},
        ]

        summary = summarize_tasks(rows, members)

        assert [t.assignee for t in summary.recent] == ["Ada", "Unknown", None]
        assert summary.by_status == {"todo": 2, "in_progress": 0, "done": 1, "archived": 0}
        assert summary.by_priority["critical"] == 0

    def test_recent_tasks_capped_at_ten(self):
        rows = [{"title": f"T{i}", "status": "todo", "priority": "low"} for i in range(25)]
        summary = summarize_tasks(rows, [])

        assert summary.total == 25
        assert len(summary.recent) == 10

    def test_discovery_counts(self):
        summary = summarize_discovery(
            [],
            [
                {"status": "running", "hypothesis_validated": None},
                {"status": "completed", "hypothesis_validated": True},
                {"status": "completed", "hypothesis_validated": False},
            ],
            [{"category": ["a", "b"]}, {"category": ["b"]}, {"category": None}],
        )

        assert summary.active_experiments == 1
        assert summary.validated_hypotheses == 1
        assert summary.invalidated_hypotheses == 1
        assert [(c.category, c.count) for c in summary.top_feedback_categories] == [
            ("b", 2),
            ("a", 1),
        ]

    def test_high_power_stakeholders_listed_first(self):
        summary = summarize_stakeholders(
            [{"name": "A", "power_level": "low"}, {"name": "B", "power_level": "high"}]
        )
        assert [s.name for s in summary.key_stakeholders] == ["B", "A"]


class TestRunDomainQuery:
    @pytest.mark.asyncio
    async def test_success(self):
        result = await run_domain_query("tasks", lambda a, b: [a, b], "x", "y", timeout=1.0)
        assert result.data == ["x", "y"]
        assert not result.failed

    @pytest.mark.asyncio
    async def test_error_returned_not_raised(self):
        def boom(project_id):
            raise RuntimeError("db down")

        result = await run_domain_query("tasks", boom, "p", timeout=1.0)

        assert result.failed
        assert isinstance(result.error, RuntimeError)

    @pytest.mark.asyncio
    async def test_timeout_returned_as_failure(self):
        result = await run_domain_query("tasks", time.sleep, 0.5, timeout=0.05)

        assert isinstance(result.error, TimeoutFailure)
        assert result.error.domain == "tasks"

    @pytest.mark.asyncio
    async def test_runs_on_the_given_executor(self):
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="domain-test") as executor:
            result = await run_domain_query(
                "tasks", lambda: threading.current_thread().name, timeout=1.0, executor=executor
            )

        assert result.data.startswith("domain-test")

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        task = asyncio.create_task(run_domain_query("tasks", time.sleep, 0.3, timeout=5.0))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestBuildWorkspaceContext:
    @pytest.mark.asyncio
    async def test_full_snapshot(self, workspace_store, engine_config):
        snapshot = await build_workspace_context(
            PROJECT_ID, WORKSPACE_ID, client=workspace_store, config=engine_config
        )

        assert snapshot.unavailable_domains == []
        assert snapshot.project.name == "Checkout Revamp"
        assert [m.name for m in snapshot.team.members] == ["Ada Lovelace", "Grace Hopper"]
        assert snapshot.team.members[0].organization_role == "Tech Lead"
        assert snapshot.team.members[1].organization_role is None
        assert snapshot.sow.exists and snapshot.sow.total_budget == 48000
        assert [e.title for e in snapshot.epics] == ["Saved cards"]
        assert [d.title for d in snapshot.debt] == ["Legacy cart"]
        assert snapshot.metrics.on_track == 1 and snapshot.metrics.at_risk == 1
        assert snapshot.discovery.total_experiments == 3
        assert snapshot.strategy.version == 2
        assert snapshot.strategy.strategic_bets == ["Wallets first (now)", "Retry payments"]
        assert [r.release_name for r in snapshot.roadmap.upcoming_releases] == ["1.2"]
        assert snapshot.stakeholders.key_stakeholders[0].name == "CFO"
        assert snapshot.uploads[0].uploaded_at == "2024-01-02"
        # The SOW lists members, so no direct member lookup
        assert "project_members" not in workspace_store.executed

    @pytest.mark.asyncio
    async def test_phases_get_suggested_dates_and_key_fields(self, workspace_store, engine_config):
        snapshot = await build_workspace_context(
            PROJECT_ID, WORKSPACE_ID, client=workspace_store, config=engine_config
        )

        phases = snapshot.phases
        assert [p.phase_name for p in phases] == ["Discovery", "Definition", "Build"]
        assert [
            (p.suggested_dates.start_date.isoformat(), p.suggested_dates.end_date.isoformat())
            for p in phases
        ] == [
            ("2024-01-01", "2024-01-11"),
            ("2024-01-12", "2024-01-22"),
            ("2024-01-23", "2024-01-31"),
        ]
        discovery_fields = {f.name: f.preview for f in phases[0].key_fields}
        assert list(discovery_fields) == ["goals", "notes", "owner"]
        assert len(discovery_fields["notes"]) == engine_config.workspace_value_preview_chars
        assert discovery_fields["notes"].endswith("...")
        assert phases[1].key_fields[0].preview == '["cards", "wallets"]'
        assert phases[2].key_fields == []

    @pytest.mark.asyncio
    async def test_task_assignees_resolved_from_team(self, workspace_store, engine_config):
        snapshot = await build_workspace_context(
            PROJECT_ID, WORKSPACE_ID, client=workspace_store, config=engine_config
        )

        assert snapshot.tasks.total == 3
        assert [(t.title, t.assignee) for t in snapshot.tasks.recent] == [
            ("Wire payments", "Ada Lovelace"),
            ("Design review", "Unknown"),
            ("Write docs", None),
        ]

    @pytest.mark.asyncio
    async def test_team_falls_back_to_direct_members(self, engine_config):
        tables = workspace_tables()
        tables["project_scope_of_work"] = []
        store = FakeSupabase(tables)

        snapshot = await build_workspace_context(
            PROJECT_ID, WORKSPACE_ID, client=store, config=engine_config
        )

        assert [m.name for m in snapshot.team.members] == ["Linus"]
        assert snapshot.team.members[0].organization_role == "Designer"
        assert "project_members" in store.executed

    @pytest.mark.asyncio
    async def test_failing_domain_left_empty_and_reported(self, engine_config):
        store = FakeSupabase(workspace_tables(), failing_tables={"workspace_debt"})

        snapshot = await build_workspace_context(
            PROJECT_ID, WORKSPACE_ID, client=store, config=engine_config
        )

        assert snapshot.debt == []
        assert snapshot.unavailable_domains == ["debt"]
        assert snapshot.project.name == "Checkout Revamp"

    @pytest.mark.asyncio
    async def test_failed_sow_lookup_recovers_through_fallback(self, engine_config):
        store = FakeSupabase(workspace_tables(), failing_tables={"project_scope_of_work"})

        snapshot = await build_workspace_context(
            PROJECT_ID, WORKSPACE_ID, client=store, config=engine_config
        )

        assert [m.name for m in snapshot.team.members] == ["Linus"]
        assert "team" not in snapshot.unavailable_domains

    @pytest.mark.asyncio
    async def test_slow_domain_times_out_without_failing_build(self, engine_config):
        store = FakeSupabase(workspace_tables(), slow_tables={"workspace_feedback": 0.6})
        config = engine_config.model_copy(update={"workspace_query_timeout_seconds": 0.2})

        snapshot = await build_workspace_context(
            PROJECT_ID, WORKSPACE_ID, client=store, config=config
        )

        assert snapshot.unavailable_domains == ["feedback"]
        assert snapshot.discovery.total_feedback == 0
        assert snapshot.discovery.total_insights == 1

    @pytest.mark.asyncio
    async def test_many_slow_domains_do_not_starve_healthy_ones(self, engine_config):
        slow = {
            "epic_drafts": 1.0,
            "workspace_decisions": 1.0,
            "workspace_debt": 1.0,
            "workspace_feedback": 1.0,
            "workspace_releases": 1.0,
            "project_uploads": 1.0,
        }
        store = FakeSupabase(workspace_tables(), slow_tables=slow)
        config = engine_config.model_copy(update={"workspace_query_timeout_seconds": 0.3})

        started = time.monotonic()
        snapshot = await build_workspace_context(
            PROJECT_ID, WORKSPACE_ID, client=store, config=config
        )
        elapsed = time.monotonic() - started

        assert snapshot.unavailable_domains == [
            "debt", "decisions", "epics", "feedback", "releases", "uploads",
        ]
        assert snapshot.project.name == "Checkout Revamp"
        assert snapshot.tasks.total == 3
        assert snapshot.metrics.total == 2
        # Slow queries are abandoned, not awaited
        assert elapsed < 0.9

    @pytest.mark.asyncio
    async def test_malformed_row_only_empties_its_domain(self, engine_config):
        tables = workspace_tables()
        tables["workspace_success_metrics"][0]["current_value"] = "TBD"
        store = FakeSupabase(tables)

        snapshot = await build_workspace_context(
            PROJECT_ID, WORKSPACE_ID, client=store, config=engine_config
        )

        assert snapshot.unavailable_domains == ["metrics"]
        assert snapshot.metrics.total == 0
        assert snapshot.project.name == "Checkout Revamp"
        assert snapshot.discovery.total_experiments == 3

    @pytest.mark.asyncio
    async def test_unknown_project_gets_defaults(self, workspace_store, engine_config):
        snapshot = await build_workspace_context(
            "proj-missing", "ws-missing", client=workspace_store, config=engine_config
        )

        assert snapshot.project.name == "Unknown Project"
        assert snapshot.project.status == "idea"
        assert snapshot.team.total_members == 0
        assert snapshot.strategy is None
        assert snapshot.unavailable_domains == []
