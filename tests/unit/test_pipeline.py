"""
Unit tests for the end-to-end Course Planner.

These run the real featurizer, selector, balancer, optimizer and scheduler
on small courses and check the invariants every run must keep.
"""
from datetime import date

import pytest

from config import get_settings
from coursepilot.core.cancellation import CancellationToken
from coursepilot.core.errors import InputError, PhaseTimeout, RunCancelled
from coursepilot.core.models import PlanSettings, SessionType, StrategyKind, VideoItem
from coursepilot.pipeline import CoursePlanner, PlanningRun, validate_items


@pytest.fixture
def planner():
    return CoursePlanner()


class TestValidation:
    """Tests for input validation."""

    def test_empty_list(self, planner):
        with pytest.raises(InputError, match="empty"):
            planner.run([])

    def test_duplicate_ids(self):
        items = [VideoItem(id="a", title="One"), VideoItem(id="a", title="Two")]

        with pytest.raises(InputError, match="Duplicate"):
            validate_items(items)

    def test_blank_id(self):
        with pytest.raises(InputError):
            validate_items([VideoItem(id="  ", title="One")])

    def test_negative_duration(self):
        with pytest.raises(InputError, match="negative"):
            validate_items([VideoItem(id="a", title="One", duration=-5)])

    def test_zero_duration_is_allowed(self):
        validate_items([VideoItem(id="a", title="One", duration=0)])


class TestCoursePlanner:
    """Tests for CoursePlanner.run and its phases."""

    def test_scenario_structure(self, planner, scenario_items, scenario_settings):
        structure = planner.structure_course(scenario_items, scenario_settings)

        assert structure.metadata.strategy == StrategyKind.HIERARCHICAL
        assert [m.total_duration for m in structure.modules] == [580, 900, 1150]
        assert structure.item_ids() == ["v0", "v1", "v2", "v3", "v4"]

    def test_scenario_plan(self, planner, scenario_items, scenario_settings):
        run = planner.run(scenario_items, scenario_settings)

        assert [s.session_type for s in run.plan.sessions] == [
            SessionType.INTRODUCTION,
            SessionType.ASSESSMENT,
            SessionType.REVIEW,
            SessionType.ASSESSMENT,
            SessionType.REVIEW,
        ]
        assert run.plan.sessions[0].date == date(2025, 1, 6)
        assert run.plan.sessions[2].module_indices == (0, 1)

    def test_single_video(self, planner, plan_settings):
        run = planner.run([VideoItem(id="only", title="Only video", duration=600)], plan_settings)

        assert len(run.structure.modules) == 1
        assert len(run.plan.sessions) == 1
        assert run.plan.sessions[0].item_ids == ("only",)
        assert run.plan.review_sessions == []

    def test_every_item_once_in_order(self, planner, networking_items, plan_settings):
        run = planner.run(networking_items, plan_settings)

        expected = [item.id for item in networking_items]
        assert run.structure.item_ids() == expected
        content_ids = [i for s in run.plan.content_sessions for i in s.item_ids]
        assert content_ids == expected

    def test_modules_respect_capacity(self, planner, networking_items, plan_settings):
        structure = planner.structure_course(networking_items, plan_settings)

        for module in structure.modules:
            assert module.total_duration <= plan_settings.capacity_seconds or len(module.indices) == 1

    def test_reviews_follow_study(self, planner, networking_items):
        settings = PlanSettings(start_date=date(2025, 1, 6), session_minutes=20)

        run = planner.run(networking_items, settings)

        studied_on = {}
        for session in run.plan.content_sessions:
            for m in session.module_indices:
                studied_on.setdefault(m, session.date)
        assert run.plan.review_sessions
        for review in run.plan.review_sessions:
            assert all(studied_on[m] < review.date for m in review.module_indices)

    def test_runs_are_deterministic(self, planner, networking_items, plan_settings):
        first = planner.run(networking_items, plan_settings)
        second = CoursePlanner().run(networking_items, plan_settings)

        assert [m.member_ids for m in first.structure.modules] == [m.member_ids for m in second.structure.modules]
        assert [(s.date, s.module_indices) for s in first.plan.sessions] == [
            (s.date, s.module_indices) for s in second.plan.sessions
        ]

    def test_metadata_has_phase_timings(self, planner, networking_items, plan_settings):
        structure = planner.structure_course(networking_items, plan_settings)

        assert {"featurize", "clustering", "balancing"} <= set(structure.metadata.timings)
        assert structure.metadata.rationale

    def test_unknown_durations(self, planner, item_factory, plan_settings):
        items = item_factory(["TCP basics", "TCP windows", "OSPF areas", "OSPF costs"], [0, 0, 0, 0])

        run = planner.run(items, plan_settings)

        assert run.structure.total_duration == 0
        assert run.plan.content_sessions

    def test_degenerate_titles_fall_back(self, planner, item_factory, plan_settings):
        items = item_factory(["apples oranges", "bicycles trains", "violins pianos", "rivers lakes"])

        structure = planner.structure_course(items, plan_settings)

        assert structure.metadata.is_fallback
        assert structure.metadata.degenerate_input
        assert structure.item_ids() == ["v0", "v1", "v2", "v3"]

    def test_plan_course_from_structure(self, planner, scenario_items, scenario_settings):
        structure = planner.structure_course(scenario_items, scenario_settings)

        plan = planner.plan_course(structure, scenario_settings)

        assert len(plan.content_sessions) == 3

    def test_profile_is_not_mutated(self, planner, scenario_items, scenario_settings, default_profile):
        before = default_profile.model_dump()

        planner.run(scenario_items, scenario_settings, default_profile)

        assert default_profile.model_dump() == before

    def test_metadata_lists_corpus_keywords(self, planner, networking_items, plan_settings):
        structure = planner.structure_course(networking_items, plan_settings)

        keywords = structure.metadata.keywords
        assert 0 < len(keywords) <= 5
        assert all(k == k.lower() for k in keywords)

    def test_run_includes_recommendations(self, planner, networking_items, plan_settings):
        run = planner.run(networking_items, plan_settings)

        advice = run.recommendations
        assert advice is not None
        assert 3 <= advice.sessions_per_week <= 5
        assert advice.completion_weeks >= 1
        assert len(advice.progression.scores) == len(run.structure.modules)

    def test_numbered_course_keeps_its_order(self, planner, item_factory, plan_settings):
        topics = ["Routing tables", "Switching loops", "Subnet masks", "Packet capture", "Firewall rules", "Load balancers"]
        items = item_factory([f"Lesson {i}: {t}" for i, t in enumerate(topics, start=1)])

        structure = planner.structure_course(items, plan_settings)

        assert structure.metadata.strategy == StrategyKind.SEQUENTIAL
        assert structure.item_ids() == [item.id for item in items]


class TestDegradation:
    """Tests for timeouts and cancellation."""

    def test_balancing_timeout_uses_greedy_modules(self, planner, scenario_items, scenario_settings, monkeypatch):
        def slow(*args, **kwargs):
            raise PhaseTimeout("balancing", 0.01)

        monkeypatch.setattr(planner.balancer, "balance", slow)

        structure = planner.structure_course(scenario_items, scenario_settings)

        assert [m.total_duration for m in structure.modules] == [580, 900, 950, 200]

    def test_optimization_timeout_uses_one_session_per_module(
        self, planner, networking_items, plan_settings, monkeypatch
    ):
        def slow(*args, **kwargs):
            raise PhaseTimeout("optimization", 0.01)

        monkeypatch.setattr(planner.optimizer, "optimize", slow)

        run = planner.run(networking_items, plan_settings)

        assert len(run.plan.content_sessions) == len(run.structure.modules)
        assert run.plan.factor_scores == {}

    def test_cancelled_token(self, planner, scenario_items):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(RunCancelled):
            planner.run(scenario_items, token=token)

    def test_featurize_timeout_uses_ordered_chunks(self, networking_items, plan_settings):
        settings = get_settings().model_copy(update={"featurize_timeout": 0.0})
        planner = CoursePlanner(settings)

        run = planner.run(networking_items, plan_settings)

        metadata = run.structure.metadata
        assert metadata.is_fallback
        assert not metadata.degenerate_input
        assert "Phase 'featurize' exceeded" in metadata.rationale
        assert metadata.keywords == ()
        assert run.structure.item_ids() == [item.id for item in networking_items]
        assert run.plan.content_sessions

    def test_featurize_timeout_still_honours_cancellation(self, networking_items):
        settings = get_settings().model_copy(update={"featurize_timeout": 0.0})
        token = CancellationToken()
        token.cancel()

        with pytest.raises(RunCancelled):
            CoursePlanner(settings).run(networking_items, token=token)

    @pytest.mark.asyncio
    async def test_run_async(self, planner, scenario_items, scenario_settings):
        run = await planner.run_async(scenario_items, scenario_settings)

        assert isinstance(run, PlanningRun)
        assert len(run.structure.modules) == 3
