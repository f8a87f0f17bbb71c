"""
BDD step definitions for course structuring, planning and preference learning.

The scenarios run the real planner end to end on small in-memory courses.
"""

import random
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from coursepilot.adaptive.preference_learner import ABTestResult, PreferenceLearner
from coursepilot.core.models import (
    CourseStructure,
    FeedbackEvent,
    FeedbackKind,
    PlanSettings,
    StrategyKind,
    StudyPlan,
    UserPreferenceProfile,
    VideoItem,
)
from coursepilot.pipeline import CoursePlanner


@dataclass
class PlanningContext:
    planner: CoursePlanner | None = None
    items: list[VideoItem] = field(default_factory=list)
    settings: PlanSettings | None = None
    structure: CourseStructure | None = None
    plan: StudyPlan | None = None
    learner: PreferenceLearner = field(default_factory=PreferenceLearner)
    profile: UserPreferenceProfile | None = None
    ab_result: ABTestResult | None = None


FEATURE_PATH = Path(__file__).parent.parent.parent / "features" / "course_planning.feature"
scenarios(FEATURE_PATH)


@pytest.fixture
def context():
    return PlanningContext()


def _split(text: str) -> list[str]:
    return [part.strip() for part in text.split(",")]


# =============================================================================
# Given
# =============================================================================


@given("a planner with default settings")
def default_planner(context: PlanningContext):
    context.planner = CoursePlanner()


@given(parsers.parse('the videos "{titles}" with durations "{durations}"'))
def videos(context: PlanningContext, titles: str, durations: str):
    context.items = [
        VideoItem(id=f"v{i}", title=title, duration=int(seconds))
        for i, (title, seconds) in enumerate(zip(_split(titles), _split(durations)))
    ]


@given(parsers.parse("{count:d} videos with random titles"))
def random_videos(context: PlanningContext, count: int):
    rng = random.Random(7)
    letters = "abcdefghijklmnopqrstuvwxyz"
    context.items = [
        VideoItem(
            id=f"v{i}",
            title=" ".join("".join(rng.choice(letters) for _ in range(9)) for _ in range(3)),
            duration=600,
        )
        for i in range(count)
    ]


@given(parsers.parse("sessions of {minutes:d} minutes with a {buffer:d} percent buffer"))
def session_settings(context: PlanningContext, minutes: int, buffer: int):
    context.settings = PlanSettings.parse(
        {"session_minutes": minutes, "buffer_percent": buffer, "start_date": "2025-01-06"}
    )


@given(
    parsers.re(r'(?P<count>\d+) ratings of (?P<stars>\d) stars? for "(?P<strategy>\w+)"'),
    converters={"count": int, "stars": int},
)
def ratings(context: PlanningContext, count: int, stars: int, strategy: str):
    for _ in range(count):
        context.learner.record_feedback(
            FeedbackEvent(kind=FeedbackKind.RATING, strategy=StrategyKind(strategy), rating=stars)
        )


# =============================================================================
# When
# =============================================================================


@when("the course is structured")
def structure_course(context: PlanningContext):
    context.structure = context.planner.structure_course(context.items, context.settings)


@when("the course is planned")
def plan_course(context: PlanningContext):
    run = context.planner.run(context.items, context.settings)
    context.structure = run.structure
    context.plan = run.plan


@when("the profile is auto-tuned")
def auto_tune(context: PlanningContext):
    context.profile = context.learner.auto_tune()


@when(parsers.parse('"{variant_a}" is compared with "{variant_b}" on {samples:d} samples'))
def compare(context: PlanningContext, variant_a: str, variant_b: str, samples: int):
    context.ab_result = context.learner.run_ab_test(StrategyKind(variant_a), StrategyKind(variant_b), samples)


# =============================================================================
# Then
# =============================================================================


@then(parsers.re(r"there (?:is|are) (?P<count>\d+) modules?"), converters={"count": int})
def module_count(context: PlanningContext, count: int):
    assert len(context.structure.modules) == count


@then(parsers.re(r"there (?:is|are) (?P<count>\d+) sessions?"), converters={"count": int})
def session_count(context: PlanningContext, count: int):
    assert len(context.plan.sessions) == count


@then(parsers.parse('the module durations are "{durations}"'))
def module_durations(context: PlanningContext, durations: str):
    assert [m.total_duration for m in context.structure.modules] == [int(d) for d in _split(durations)]


@then(parsers.parse("no module of several videos exceeds {seconds:d} seconds"))
def modules_within_cap(context: PlanningContext, seconds: int):
    for module in context.structure.modules:
        assert len(module.indices) == 1 or module.total_duration <= seconds


@then("every video appears once in course order")
def items_in_order(context: PlanningContext):
    assert context.structure.item_ids() == [item.id for item in context.items]


@then("the structure is a sequential series in course order")
def sequential_series(context: PlanningContext):
    metadata = context.structure.metadata
    assert metadata.strategy == StrategyKind.SEQUENTIAL
    assert not metadata.is_fallback
    assert "course order preserved" in metadata.rationale


@then("the structure is a fallback flagged as degenerate input")
def degenerate_fallback(context: PlanningContext):
    metadata = context.structure.metadata
    assert metadata.is_fallback
    assert metadata.degenerate_input
    assert "degenerate input" in metadata.rationale


@then("the plan has no review sessions")
def no_reviews(context: PlanningContext):
    assert context.plan.review_sessions == []


@then("the plan has review sessions")
def has_reviews(context: PlanningContext):
    assert context.plan.review_sessions


@then("every review is dated after the modules it covers were first studied")
def reviews_after_study(context: PlanningContext):
    first_studied = {}
    for session in context.plan.content_sessions:
        for module in session.module_indices:
            first_studied.setdefault(module, session.date)
    for review in context.plan.review_sessions:
        assert all(first_studied[m] < review.date for m in review.module_indices)


@then(parsers.parse('the weight of "{lower}" is lower than the weight of "{higher}"'))
def weight_lower(context: PlanningContext, lower: str, higher: str):
    assert context.profile.weight_for(StrategyKind(lower)) < context.profile.weight_for(StrategyKind(higher))


@then("the comparison is inconclusive")
def inconclusive(context: PlanningContext):
    assert not context.ab_result.conclusive
    assert context.ab_result.outcome == "inconclusive"
