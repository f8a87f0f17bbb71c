"""
Unit tests for the Spaced Repetition Scheduler.
"""
from datetime import date

import pytest

from coursepilot.core.models import BalancedModule, SessionType
from coursepilot.study.optimizer import MultiFactorOptimizer
from coursepilot.study.spaced_repetition import SpacedRepetitionScheduler


def make_modules(durations):
    return [
        BalancedModule(
            index=k,
            title=f"Module {k + 1}",
            indices=(k,),
            member_ids=(f"v{k}",),
            total_duration=d,
            target_duration=3600,
            capacity=4320,
        )
        for k, d in enumerate(durations)
    ]


def content_sessions(modules, plan_settings):
    return MultiFactorOptimizer().one_per_module(modules, plan_settings).sessions


class TestSpacedRepetitionScheduler:
    """Tests for review insertion."""

    @pytest.fixture
    def scheduler(self):
        return SpacedRepetitionScheduler()

    @pytest.fixture
    def eight_modules(self):
        return make_modules([1800] * 8)

    def test_three_reviews_for_even_course(self, scheduler, eight_modules, plan_settings):
        sessions = scheduler.schedule(content_sessions(eight_modules, plan_settings), plan_settings, eight_modules)

        reviews = [s for s in sessions if s.session_type == SessionType.REVIEW]
        assert len(reviews) == 3
        assert len(sessions) == 11

    def test_first_review_covers_first_quarter(self, scheduler, eight_modules, plan_settings):
        sessions = scheduler.schedule(content_sessions(eight_modules, plan_settings), plan_settings, eight_modules)

        first_review = next(s for s in sessions if s.is_review)
        assert first_review.module_indices == (0, 1)
        assert first_review.date == date(2025, 1, 8)
        assert first_review.item_ids == ("v0", "v1")

    def test_reviews_only_cover_studied_modules(self, scheduler, eight_modules, plan_settings):
        sessions = scheduler.schedule(content_sessions(eight_modules, plan_settings), plan_settings, eight_modules)

        first_seen = {}
        for session in sessions:
            if not session.is_review:
                for m in session.module_indices:
                    first_seen.setdefault(m, session.date)
        for review in (s for s in sessions if s.is_review):
            for m in review.module_indices:
                assert first_seen[m] < review.date

    def test_older_modules_return_when_due(self, scheduler, eight_modules, plan_settings):
        sessions = scheduler.schedule(content_sessions(eight_modules, plan_settings), plan_settings, eight_modules)

        second_review = [s for s in sessions if s.is_review][1]
        assert second_review.module_indices == (0, 1, 2, 3)

    def test_sessions_are_ordered_and_reindexed(self, scheduler, eight_modules, plan_settings):
        sessions = scheduler.schedule(content_sessions(eight_modules, plan_settings), plan_settings, eight_modules)

        assert [s.index for s in sessions] == list(range(len(sessions)))
        offsets = [s.day_offset for s in sessions]
        assert offsets == sorted(offsets)
        content = [m for s in sessions if not s.is_review for m in s.module_indices]
        assert content == list(range(8))

    def test_review_length_is_a_quarter_of_reviewed_content(self, scheduler, eight_modules, plan_settings):
        sessions = scheduler.schedule(content_sessions(eight_modules, plan_settings), plan_settings, eight_modules)

        first_review = next(s for s in sessions if s.is_review)
        assert first_review.duration == 900

    def test_review_length_is_capped_at_target(self, scheduler, plan_settings):
        modules = make_modules([4000] * 8)

        sessions = scheduler.schedule(content_sessions(modules, plan_settings), plan_settings, modules)

        assert all(s.duration <= plan_settings.target_seconds for s in sessions if s.is_review)

    def test_front_loaded_course_gets_one_review(self, scheduler, plan_settings):
        modules = make_modules([1000, 10])

        sessions = scheduler.schedule(content_sessions(modules, plan_settings), plan_settings, modules)

        assert sum(1 for s in sessions if s.is_review) == 1

    def test_single_session_has_no_reviews(self, scheduler, plan_settings):
        modules = make_modules([600])

        sessions = scheduler.schedule(content_sessions(modules, plan_settings), plan_settings, modules)

        assert len(sessions) == 1
        assert not sessions[0].is_review

    def test_no_sessions(self, scheduler, plan_settings):
        assert scheduler.schedule([], plan_settings) == []

    def test_custom_first_interval_moves_reviews(self, eight_modules, plan_settings):
        scheduler = SpacedRepetitionScheduler(intervals=(2, 5))

        sessions = scheduler.schedule(content_sessions(eight_modules, plan_settings), plan_settings, eight_modules)

        first_review = next(s for s in sessions if s.is_review)
        assert first_review.date == date(2025, 1, 9)
