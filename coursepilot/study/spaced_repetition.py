"""
Spaced Repetition Scheduler - Insert review sessions into a study plan.

Reviews sit at the 25/50/75 % completion checkpoints, measured by content
duration (or session count when durations are unknown). Each review is
held ``intervals[0]`` days after the checkpoint session and covers:

- every module studied since the previous checkpoint, and
- older modules whose time since first study has reached their next
  interval (intervals[times reviewed]).

A review never references a module that has not been studied yet and is
always dated after the checkpoint session it follows. Plans with a single
content session get no reviews.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date

from loguru import logger

from coursepilot.core.models import (
    DEFAULT_REVIEW_INTERVALS,
    BalancedModule,
    PlanSettings,
    SessionType,
    StudySession,
)
from coursepilot.study.optimizer import checkpoint_positions
from coursepilot.study.session_calendar import SessionCalendar

REVIEW_CHECKPOINTS = (0.25, 0.5, 0.75)
REVIEW_SHARE = 0.25


class SpacedRepetitionScheduler:
    """Add dated REVIEW sessions after content checkpoints."""

    def __init__(self, intervals: tuple[int, ...] = DEFAULT_REVIEW_INTERVALS):
        self.intervals = tuple(intervals) or DEFAULT_REVIEW_INTERVALS

    def schedule(
        self,
        sessions: list[StudySession],
        plan: PlanSettings,
        modules: list[BalancedModule] | None = None,
    ) -> list[StudySession]:
        """Return content and review sessions in order, re-indexed."""
        content = [s for s in sessions if not s.is_review]
        if len(content) < 2:
            # Nothing to space out within a single sitting
            return [replace(s, index=index) for index, s in enumerate(content)]

        calendar = SessionCalendar(plan.resolved_start(), plan.sessions_per_week, plan.include_weekends)
        by_index = {m.index: m for m in modules or []}
        checkpoints = checkpoint_positions([float(s.duration) for s in content], REVIEW_CHECKPOINTS)

        first_studied: dict[int, date] = {}
        for session in content:
            for module in session.module_indices:
                first_studied.setdefault(module, session.date)

        times_reviewed: dict[int, int] = {}
        placed: list[tuple[int, float, StudySession]] = [
            (s.day_offset, float(position), s) for position, s in enumerate(content)
        ]

        previous = -1
        for checkpoint in checkpoints:
            anchor = content[checkpoint]
            review_date = calendar.after(anchor.date, self.intervals[0])

            recent = [m for s in content[previous + 1: checkpoint + 1] for m in s.module_indices]
            older = [
                m
                for s in content[: previous + 1]
                for m in s.module_indices
                if (review_date - first_studied[m]).days >= self._next_interval(times_reviewed.get(m, 0))
            ]
            reviewed = sorted(set(recent + older))
            for m in reviewed:
                times_reviewed[m] = times_reviewed.get(m, 0) + 1

            review = self._review_session(reviewed, review_date, calendar, plan, by_index)
            placed.append((review.day_offset, checkpoint + 0.5, review))
            previous = checkpoint

        placed.sort(key=lambda entry: (entry[0], entry[1]))
        ordered = [replace(session, index=index) for index, (_, _, session) in enumerate(placed)]

        logger.debug(f"Inserted {len(checkpoints)} review sessions into {len(content)} content sessions")
        return ordered

    def _next_interval(self, times_reviewed: int) -> int:
        return self.intervals[min(times_reviewed, len(self.intervals) - 1)]

    @staticmethod
    def _review_session(
        reviewed: list[int],
        review_date: date,
        calendar: SessionCalendar,
        plan: PlanSettings,
        by_index: dict[int, BalancedModule],
    ) -> StudySession:
        known = [by_index[m] for m in reviewed if m in by_index]
        content_seconds = sum(m.total_duration for m in known)
        difficulty = sum(m.difficulty for m in known) / len(known) if known else 0.5
        return StudySession(
            index=-1,
            session_type=SessionType.REVIEW,
            module_indices=tuple(reviewed),
            item_ids=tuple(item_id for m in known for item_id in m.member_ids),
            day_offset=calendar.offset(review_date),
            date=review_date,
            duration=min(plan.target_seconds, int(content_seconds * REVIEW_SHARE)),
            difficulty=difficulty,
        )
