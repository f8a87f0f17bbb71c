"""
Multi-Factor Optimizer - Group modules into dated study sessions.

Modules stay in course order; the optimizer only decides where sessions
start and end. Each candidate session (a contiguous run of modules) is
scored as a weighted sum of four factors in [0, 1]:

- content:    how related the grouped modules are
- duration:   closeness of the session length to the target
- difficulty: absence of steep difficulty jumps (> 0.3)
- preference: closeness to the user's preferred session length

Dynamic programming picks the grouping maximising sum(score * modules).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from config import Settings, get_settings
from coursepilot.core.cancellation import PhaseBudget, unbounded
from coursepilot.core.models import (
    BalancedModule,
    FactorWeights,
    PlanSettings,
    SessionType,
    StudySession,
    UserPreferenceProfile,
)
from coursepilot.semantic.similarity_service import SimilarityMatrix
from coursepilot.study.session_calendar import SessionCalendar

STEEP_JUMP = 0.3
CHECKPOINTS = (0.25, 0.5, 0.75, 1.0)


@dataclass
class OptimizationResult:
    sessions: list[StudySession]
    factor_scores: dict[str, float] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def checkpoint_positions(weights: list[float], fractions: tuple[float, ...]) -> list[int]:
    """
    Index of the entry at which each completion fraction is reached.

    Weights are per-entry amounts of content; zero totals fall back to
    counting entries. Duplicate positions are collapsed.
    """
    if not weights:
        return []
    if sum(weights) <= 0:
        weights = [1.0] * len(weights)
    total = sum(weights)

    positions: list[int] = []
    cumulative = 0.0
    remaining = list(fractions)
    for index, weight in enumerate(weights):
        cumulative += weight
        while remaining and cumulative >= remaining[0] * total - 1e-9:
            remaining.pop(0)
            if index not in positions:
                positions.append(index)
    return positions


class MultiFactorOptimizer:
    """
    Arrange balanced modules into sessions.

    Example:
        >>> result = MultiFactorOptimizer().optimize(modules, similarity, plan_settings)
        >>> [s.session_type for s in result.sessions]
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def optimize(
        self,
        modules: list[BalancedModule],
        similarity: SimilarityMatrix | None,
        plan: PlanSettings,
        profile: UserPreferenceProfile | None = None,
        durations: list[float] | None = None,
        budget: PhaseBudget | None = None,
    ) -> OptimizationResult:
        if not modules:
            return OptimizationResult(sessions=[])

        profile = profile or UserPreferenceProfile()
        budget = budget or unbounded("optimization")
        durations = durations or self.effective_durations(modules)
        weights = self.normalized_weights(profile.factor_weights)
        capacity = plan.capacity_seconds
        preferred = (profile.preferred_session_minutes or plan.session_minutes) * 60

        n = len(modules)
        best = [float("-inf")] * (n + 1)
        back = [0] * (n + 1)
        factors_at: dict[tuple[int, int], dict[str, float]] = {}
        best[0] = 0.0

        for j in range(1, n + 1):
            budget.check()
            total = 0.0
            for i in range(j - 1, -1, -1):
                total += durations[i]
                if total > capacity and j - i > 1:
                    break
                factors = self._factors(modules, similarity, i, j, total, plan.target_seconds, preferred)
                score = sum(weights[name] * value for name, value in factors.items())
                candidate = best[i] + score * (j - i)
                if candidate > best[j]:
                    best[j] = candidate
                    back[j] = i
                    factors_at[(i, j)] = factors

        groups = []
        j = n
        while j > 0:
            i = back[j]
            groups.append((i, j))
            j = i
        groups.reverse()

        sessions = self._build_sessions(modules, durations, groups, plan, weights, factors_at)
        factor_scores = self._summarize(groups, factors_at)
        warnings = self._warnings(modules)

        logger.debug(f"Optimized {n} modules into {len(sessions)} sessions")
        return OptimizationResult(sessions=sessions, factor_scores=factor_scores, warnings=warnings)

    def one_per_module(
        self,
        modules: list[BalancedModule],
        plan: PlanSettings,
        durations: list[float] | None = None,
    ) -> OptimizationResult:
        """Cheapest valid arrangement: every module is its own session."""
        if not modules:
            return OptimizationResult(sessions=[])
        durations = durations or self.effective_durations(modules)
        groups = [(k, k + 1) for k in range(len(modules))]
        sessions = self._build_sessions(modules, durations, groups, plan, {}, {})
        return OptimizationResult(sessions=sessions, factor_scores={}, warnings=self._warnings(modules))

    def effective_durations(self, modules: list[BalancedModule]) -> list[float]:
        """Module lengths for packing; modules of unknown length get an estimate."""
        unknown = self.settings.unknown_duration_seconds
        return [float(m.total_duration) if m.total_duration > 0 else float(unknown * len(m.indices)) for m in modules]

    @staticmethod
    def normalized_weights(weights: FactorWeights) -> dict[str, float]:
        return weights.normalized()

    @staticmethod
    def _factors(
        modules: list[BalancedModule],
        similarity: SimilarityMatrix | None,
        i: int,
        j: int,
        total: float,
        target: int,
        preferred: int,
    ) -> dict[str, float]:
        group = modules[i:j]

        if len(group) == 1:
            content = group[0].cohesion if similarity is not None else 1.0
        elif similarity is None:
            content = 0.0
        else:
            pairs = [
                similarity.mean_between(a.indices, b.indices)
                for x, a in enumerate(group)
                for b in group[x + 1:]
            ]
            content = sum(pairs) / len(pairs)

        duration = max(0.0, 1.0 - abs(target - total) / target)

        levels = [m.difficulty for m in group]
        if i > 0:
            levels = [modules[i - 1].difficulty] + levels
        jumps = [abs(b - a) for a, b in zip(levels, levels[1:])]
        if jumps:
            penalty = sum(max(0.0, jump - STEEP_JUMP) / (1 - STEEP_JUMP) for jump in jumps) / len(jumps)
            difficulty = 1.0 - penalty
        else:
            difficulty = 1.0

        preference = max(0.0, 1.0 - abs(preferred - total) / preferred)

        return {
            "content": min(1.0, max(0.0, content)),
            "duration": duration,
            "difficulty": difficulty,
            "preference": preference,
        }

    @staticmethod
    def _build_sessions(
        modules: list[BalancedModule],
        durations: list[float],
        groups: list[tuple[int, int]],
        plan: PlanSettings,
        weights: dict[str, float],
        factors_at: dict[tuple[int, int], dict[str, float]],
    ) -> list[StudySession]:
        calendar = SessionCalendar(plan.resolved_start(), plan.sessions_per_week, plan.include_weekends)
        dates = calendar.session_dates(len(groups))
        session_amounts = [sum(durations[i:j]) for i, j in groups]
        assessments = set(checkpoint_positions(session_amounts, CHECKPOINTS))

        sessions = []
        for index, ((i, j), day) in enumerate(zip(groups, dates)):
            group = modules[i:j]
            if index == 0:
                session_type = SessionType.INTRODUCTION
            elif index in assessments:
                session_type = SessionType.ASSESSMENT
            else:
                session_type = SessionType.PRACTICE

            seconds = [m.total_duration for m in group]
            if sum(seconds) > 0:
                difficulty = sum(m.difficulty * s for m, s in zip(group, seconds)) / sum(seconds)
            else:
                difficulty = sum(m.difficulty for m in group) / len(group)

            factors = factors_at.get((i, j), {})
            sessions.append(
                StudySession(
                    index=index,
                    session_type=session_type,
                    module_indices=tuple(m.index for m in group),
                    item_ids=tuple(item_id for m in group for item_id in m.member_ids),
                    day_offset=calendar.offset(day),
                    date=day,
                    duration=sum(seconds),
                    difficulty=difficulty,
                    score=sum(weights.get(name, 0.0) * value for name, value in factors.items()),
                )
            )
        return sessions

    @staticmethod
    def _summarize(
        groups: list[tuple[int, int]],
        factors_at: dict[tuple[int, int], dict[str, float]],
    ) -> dict[str, float]:
        chosen = [factors_at[g] for g in groups if g in factors_at]
        if not chosen:
            return {}
        return {name: sum(f[name] for f in chosen) / len(chosen) for name in chosen[0]}

    @staticmethod
    def _warnings(modules: list[BalancedModule]) -> list[str]:
        return [
            f"Module '{m.title}' ({m.total_duration}s) exceeds session capacity ({m.capacity:.0f}s)"
            for m in modules
            if m.overflow
        ]
