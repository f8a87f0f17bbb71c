"""
Course Planner - Run the full structuring and planning pipeline.

Phases, each with its own time budget and a cancellation check between them:

    featurize -> cluster -> balance -> optimize -> review scheduling

Only InputError and RunCancelled escape a run. A featurization timeout and
clustering failures fall back to ordered chunks; a balancing timeout keeps
one module per cluster run and an optimization timeout one session per module.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, replace
from typing import Any

from loguru import logger

from config import Settings, get_settings
from coursepilot.clustering.base import ClusteringContext
from coursepilot.clustering.fallback import chunk_fallback
from coursepilot.clustering.selector import StrategySelector
from coursepilot.core.cancellation import CancellationToken, PhaseBudget
from coursepilot.core.errors import InputError, PhaseTimeout
from coursepilot.core.models import (
    BalancedModule,
    Cluster,
    CourseStructure,
    PlanSettings,
    StudyPlan,
    UserPreferenceProfile,
    VideoItem,
)
from coursepilot.semantic.featurizer import FeaturizationResult, TextFeaturizer
from coursepilot.semantic.similarity_service import SimilarityEngine, SimilarityMatrix
from coursepilot.study.difficulty import DifficultyAnalyzer
from coursepilot.study.duration_balancer import DurationBalancer
from coursepilot.study.optimizer import MultiFactorOptimizer
from coursepilot.study.recommendations import StudyAdvisor, StudyRecommendations
from coursepilot.study.spaced_repetition import SpacedRepetitionScheduler


@dataclass
class PlanningRun:
    """Structure, plan and pacing advice produced together by one run."""

    structure: CourseStructure
    plan: StudyPlan
    recommendations: StudyRecommendations | None = None


def validate_items(items: list[VideoItem]) -> None:
    """Raise InputError for lists the planner cannot work with."""
    if not items:
        raise InputError("Item list is empty")

    seen: set[str] = set()
    for position, item in enumerate(items):
        if not item.id or not item.id.strip():
            raise InputError(f"Item at position {position} has no id")
        if item.id in seen:
            raise InputError(f"Duplicate item id '{item.id}'")
        if item.duration < 0:
            raise InputError(f"Item '{item.id}' has negative duration {item.duration}")
        seen.add(item.id)


class CoursePlanner:
    """
    Turn an ordered list of videos into modules and a dated study plan.

    Example:
        >>> planner = CoursePlanner()
        >>> run = planner.run(items, PlanSettings(session_minutes=45))
        >>> [m.title for m in run.structure.modules]
        >>> run.plan.summary()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        featurizer: TextFeaturizer | None = None,
        similarity_engine: SimilarityEngine | None = None,
    ):
        self.settings = settings or get_settings()
        self.featurizer = featurizer or TextFeaturizer()
        self.similarity_engine = similarity_engine or SimilarityEngine()
        self.selector = StrategySelector(self.settings)
        self.balancer = DurationBalancer(self.settings)
        self.optimizer = MultiFactorOptimizer(self.settings)

    # =========================================================================
    # Public API
    # =========================================================================

    def structure_course(
        self,
        items: list[VideoItem],
        plan_settings: PlanSettings | None = None,
        profile: UserPreferenceProfile | None = None,
        token: CancellationToken | None = None,
    ) -> CourseStructure:
        return self._structure(items, plan_settings or PlanSettings(), self._snapshot(profile), token)[0]

    def plan_course(
        self,
        structure: CourseStructure,
        plan_settings: PlanSettings | None = None,
        profile: UserPreferenceProfile | None = None,
        token: CancellationToken | None = None,
    ) -> StudyPlan:
        items = list(structure.items)
        features = self.featurizer.featurize([item.title for item in items])
        similarity = self.similarity_engine.compute(features)
        return self._plan(structure, similarity, plan_settings or PlanSettings(), self._snapshot(profile), token)

    def run(
        self,
        items: list[VideoItem],
        plan_settings: PlanSettings | None = None,
        profile: UserPreferenceProfile | None = None,
        token: CancellationToken | None = None,
    ) -> PlanningRun:
        plan_settings = plan_settings or PlanSettings()
        profile = self._snapshot(profile)
        started = time.monotonic()

        structure, similarity = self._structure(items, plan_settings, profile, token)
        plan = self._plan(structure, similarity, plan_settings, profile, token)

        logger.info(
            f"Planned {len(items)} videos: {len(structure.modules)} modules, "
            f"{len(plan.sessions)} sessions in {time.monotonic() - started:.2f}s"
        )
        recommendations = StudyAdvisor(profile.experience_level).recommend(structure, plan)
        return PlanningRun(structure=structure, plan=plan, recommendations=recommendations)

    async def run_async(
        self,
        items: list[VideoItem],
        plan_settings: PlanSettings | None = None,
        profile: UserPreferenceProfile | None = None,
    ) -> PlanningRun:
        """Run in a worker thread; cancelling the awaiting task cancels the run."""
        token = CancellationToken()
        try:
            return await asyncio.to_thread(self.run, items, plan_settings, profile, token)
        except asyncio.CancelledError:
            token.cancel()
            raise

    # =========================================================================
    # Phases
    # =========================================================================

    @staticmethod
    def _snapshot(profile: UserPreferenceProfile | None) -> UserPreferenceProfile:
        return profile.model_copy(deep=True) if profile is not None else UserPreferenceProfile()

    def _budget(self, phase: str, seconds: float, token: CancellationToken | None) -> PhaseBudget:
        if token is not None:
            token.raise_if_cancelled(phase)
        return PhaseBudget(phase, seconds, token)

    def _structure(
        self,
        items: list[VideoItem],
        plan_settings: PlanSettings,
        profile: UserPreferenceProfile,
        token: CancellationToken | None,
    ) -> tuple[CourseStructure, SimilarityMatrix]:
        validate_items(items)
        timings: dict[str, float] = {}

        budget = self._budget("featurize", self.settings.featurize_timeout, token)
        titles = [item.title for item in items]
        try:
            features = self.featurizer.featurize(titles, budget)
            similarity = self.similarity_engine.compute(features, budget)
            featurize_timeout = None
        except PhaseTimeout as e:
            logger.warning(f"{e}; structuring in course order")
            features = FeaturizationResult.blank(len(titles))
            similarity = self.similarity_engine.uniform(len(titles))
            featurize_timeout = e
        timings["featurize"] = budget.elapsed
        logger.debug(f"featurize: {timings['featurize']:.3f}s")

        budget = self._budget("clustering", self.settings.clustering_timeout, token)
        context = ClusteringContext(
            items=list(items),
            features=features,
            similarity=similarity,
            profile=profile,
            settings=self.settings,
            budget=budget,
        )
        if featurize_timeout is not None:
            clusters, metadata = chunk_fallback(context, str(featurize_timeout))
        else:
            clusters, metadata = self.selector.structure(context)
        timings["clustering"] = budget.elapsed
        logger.debug(f"clustering: {timings['clustering']:.3f}s ({metadata.strategy.value})")

        budget = self._budget("balancing", self.settings.balancing_timeout, token)
        difficulties = DifficultyAnalyzer(profile.experience_level).score_items(list(items))
        modules = self._balance(clusters, items, plan_settings, profile, features, similarity, difficulties, budget)
        timings["balancing"] = budget.elapsed
        logger.debug(f"balancing: {timings['balancing']:.3f}s")

        keywords = tuple(term for term, _ in features.corpus_keywords(5))
        metadata = replace(metadata, timings={**metadata.timings, **timings}, keywords=keywords)
        structure = CourseStructure(items=tuple(items), modules=tuple(modules), metadata=metadata)
        return structure, similarity

    def _balance(
        self,
        clusters: list[Cluster],
        items: list[VideoItem],
        plan_settings: PlanSettings,
        profile: UserPreferenceProfile,
        features: FeaturizationResult,
        similarity: SimilarityMatrix,
        difficulties: list[float],
        budget: PhaseBudget,
    ) -> list[BalancedModule]:
        shared: dict[str, Any] = {
            "features": features,
            "similarity": similarity,
            "difficulties": difficulties,
        }
        try:
            return self.balancer.balance(
                clusters,
                list(items),
                plan_settings.target_seconds,
                plan_settings.buffer_percent,
                profile=profile,
                budget=budget,
                **shared,
            )
        except PhaseTimeout as e:
            logger.warning(f"{e}; keeping one module per cluster run")
            return self.balancer.greedy_balance(
                clusters,
                list(items),
                plan_settings.target_seconds,
                plan_settings.buffer_percent,
                **shared,
            )

    def _plan(
        self,
        structure: CourseStructure,
        similarity: SimilarityMatrix,
        plan_settings: PlanSettings,
        profile: UserPreferenceProfile,
        token: CancellationToken | None,
    ) -> StudyPlan:
        modules = list(structure.modules)
        packing = self.balancer.packing_durations(list(structure.items))
        durations = [sum(packing[i] for i in module.indices) for module in modules]

        budget = self._budget("optimization", self.settings.optimization_timeout, token)
        try:
            result = self.optimizer.optimize(modules, similarity, plan_settings, profile, durations, budget)
        except PhaseTimeout as e:
            logger.warning(f"{e}; one session per module")
            result = self.optimizer.one_per_module(modules, plan_settings, durations)
        logger.debug(f"optimization: {budget.elapsed:.3f}s")

        if token is not None:
            token.raise_if_cancelled("review scheduling")
        scheduler = SpacedRepetitionScheduler(plan_settings.review_intervals)
        sessions = scheduler.schedule(result.sessions, plan_settings, modules)

        return StudyPlan(
            sessions=tuple(sessions),
            settings=plan_settings,
            factor_scores=result.factor_scores,
            warnings=tuple(result.warnings),
        )
