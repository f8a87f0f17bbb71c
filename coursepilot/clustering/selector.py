"""
Hybrid Strategy Selector - Pick and run a clustering strategy for a corpus.

Selection is a pure function of the content characteristics, the user
profile and the settings, so it can be unit tested without running any
clustering. Execution wraps the chosen strategies and recovers from every
strategy-level error with ordered chunks, so for non-empty input
``StrategySelector.structure`` never raises except on cancellation.

Numbered series ("Lesson 1", "Module 2") are recognised first and kept in
course order without clustering.

Policy (first match wins):
1. very complex content          -> ensemble, best quality x learned weight
2. profile pins a strategy        -> use it unless it fails or scores too low
3. small corpus                   -> hierarchical
4. large, thematically mixed      -> topic model
5. otherwise                      -> K-Means (unless feedback demoted it)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from loguru import logger

from config import Settings, get_settings
from coursepilot.clustering.base import ClusteringContext, single_cluster
from coursepilot.clustering.fallback import chunk_fallback
from coursepilot.clustering.hierarchical import HierarchicalStrategy
from coursepilot.clustering.kmeans import KMeansStrategy
from coursepilot.clustering.topic_model import TopicModelStrategy
from coursepilot.core.errors import ClusteringFailure, PhaseTimeout
from coursepilot.core.models import (
    LEARNABLE_STRATEGIES,
    Cluster,
    ClusteringMetadata,
    StrategyKind,
    UserPreferenceProfile,
)
from coursepilot.semantic.sequential_detection import ContentTypeAnalysis, detect_sequential_patterns
from coursepilot.semantic.similarity_service import SimilarityDistribution

_STRATEGIES = {
    StrategyKind.KMEANS: KMeansStrategy(),
    StrategyKind.HIERARCHICAL: HierarchicalStrategy(),
    StrategyKind.TOPIC_MODEL: TopicModelStrategy(),
}


def run_strategy(
    kind: StrategyKind,
    context: ClusteringContext,
    params: dict[str, Any] | None = None,
) -> tuple[list[Cluster], ClusteringMetadata]:
    """Dispatch to one strategy. Errors propagate to the caller."""
    if kind == StrategyKind.FALLBACK:
        return chunk_fallback(context, "requested explicitly")
    if kind == StrategyKind.SEQUENTIAL:
        return single_cluster(kind, context, "course order requested explicitly")
    return _STRATEGIES[kind].cluster(context, **(params or {}))


@dataclass
class ContentCharacteristics:
    """What the selector knows about a corpus before clustering it."""

    item_count: int
    vocabulary_size: int
    vocab_diversity: float  # distinct tokens / total tokens
    distribution: SimilarityDistribution
    topic_coherence: float  # mean similarity of each title to its nearest neighbour
    degenerate: bool = False
    degenerate_reason: str = ""

    @property
    def complexity(self) -> float:
        spread = min(1.0, self.distribution.std / 0.35)
        scale = min(1.0, self.item_count / 200)
        return 0.4 * self.vocab_diversity + 0.4 * spread + 0.2 * scale

    @property
    def thematic_mixing(self) -> bool:
        return self.topic_coherence >= 0.2 and self.vocab_diversity >= 0.3


@dataclass
class StrategyChoice:
    """Variant tags chosen by the policy plus the reason, for metadata."""

    kinds: tuple[StrategyKind, ...]
    reason: str
    ensemble: bool = False
    pinned: bool = False

    @property
    def primary(self) -> StrategyKind:
        return self.kinds[0]


def analyze_content(context: ClusteringContext) -> ContentCharacteristics:
    """Diversity and size estimates that drive strategy selection."""
    tokens = [t for doc in context.features.tokens for t in doc]
    vocab_diversity = len(set(tokens)) / len(tokens) if tokens else 0.0

    values = context.similarity.values.copy()
    n = len(values)
    if n > 1:
        values[range(n), range(n)] = 0.0
        topic_coherence = float(values.max(axis=1).mean())
    else:
        topic_coherence = 0.0

    return ContentCharacteristics(
        item_count=context.size,
        vocabulary_size=len(context.features.vocabulary),
        vocab_diversity=vocab_diversity,
        distribution=context.similarity.distribution(),
        topic_coherence=topic_coherence,
        degenerate=context.features.degenerate,
        degenerate_reason=context.features.degenerate_reason,
    )


def select_strategy(
    chars: ContentCharacteristics,
    profile: UserPreferenceProfile,
    settings: Settings | None = None,
    ignore_preference: bool = False,
) -> StrategyChoice:
    """Apply the ordered selection policy. Pure: no clustering is run."""
    settings = settings or get_settings()

    if chars.complexity >= settings.ensemble_complexity_threshold:
        kinds = tuple(
            kind
            for kind in LEARNABLE_STRATEGIES
            if kind != StrategyKind.TOPIC_MODEL or chars.item_count >= settings.lda_min_documents
        )
        return StrategyChoice(
            kinds=kinds,
            reason=f"content complexity {chars.complexity:.2f}: ensemble of {len(kinds)} strategies",
            ensemble=True,
        )

    if profile.preferred_strategy is not None and not ignore_preference:
        return StrategyChoice(
            kinds=(profile.preferred_strategy,),
            reason=f"profile prefers {profile.preferred_strategy.value}",
            pinned=True,
        )

    if chars.item_count < settings.small_corpus_threshold:
        return StrategyChoice(
            kinds=(StrategyKind.HIERARCHICAL,),
            reason=f"small corpus ({chars.item_count} items)",
        )

    if chars.item_count >= settings.large_corpus_threshold and chars.thematic_mixing:
        return StrategyChoice(
            kinds=(StrategyKind.TOPIC_MODEL,),
            reason=f"large thematically mixed corpus ({chars.item_count} items)",
        )

    kmeans_weight = profile.weight_for(StrategyKind.KMEANS)
    alternatives = [k for k in LEARNABLE_STRATEGIES if k != StrategyKind.KMEANS]
    best_alt = max(alternatives, key=lambda k: (profile.weight_for(k), -LEARNABLE_STRATEGIES.index(k)))
    if kmeans_weight < profile.weight_for(best_alt) - settings.strategy_weight_margin:
        return StrategyChoice(
            kinds=(best_alt,),
            reason=f"feedback favours {best_alt.value} over kmeans",
        )

    return StrategyChoice(kinds=(StrategyKind.KMEANS,), reason="default strategy")


class StrategySelector:
    """
    Run the selected clustering strategy with fallback.

    Example:
        >>> selector = StrategySelector()
        >>> clusters, meta = selector.structure(context)
        >>> meta.strategy, meta.rationale
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def structure(self, context: ClusteringContext) -> tuple[list[Cluster], ClusteringMetadata]:
        if context.size == 0:
            raise ClusteringFailure("selector", "no items to cluster")

        if context.size == 1:
            return single_cluster(StrategyKind.HIERARCHICAL, context, "single item")

        if self.settings.detect_sequential:
            analysis = detect_sequential_patterns([item.title for item in context.items])
            if analysis.preserve_order:
                return self._keep_sequence(context, analysis)

        chars = analyze_content(context)
        if chars.degenerate:
            return chunk_fallback(context, chars.degenerate_reason, degenerate=True)

        choice = select_strategy(chars, context.profile, self.settings)
        logger.info(f"Selected {'+'.join(k.value for k in choice.kinds)} for {context.size} items: {choice.reason}")

        tried: list[StrategyKind] = []
        timings: dict[str, float] = {}
        try:
            if choice.ensemble:
                return self._run_ensemble(context, choice, tried, timings)
            if choice.pinned:
                return self._run_pinned(context, chars, choice, tried, timings)

            clusters, metadata = self._run_one(choice.primary, context, tried, timings)
            return clusters, self._describe(metadata, choice.reason, tried, timings)

        except (ClusteringFailure, PhaseTimeout) as e:
            logger.warning(f"Clustering failed, using ordered chunks: {e}")
            return chunk_fallback(context, str(e), candidates_tried=tuple(tried), timings=timings)

    @staticmethod
    def _keep_sequence(
        context: ClusteringContext,
        analysis: ContentTypeAnalysis,
    ) -> tuple[list[Cluster], ClusteringMetadata]:
        """One cluster in course order; the balancer cuts it into sessions."""
        logger.info(f"Keeping {context.size} items in course order: {analysis.describe()}")
        clusters, metadata = single_cluster(
            StrategyKind.SEQUENTIAL,
            context,
            f"course order preserved for {analysis.describe()}",
        )
        return clusters, replace(metadata, confidence=analysis.confidence)

    def _run_pinned(
        self,
        context: ClusteringContext,
        chars: ContentCharacteristics,
        choice: StrategyChoice,
        tried: list[StrategyKind],
        timings: dict[str, float],
    ) -> tuple[list[Cluster], ClusteringMetadata]:
        """Run the profile's strategy; re-select without the pin when it fails or scores too low."""
        outcome = None
        try:
            outcome = self._run_one(choice.primary, context, tried, timings)
            quality = outcome[1].quality.overall
            if quality >= self.settings.min_acceptable_quality:
                return outcome[0], self._describe(outcome[1], choice.reason, tried, timings)
            problem = f"scored {quality:.2f}, below {self.settings.min_acceptable_quality:.2f}"
        except ClusteringFailure as e:
            problem = f"failed ({e.reason})"

        rechoice = select_strategy(chars, context.profile, self.settings, ignore_preference=True)
        logger.info(f"Preferred {choice.primary.value} {problem}, switching to {rechoice.primary.value}")
        reason = f"{choice.reason} but it {problem}; {rechoice.reason}"

        if rechoice.ensemble:
            return self._run_ensemble(context, replace(rechoice, reason=reason), tried, timings)
        if rechoice.primary == choice.primary:
            if outcome is None:
                raise ClusteringFailure(choice.primary.value, problem)
            clusters, metadata = outcome
        else:
            clusters, metadata = self._run_one(rechoice.primary, context, tried, timings)
        return clusters, self._describe(metadata, reason, tried, timings)

    def _run_one(
        self,
        kind: StrategyKind,
        context: ClusteringContext,
        tried: list[StrategyKind],
        timings: dict[str, float],
    ) -> tuple[list[Cluster], ClusteringMetadata]:
        tried.append(kind)
        started = context.budget.elapsed
        try:
            return run_strategy(kind, context)
        except ValueError as e:
            # scikit-learn rejects some degenerate inputs with ValueError
            raise ClusteringFailure(kind.value, str(e)) from e
        finally:
            timings[kind.value] = context.budget.elapsed - started

    def _run_ensemble(
        self,
        context: ClusteringContext,
        choice: StrategyChoice,
        tried: list[StrategyKind],
        timings: dict[str, float],
    ) -> tuple[list[Cluster], ClusteringMetadata]:
        results = []
        for kind in choice.kinds:
            try:
                results.append(self._run_one(kind, context, tried, timings))
            except ClusteringFailure as e:
                logger.warning(f"Ensemble member {kind.value} failed: {e.reason}")

        if not results:
            raise ClusteringFailure("ensemble", "every member failed")

        def weighted(result: tuple[list[Cluster], ClusteringMetadata]) -> float:
            metadata = result[1]
            return metadata.quality.overall * context.profile.weight_for(metadata.strategy)

        clusters, metadata = max(results, key=weighted)
        scores = ", ".join(f"{m.strategy.value}={weighted((c, m)):.3f}" for c, m in results)
        reason = f"{choice.reason}; best by weighted quality ({scores})"
        return clusters, self._describe(metadata, reason, tried, timings)

    @staticmethod
    def _describe(
        metadata: ClusteringMetadata,
        reason: str,
        tried: list[StrategyKind],
        timings: dict[str, float],
    ) -> ClusteringMetadata:
        return replace(
            metadata,
            rationale=f"{reason}; {metadata.rationale}",
            candidates_tried=tuple(tried),
            timings=dict(timings),
        )
