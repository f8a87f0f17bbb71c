"""
Common clustering contract.

Every strategy takes a ClusteringContext and returns ``(clusters, metadata)``
or raises ClusteringFailure / InsufficientDataError / PhaseTimeout. The
helpers here turn raw label arrays into ordered Cluster objects and score
them with the same quality metrics whichever strategy produced them.

Quality:
    overall = 0.5 * (silhouette + 1) / 2 + 0.3 * intra + 0.2 * inter

References:
- Silhouette score: https://scikit-learn.org/stable/modules/clustering.html#silhouette-coefficient
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from loguru import logger
from sklearn.metrics import silhouette_score

from config import Settings, get_settings
from coursepilot.core.cancellation import PhaseBudget, unbounded
from coursepilot.core.models import (
    Cluster,
    ClusteringMetadata,
    QualityMetrics,
    StrategyKind,
    UserPreferenceProfile,
    VideoItem,
)
from coursepilot.semantic.featurizer import FeaturizationResult
from coursepilot.semantic.similarity_service import SimilarityMatrix


@dataclass
class ClusteringContext:
    """Everything a strategy needs for one run."""

    items: list[VideoItem]
    features: FeaturizationResult
    similarity: SimilarityMatrix
    profile: UserPreferenceProfile = field(default_factory=UserPreferenceProfile)
    settings: Settings = field(default_factory=get_settings)
    budget: PhaseBudget = field(default_factory=lambda: unbounded("clustering"))

    @property
    def size(self) -> int:
        return len(self.items)


def canonical_labels(labels: np.ndarray | list[int]) -> np.ndarray:
    """Renumber labels 0..k-1 in order of first appearance."""
    mapping: dict[int, int] = {}
    out = np.empty(len(labels), dtype=int)
    for i, label in enumerate(labels):
        label = int(label)
        if label not in mapping:
            mapping[label] = len(mapping)
        out[i] = mapping[label]
    return out


def labels_to_clusters(labels: np.ndarray, context: ClusteringContext) -> list[Cluster]:
    """Build clusters ordered by their first member, members in input order."""
    labels = canonical_labels(labels)
    clusters = []
    for label in range(int(labels.max()) + 1 if len(labels) else 0):
        indices = tuple(int(i) for i in np.flatnonzero(labels == label))
        clusters.append(
            Cluster(
                indices=indices,
                member_ids=tuple(context.items[i].id for i in indices),
                representative_terms=context.features.terms_for(indices),
                cohesion=context.similarity.mean_within(indices),
            )
        )
    return clusters


def enforce_min_size(
    labels: np.ndarray,
    similarity: SimilarityMatrix,
    min_size: int,
) -> np.ndarray:
    """Merge clusters below min_size into their most similar neighbour."""
    labels = canonical_labels(labels)
    if min_size <= 1:
        return labels

    while True:
        groups = {
            int(label): list(np.flatnonzero(labels == label))
            for label in np.unique(labels)
        }
        if len(groups) < 2:
            break
        small = [label for label, members in groups.items() if len(members) < min_size]
        if not small:
            break

        victim = min(small, key=lambda label: (len(groups[label]), groups[label][0]))
        others = [label for label in groups if label != victim]
        target = max(
            others,
            key=lambda label: (similarity.mean_between(groups[victim], groups[label]), -label),
        )
        labels[labels == victim] = target
        labels = canonical_labels(labels)

    return labels


def safe_silhouette(distance: np.ndarray, labels: np.ndarray) -> float:
    """Silhouette on a precomputed distance matrix, 0.0 where undefined."""
    n_labels = len(np.unique(labels))
    if n_labels < 2 or n_labels > len(labels) - 1:
        return 0.0
    return float(silhouette_score(distance, labels, metric="precomputed"))


def compute_quality(
    labels: np.ndarray,
    similarity: SimilarityMatrix,
    wcss: float | None = None,
    perplexity: float | None = None,
) -> QualityMetrics:
    """Score a labelling with strategy-independent metrics."""
    labels = np.asarray(labels)
    n = len(labels)
    if n == 0:
        return QualityMetrics(wcss=wcss, perplexity=perplexity)

    values = similarity.values
    same = labels[:, None] == labels[None, :]
    off_diagonal = ~np.eye(n, dtype=bool)

    within = values[same & off_diagonal]
    between = values[~same]
    intra = float(within.mean()) if within.size else 0.0
    inter = float(1.0 - between.mean()) if between.size else 0.0
    silhouette = safe_silhouette(similarity.distance(), labels)

    overall = 0.5 * (silhouette + 1) / 2 + 0.3 * intra + 0.2 * inter
    return QualityMetrics(
        silhouette=silhouette,
        intra_cluster_similarity=intra,
        inter_cluster_separation=inter,
        overall=float(np.clip(overall, 0.0, 1.0)),
        wcss=wcss,
        perplexity=perplexity,
    )


def build_metadata(
    strategy: StrategyKind,
    labels: np.ndarray,
    quality: QualityMetrics,
    rationale: str,
    context: ClusteringContext,
) -> ClusteringMetadata:
    return ClusteringMetadata(
        strategy=strategy,
        quality=quality,
        confidence=quality.overall,
        rationale=rationale,
        cluster_count=len(np.unique(labels)) if len(labels) else 0,
        similarity_threshold=context.profile.similarity_threshold,
        candidates_tried=(strategy,),
        timings={strategy.value: context.budget.elapsed},
    )


def finalize(
    strategy: StrategyKind,
    labels: np.ndarray,
    context: ClusteringContext,
    rationale: str,
    wcss: float | None = None,
    perplexity: float | None = None,
) -> tuple[list[Cluster], ClusteringMetadata]:
    """Apply the profile's minimum size, then score and package the labels."""
    labels = enforce_min_size(labels, context.similarity, context.profile.min_cluster_size)
    quality = compute_quality(labels, context.similarity, wcss=wcss, perplexity=perplexity)
    clusters = labels_to_clusters(labels, context)

    logger.debug(
        f"{strategy.value}: {len(clusters)} clusters, "
        f"silhouette={quality.silhouette:.3f} overall={quality.overall:.3f}"
    )
    return clusters, build_metadata(strategy, labels, quality, rationale, context)


def single_cluster(
    strategy: StrategyKind,
    context: ClusteringContext,
    rationale: str,
) -> tuple[list[Cluster], ClusteringMetadata]:
    """Everything in one cluster, used for trivial or undiversified input."""
    labels = np.zeros(context.size, dtype=int)
    quality = compute_quality(labels, context.similarity)
    return labels_to_clusters(labels, context), build_metadata(
        strategy, labels, quality, rationale, context
    )
