"""
Rule-based fallback: fixed-size chunks in original order.

Used when input is degenerate or every statistical strategy failed or
ran out of time. It cannot fail for non-empty input.
"""

from __future__ import annotations

import numpy as np
from loguru import logger

from coursepilot.clustering.base import ClusteringContext, compute_quality, labels_to_clusters
from coursepilot.core.models import Cluster, ClusteringMetadata, StrategyKind

FALLBACK_CONFIDENCE = 0.2


def chunk_size(n: int) -> int:
    """Items per chunk, growing with the course length."""
    if n <= 20:
        size = n // 3
    elif n <= 50:
        size = n // 5
    elif n <= 100:
        size = n // 7
    else:
        size = n // 10
    return max(size, 1)


def chunk_labels(n: int) -> np.ndarray:
    size = chunk_size(n)
    return np.arange(n) // size


def chunk_fallback(
    context: ClusteringContext,
    reason: str,
    degenerate: bool = False,
    candidates_tried: tuple[StrategyKind, ...] = (),
    timings: dict[str, float] | None = None,
) -> tuple[list[Cluster], ClusteringMetadata]:
    """Chunk the items in order and describe why in the metadata."""
    n = context.size
    labels = chunk_labels(n)
    quality = compute_quality(labels, context.similarity)
    clusters = labels_to_clusters(labels, context)

    rationale = f"degenerate input: {reason}" if degenerate else f"fallback to ordered chunks: {reason}"
    logger.warning(f"Chunk fallback for {n} items ({len(clusters)} chunks): {rationale}")

    metadata = ClusteringMetadata(
        strategy=StrategyKind.FALLBACK,
        quality=quality,
        confidence=FALLBACK_CONFIDENCE,
        rationale=rationale,
        cluster_count=len(clusters),
        is_fallback=True,
        degenerate_input=degenerate,
        similarity_threshold=context.profile.similarity_threshold,
        candidates_tried=candidates_tried + (StrategyKind.FALLBACK,),
        timings=dict(timings or {}),
    )
    return clusters, metadata
