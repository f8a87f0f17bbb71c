"""
Agglomerative clustering cut by a similarity threshold or a cluster count.
"""

from __future__ import annotations

import math

import numpy as np
from sklearn.cluster import AgglomerativeClustering

from coursepilot.clustering.base import ClusteringContext, finalize, single_cluster
from coursepilot.core.models import Cluster, ClusteringMetadata, StrategyKind


class HierarchicalStrategy:
    """Bottom-up merging with single, complete, average or Ward linkage."""

    kind = StrategyKind.HIERARCHICAL

    def cluster(
        self,
        context: ClusteringContext,
        n_clusters: int | None = None,
        threshold: float | None = None,
        linkage: str | None = None,
    ) -> tuple[list[Cluster], ClusteringMetadata]:
        n = context.size
        if n < 2:
            return single_cluster(self.kind, context, "single item, nothing to merge")

        linkage = linkage or context.settings.hierarchical_linkage
        threshold = context.profile.similarity_threshold if threshold is None else threshold
        context.budget.check()

        if n_clusters is not None:
            n_clusters = max(1, min(n_clusters, n))
            cut = {"n_clusters": n_clusters}
            reason = f"{linkage} linkage cut at {n_clusters} clusters"
        else:
            cut = {"n_clusters": None, "distance_threshold": self._distance_threshold(threshold, linkage)}
            reason = f"{linkage} linkage cut at similarity {threshold:.2f}"

        if linkage == "ward":
            # Ward needs Euclidean input; on unit vectors d = sqrt(2 * (1 - cos))
            model = AgglomerativeClustering(linkage="ward", metric="euclidean", **cut)
            labels = model.fit_predict(context.features.normalized_matrix())
        else:
            model = AgglomerativeClustering(linkage=linkage, metric="precomputed", **cut)
            labels = model.fit_predict(context.similarity.distance())

        context.budget.check()
        k = len(np.unique(labels))
        return finalize(self.kind, labels, context, f"{reason}: {k} clusters")

    @staticmethod
    def _distance_threshold(similarity_threshold: float, linkage: str) -> float:
        distance = 1.0 - similarity_threshold
        if linkage == "ward":
            return math.sqrt(2.0 * distance)
        return distance
