"""
K-Means clustering of video titles.

Runs scikit-learn K-Means (k-means++ seeding) on L2-normalised TF-IDF rows,
searching k over a bounded range. The k with the best silhouette wins;
when no k has a positive silhouette the elbow of the WCSS curve is used.
"""

from __future__ import annotations

import math

import numpy as np
from loguru import logger
from sklearn.cluster import KMeans

from coursepilot.clustering.base import ClusteringContext, finalize, safe_silhouette, single_cluster
from coursepilot.core.errors import InsufficientDataError
from coursepilot.core.models import Cluster, ClusteringMetadata, StrategyKind


def elbow_k(ks: list[int], wcss: list[float]) -> int:
    """Pick the k where the WCSS curve bends the most."""
    if len(ks) < 3:
        return ks[0]
    bends = [wcss[i - 1] - 2 * wcss[i] + wcss[i + 1] for i in range(1, len(ks) - 1)]
    return ks[1 + int(np.argmax(bends))]


class KMeansStrategy:
    """
    Cluster titles with K-Means and a silhouette/elbow search for k.

    Example:
        >>> clusters, meta = KMeansStrategy().cluster(context)
        >>> meta.quality.silhouette
    """

    kind = StrategyKind.KMEANS

    def cluster(
        self,
        context: ClusteringContext,
        k: int | None = None,
    ) -> tuple[list[Cluster], ClusteringMetadata]:
        n = context.size
        if n == 0:
            raise InsufficientDataError(self.kind.value, "no items to cluster")

        points = context.features.normalized_matrix()
        distinct = len(np.unique(points.round(12), axis=0)) if points.shape[1] else 1
        if distinct < 2:
            return single_cluster(self.kind, context, "insufficient diversity: fewer than 2 distinct titles")

        if k is not None:
            candidates = [max(1, min(k, distinct))]
        else:
            candidates = self._candidate_ks(context, n, distinct)

        settings = context.settings
        distance = context.similarity.distance()
        results = []
        for candidate in candidates:
            context.budget.check()
            model = KMeans(
                n_clusters=candidate,
                init="k-means++",
                n_init=settings.kmeans_n_init,
                max_iter=settings.kmeans_max_iter,
                random_state=settings.random_seed,
            )
            labels = model.fit_predict(points)
            silhouette = safe_silhouette(distance, labels)
            results.append((candidate, labels, float(model.inertia_), silhouette))
            logger.debug(f"K-Means k={candidate}: wcss={model.inertia_:.4f} silhouette={silhouette:.4f}")

        best = max(results, key=lambda r: (r[3], -r[0]))
        if best[3] > 0:
            reason = f"k={best[0]} chosen by silhouette {best[3]:.3f} over k in {candidates[0]}..{candidates[-1]}"
        else:
            chosen = elbow_k([r[0] for r in results], [r[2] for r in results])
            best = next(r for r in results if r[0] == chosen)
            reason = f"k={chosen} chosen by WCSS elbow (no positive silhouette)"

        if best[0] < (k or best[0]):
            reason += f"; k reduced to {best[0]} distinct points"

        return finalize(self.kind, best[1], context, reason, wcss=best[2])

    @staticmethod
    def _candidate_ks(context: ClusteringContext, n: int, distinct: int) -> list[int]:
        upper = min(context.settings.kmeans_max_k, distinct, n - 1)
        if upper < 2:
            # Two items: nothing to search, each is its own cluster
            return [min(distinct, n)]
        lower = max(2, math.ceil(n / context.profile.max_cluster_size))
        lower = min(lower, upper)
        return list(range(lower, upper + 1))
