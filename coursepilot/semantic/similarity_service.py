"""
Similarity Engine - Pairwise cosine similarity between title feature vectors.

Similarity is scikit-learn's cosine_similarity over the dense TF-IDF
matrix (zero rows stay zero). Scores are clipped to [0, 1] with a
diagonal of 1.

Degenerate corpora get a uniform matrix (no pair is similar) so callers
can still run without special-casing.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from loguru import logger
from sklearn.metrics.pairwise import cosine_similarity

from coursepilot.core.cancellation import PhaseBudget
from coursepilot.semantic.featurizer import FeaturizationResult


@dataclass
class SimilarityDistribution:
    """Summary of off-diagonal similarities, used as the diversity estimate."""

    mean: float
    std: float
    min: float
    max: float

    @property
    def has_clear_clusters(self) -> bool:
        """Bimodal-looking spread: some pairs very similar, others not at all."""
        return self.std > 0.2 and (self.max - self.min) > 0.4


class SimilarityMatrix:
    """Symmetric N x N similarity scores with a unit diagonal."""

    def __init__(self, values: np.ndarray):
        self.values = values

    def __len__(self) -> int:
        return self.values.shape[0]

    def get(self, i: int, j: int) -> float:
        return float(self.values[i, j])

    def pairwise_values(self) -> np.ndarray:
        """Upper-triangle (i < j) similarities as a flat array."""
        n = len(self)
        if n < 2:
            return np.zeros(0)
        rows, cols = np.triu_indices(n, k=1)
        return self.values[rows, cols]

    def distance(self) -> np.ndarray:
        """Cosine distance matrix with an exact zero diagonal."""
        dist = 1.0 - self.values
        np.fill_diagonal(dist, 0.0)
        return np.clip(dist, 0.0, 1.0)

    def mean_between(self, a: list[int] | tuple[int, ...], b: list[int] | tuple[int, ...]) -> float:
        """Mean similarity between two groups of items."""
        if not a or not b:
            return 0.0
        return float(self.values[np.ix_(list(a), list(b))].mean())

    def mean_within(self, group: list[int] | tuple[int, ...]) -> float:
        """Mean pairwise similarity inside a group (1.0 for singletons)."""
        if len(group) < 2:
            return 1.0
        block = self.values[np.ix_(list(group), list(group))]
        n = len(group)
        return float((block.sum() - n) / (n * (n - 1)))

    def distribution(self) -> SimilarityDistribution:
        pairs = self.pairwise_values()
        if pairs.size == 0:
            return SimilarityDistribution(mean=1.0, std=0.0, min=1.0, max=1.0)
        return SimilarityDistribution(
            mean=float(pairs.mean()),
            std=float(pairs.std()),
            min=float(pairs.min()),
            max=float(pairs.max()),
        )


class SimilarityEngine:
    """
    Compute cosine similarity matrices from featurized titles.

    Example:
        >>> features = TextFeaturizer().featurize(titles)
        >>> matrix = SimilarityEngine().compute(features)
        >>> matrix.get(0, 1)
    """

    def compute(self, features: FeaturizationResult, budget: PhaseBudget | None = None) -> SimilarityMatrix:
        n = features.size
        if n == 0:
            return SimilarityMatrix(np.zeros((0, 0)))

        if features.degenerate or n == 1 or features.matrix.shape[1] == 0:
            logger.debug(f"Uniform similarity for {n} titles without usable features")
            return self.uniform(n)

        values = np.clip(cosine_similarity(features.matrix), 0.0, 1.0)
        # Enforce exact symmetry against floating point drift
        values = (values + values.T) / 2.0
        np.fill_diagonal(values, 1.0)
        if budget is not None:
            budget.check()

        logger.debug(f"Computed {n}x{n} similarity matrix")
        return SimilarityMatrix(values)

    @staticmethod
    def uniform(n: int) -> SimilarityMatrix:
        values = np.zeros((n, n))
        np.fill_diagonal(values, 1.0)
        return SimilarityMatrix(values)
