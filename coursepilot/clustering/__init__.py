"""
Clustering strategies and the hybrid selector.

- K-Means with silhouette/elbow search for k (scikit-learn)
- Agglomerative clustering with selectable linkage (scikit-learn)
- LDA topic model fitted by collapsed Gibbs sampling
- Ordered-chunk fallback for degenerate input and failures
"""

from coursepilot.clustering.base import ClusteringContext, compute_quality
from coursepilot.clustering.fallback import chunk_fallback, chunk_size
from coursepilot.clustering.hierarchical import HierarchicalStrategy
from coursepilot.clustering.kmeans import KMeansStrategy
from coursepilot.clustering.selector import (
    ContentCharacteristics,
    StrategyChoice,
    StrategySelector,
    analyze_content,
    run_strategy,
    select_strategy,
)
from coursepilot.clustering.topic_model import TopicModelStrategy

__all__ = [
    "ClusteringContext",
    "compute_quality",
    # Strategies
    "KMeansStrategy",
    "HierarchicalStrategy",
    "TopicModelStrategy",
    "chunk_fallback",
    "chunk_size",
    "run_strategy",
    # Selection
    "ContentCharacteristics",
    "StrategyChoice",
    "StrategySelector",
    "analyze_content",
    "select_strategy",
]
