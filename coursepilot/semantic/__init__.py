"""
Lightweight text features for video titles.

- TF-IDF feature vectors with degenerate-corpus detection
- Cosine similarity matrix and diversity estimate
- Numbered-series detection (Lesson 1, Module 2, Chapter C...)

Technology:
- scikit-learn CountVectorizer and cosine_similarity
- numpy dense matrices (titles are short, vocabularies small)
"""

from coursepilot.semantic.featurizer import FeatureVector, FeaturizationResult, TextFeaturizer
from coursepilot.semantic.similarity_service import (
    SimilarityDistribution,
    SimilarityEngine,
    SimilarityMatrix,
)
from coursepilot.semantic.sequential_detection import (
    ContentType,
    ContentTypeAnalysis,
    detect_sequential_patterns,
)

__all__ = [
    # Features
    "TextFeaturizer",
    "FeatureVector",
    "FeaturizationResult",
    # Similarity
    "SimilarityEngine",
    "SimilarityMatrix",
    "SimilarityDistribution",
    # Title patterns
    "ContentType",
    "ContentTypeAnalysis",
    "detect_sequential_patterns",
]
