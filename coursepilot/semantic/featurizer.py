"""
Text Featurizer - Turn video titles into TF-IDF feature vectors.

Lightweight statistical features only: lowercase, strip punctuation and
stop-words, tokenize, then weight each term by tf x idf where
tf = count / document length and idf = ln(N / df).

Terms present in every title get an idf of zero, so shared playlist
prefixes ("Course Name - ...") drop out on their own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import numpy as np
from loguru import logger
from sklearn.feature_extraction.text import CountVectorizer

from config import get_settings
from coursepilot.core.cancellation import PhaseBudget

STOP_WORDS = frozenset(
    """
    a an and are as at be by for from has he in is it its of on that the to was
    will with this but they have had what said each which she do how their if up
    out many then them these so some her would make like into him time two more
    go no way could my than first been call who now find down day did get come
    made may part you your our we can all about just video lecture episode
    """.split()
)

_TOKEN_RE = re.compile(r"[^\w\s]+", re.UNICODE)


def _pretokenized(tokens: list[str]) -> list[str]:
    return tokens


@dataclass
class FeatureVector:
    """Sparse mapping term -> TF-IDF weight for a single title."""

    weights: dict[str, float] = field(default_factory=dict)


@dataclass
class FeaturizationResult:
    """Feature vectors plus the corpus vocabulary they are expressed in."""

    vectors: list[FeatureVector]
    vocabulary: list[str]
    matrix: np.ndarray  # N x V dense TF-IDF
    tokens: list[list[str]]
    degenerate: bool = False
    degenerate_reason: str = ""

    @classmethod
    def blank(cls, n: int, degenerate: bool = False, reason: str = "") -> FeaturizationResult:
        """N documents without any features."""
        return cls(
            vectors=[FeatureVector() for _ in range(n)],
            vocabulary=[],
            matrix=np.zeros((n, 0)),
            tokens=[[] for _ in range(n)],
            degenerate=degenerate,
            degenerate_reason=reason,
        )

    @property
    def size(self) -> int:
        return len(self.vectors)

    def normalized_matrix(self) -> np.ndarray:
        """Rows scaled to unit length; zero rows stay zero."""
        norms = np.linalg.norm(self.matrix, axis=1, keepdims=True)
        safe = np.where(norms == 0, 1.0, norms)
        return self.matrix / safe

    def corpus_keywords(self, n: int = 10) -> list[tuple[str, float]]:
        """Mean TF-IDF weight per term across the corpus, strongest first."""
        if not self.vocabulary or self.size == 0:
            return []
        means = self.matrix.mean(axis=0)
        order = sorted(range(len(self.vocabulary)), key=lambda j: (-means[j], self.vocabulary[j]))
        return [(self.vocabulary[j], float(means[j])) for j in order[:n] if means[j] > 0]

    def terms_for(self, indices: list[int] | tuple[int, ...], n: int = 3) -> tuple[str, ...]:
        """Top terms of the summed vectors of a group of documents."""
        if not indices or not self.vocabulary:
            return ()
        summed = self.matrix[list(indices)].sum(axis=0)
        order = sorted(range(len(self.vocabulary)), key=lambda j: (-summed[j], self.vocabulary[j]))
        return tuple(self.vocabulary[j] for j in order[:n] if summed[j] > 0)


class TextFeaturizer:
    """
    Build TF-IDF vectors for a corpus of titles.

    Counting and the vocabulary come from scikit-learn's CountVectorizer
    over our own tokens; the weighting is done in numpy because the
    library's idf carries a +1 offset.

    Example:
        >>> result = TextFeaturizer().featurize(["Intro to TCP", "TCP handshakes"])
        >>> result.vocabulary
        ['handshakes', 'intro', 'tcp']
    """

    def __init__(
        self,
        max_features: int | None = None,
        min_token_length: int | None = None,
        stop_words: frozenset[str] = STOP_WORDS,
    ):
        settings = get_settings()
        self.max_features = max_features or settings.max_vocabulary
        self.min_token_length = min_token_length or settings.min_token_length
        self.stop_words = stop_words

    def tokenize(self, text: str) -> list[str]:
        """Lowercase, strip punctuation and stop-words, keep alphabetic tokens."""
        normalized = _TOKEN_RE.sub(" ", text.lower()).replace("_", " ")
        return [
            token
            for token in normalized.split()
            if len(token) >= self.min_token_length
            and token not in self.stop_words
            and any(c.isalpha() for c in token)
        ]

    def featurize(self, titles: list[str], budget: PhaseBudget | None = None) -> FeaturizationResult:
        """Compute TF-IDF vectors and flag degenerate corpora."""
        tokens = [self.tokenize(title) for title in titles]
        n_docs = len(tokens)
        if budget is not None:
            budget.check()

        if not any(tokens):
            degenerate = n_docs >= 2
            reason = "at most one distinct token" if degenerate else ""
            if degenerate:
                logger.warning(f"Degenerate input for {n_docs} titles: {reason}")
            result = FeaturizationResult.blank(n_docs, degenerate, reason)
            result.tokens = tokens
            return result

        vectorizer = CountVectorizer(analyzer=_pretokenized)
        counts = vectorizer.fit_transform(tokens).toarray().astype(np.float64)
        terms = vectorizer.get_feature_names_out()
        if budget is not None:
            budget.check()

        lengths = counts.sum(axis=1, keepdims=True)
        tf = counts / np.where(lengths == 0, 1.0, lengths)
        document_frequency = (counts > 0).sum(axis=0)
        idf = np.log(n_docs / document_frequency)
        weights = tf * idf

        keep = self._select_vocabulary(weights, document_frequency)
        matrix = weights[:, keep]
        present = counts[:, keep] > 0
        vocabulary = [str(term) for term in terms[keep]]

        vectors = [
            FeatureVector({vocabulary[j]: float(matrix[i, j]) for j in np.flatnonzero(present[i])})
            for i in range(n_docs)
        ]

        degenerate, reason = self._detect_degenerate(n_docs, document_frequency, matrix)
        if degenerate:
            logger.warning(f"Degenerate input for {n_docs} titles: {reason}")
        else:
            logger.debug(f"Featurized {n_docs} titles over {len(vocabulary)} terms")

        return FeaturizationResult(
            vectors=vectors,
            vocabulary=vocabulary,
            matrix=matrix,
            tokens=tokens,
            degenerate=degenerate,
            degenerate_reason=reason,
        )

    def _select_vocabulary(self, weights: np.ndarray, document_frequency: np.ndarray) -> np.ndarray:
        """Column indices of the strongest terms, in vocabulary order."""
        n_terms = weights.shape[1]
        if n_terms <= self.max_features:
            return np.arange(n_terms)
        totals = weights.sum(axis=0)
        # Summed weight, then document frequency, then term order
        ranked = np.lexsort((np.arange(n_terms), -document_frequency, -totals))
        return np.sort(ranked[: self.max_features])

    @staticmethod
    def _detect_degenerate(
        n_docs: int,
        document_frequency: np.ndarray,
        matrix: np.ndarray,
    ) -> tuple[bool, str]:
        if n_docs < 2:
            return False, ""
        if len(document_frequency) <= 1:
            return True, "at most one distinct token"
        if document_frequency.max() < 2:
            return True, "no token shared between titles"
        if not np.any(matrix):
            return True, "all feature vectors are zero"
        return False, ""
