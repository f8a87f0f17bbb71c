"""
Topic-model clustering (Latent Dirichlet Allocation).

Fits LDA with collapsed Gibbs sampling over the featurizer's vocabulary
and assigns every title to its dominant topic. A handful of topic counts
around sqrt(N / 2) are tried; the one with the best UMass coherence wins
and perplexity breaks ties.

Titles are short, so the model is small: a few hundred tokens at most
for typical playlists. Sampling runs in plain numpy with a seeded
Generator, which keeps results reproducible.

References:
- Griffiths & Steyvers (2004), Finding scientific topics
- Mimno et al. (2011), Optimizing semantic coherence in topic models (UMass)
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from loguru import logger

from coursepilot.clustering.base import ClusteringContext, finalize
from coursepilot.core.cancellation import PhaseBudget, unbounded
from coursepilot.core.errors import InsufficientDataError
from coursepilot.core.models import Cluster, ClusteringMetadata, StrategyKind

COHERENCE_TOP_WORDS = 5


@dataclass
class TopicFit:
    """One fitted LDA model."""

    n_topics: int
    doc_topic: np.ndarray  # D x K, rows sum to 1
    topic_word: np.ndarray  # K x V, rows sum to 1
    coherence: float
    perplexity: float


class GibbsLDA:
    """Collapsed Gibbs sampler for LDA over integer-encoded documents."""

    def __init__(
        self,
        n_topics: int,
        alpha: float = 0.1,
        beta: float = 0.01,
        iterations: int = 60,
        seed: int = 42,
    ):
        self.n_topics = n_topics
        self.alpha = alpha
        self.beta = beta
        self.iterations = iterations
        self.seed = seed

    def fit(
        self,
        documents: list[list[int]],
        vocab_size: int,
        budget: PhaseBudget | None = None,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Return (doc_topic, topic_word) distributions."""
        budget = budget or unbounded("topic_model")
        rng = np.random.default_rng(self.seed)
        k, v = self.n_topics, vocab_size

        doc_topic = np.zeros((len(documents), k))
        topic_word = np.zeros((k, v))
        topic_total = np.zeros(k)
        assignments = []
        for d, doc in enumerate(documents):
            topics = rng.integers(0, k, size=len(doc))
            assignments.append(topics)
            for w, z in zip(doc, topics):
                doc_topic[d, z] += 1
                topic_word[z, w] += 1
                topic_total[z] += 1

        v_beta = v * self.beta
        for _ in range(self.iterations):
            budget.check()
            for d, doc in enumerate(documents):
                topics = assignments[d]
                draws = rng.random(len(doc))
                for i, w in enumerate(doc):
                    z = topics[i]
                    doc_topic[d, z] -= 1
                    topic_word[z, w] -= 1
                    topic_total[z] -= 1

                    weights = (doc_topic[d] + self.alpha) * (topic_word[:, w] + self.beta) / (topic_total + v_beta)
                    cumulative = np.cumsum(weights)
                    z = int(np.searchsorted(cumulative, draws[i] * cumulative[-1], side="right"))
                    z = min(z, k - 1)

                    topics[i] = z
                    doc_topic[d, z] += 1
                    topic_word[z, w] += 1
                    topic_total[z] += 1

        theta = (doc_topic + self.alpha) / (doc_topic.sum(axis=1, keepdims=True) + k * self.alpha)
        phi = (topic_word + self.beta) / (topic_total[:, None] + v_beta)
        return theta, phi


def umass_coherence(topic_word: np.ndarray, documents: list[list[int]], top_n: int = COHERENCE_TOP_WORDS) -> float:
    """Mean UMass coherence of each topic's top words (higher is better)."""
    present = [set(doc) for doc in documents]
    scores = []
    for topic in topic_word:
        top = [int(w) for w in np.argsort(-topic, kind="stable")[:top_n]]
        pair_scores = []
        for i in range(1, len(top)):
            for j in range(i):
                df_j = sum(1 for doc in present if top[j] in doc)
                co = sum(1 for doc in present if top[i] in doc and top[j] in doc)
                if df_j:
                    pair_scores.append(math.log((co + 1) / df_j))
        if pair_scores:
            scores.append(sum(pair_scores) / len(pair_scores))
    return float(np.mean(scores)) if scores else float("-inf")


def perplexity(doc_topic: np.ndarray, topic_word: np.ndarray, documents: list[list[int]]) -> float:
    log_likelihood = 0.0
    tokens = 0
    for d, doc in enumerate(documents):
        if not doc:
            continue
        probs = doc_topic[d] @ topic_word[:, doc]
        log_likelihood += float(np.log(probs).sum())
        tokens += len(doc)
    if tokens == 0:
        return float("inf")
    return math.exp(-log_likelihood / tokens)


class TopicModelStrategy:
    """Group titles by their dominant LDA topic."""

    kind = StrategyKind.TOPIC_MODEL

    def cluster(
        self,
        context: ClusteringContext,
        n_topics: int | None = None,
    ) -> tuple[list[Cluster], ClusteringMetadata]:
        settings = context.settings
        documents = self._encode(context)
        non_empty = sum(1 for doc in documents if doc)
        if non_empty < settings.lda_min_documents:
            raise InsufficientDataError(
                self.kind.value,
                f"{non_empty} titles with usable terms, need {settings.lda_min_documents}",
            )

        vocab_size = len(context.features.vocabulary)
        candidates = [n_topics] if n_topics else self._candidate_topic_counts(non_empty, settings.lda_max_topics)

        fits = []
        for k in candidates:
            lda = GibbsLDA(
                n_topics=k,
                alpha=settings.lda_alpha,
                beta=settings.lda_beta,
                iterations=settings.lda_iterations,
                seed=settings.random_seed,
            )
            theta, phi = lda.fit(documents, vocab_size, context.budget)
            fit = TopicFit(
                n_topics=k,
                doc_topic=theta,
                topic_word=phi,
                coherence=umass_coherence(phi, documents),
                perplexity=perplexity(theta, phi, documents),
            )
            fits.append(fit)
            logger.debug(f"LDA k={k}: coherence={fit.coherence:.4f} perplexity={fit.perplexity:.2f}")

        best = max(fits, key=lambda f: (round(f.coherence, 9), -f.perplexity, -f.n_topics))
        labels = self._dominant_topics(best.doc_topic, documents)
        reason = (
            f"{best.n_topics} topics chosen by UMass coherence {best.coherence:.3f} "
            f"(perplexity {best.perplexity:.1f})"
        )
        return finalize(self.kind, labels, context, reason, perplexity=best.perplexity)

    @staticmethod
    def _encode(context: ClusteringContext) -> list[list[int]]:
        index = {term: j for j, term in enumerate(context.features.vocabulary)}
        return [[index[t] for t in tokens if t in index] for tokens in context.features.tokens]

    @staticmethod
    def _candidate_topic_counts(n_docs: int, max_topics: int) -> list[int]:
        center = max(2, round(math.sqrt(n_docs / 2)))
        upper = max(2, min(max_topics, n_docs - 1))
        return sorted({min(max(2, c), upper) for c in (center - 1, center, center + 1)})

    @staticmethod
    def _dominant_topics(doc_topic: np.ndarray, documents: list[list[int]]) -> np.ndarray:
        """argmax topic per title; titles without terms follow their predecessor."""
        labels = np.full(len(documents), -1, dtype=int)
        for d, doc in enumerate(documents):
            if doc:
                labels[d] = int(np.argmax(doc_topic[d]))

        first_known = next(int(label) for label in labels if label >= 0)
        previous = first_known
        for d in range(len(labels)):
            if labels[d] < 0:
                labels[d] = previous
            previous = labels[d]
        return labels
