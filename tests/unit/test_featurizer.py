"""
Unit tests for the Text Featurizer and Similarity Engine.

Tests tokenization, TF-IDF weighting, degenerate corpus detection and
the cosine similarity matrix built on top of the features.
"""
import numpy as np
import pytest

from coursepilot.core.cancellation import PhaseBudget
from coursepilot.core.errors import PhaseTimeout
from coursepilot.semantic.featurizer import FeaturizationResult, TextFeaturizer
from coursepilot.semantic.similarity_service import SimilarityEngine


class TestTextFeaturizer:
    """Tests for TextFeaturizer class."""

    @pytest.fixture
    def featurizer(self):
        return TextFeaturizer()

    def test_tokenize_drops_stop_words_short_tokens_and_punctuation(self, featurizer):
        assert featurizer.tokenize("Intro to TCP/IP: Part 2!") == ["intro", "tcp"]

    def test_vocabulary_is_sorted_and_includes_shared_terms(self, featurizer):
        result = featurizer.featurize(["Intro to TCP", "TCP handshakes"])

        assert result.vocabulary == ["handshakes", "intro", "tcp"]
        assert result.matrix.shape == (2, 3)

    def test_term_in_every_title_gets_zero_weight(self, featurizer):
        result = featurizer.featurize(["Intro to TCP", "TCP handshakes"])

        tcp = result.vocabulary.index("tcp")
        assert np.all(result.matrix[:, tcp] == 0)
        assert result.vectors[0].weights["intro"] > 0

    def test_tf_idf_weight_matches_formula(self, featurizer):
        result = featurizer.featurize(["routing tables", "routing protocols", "switching"])

        # tf = 1/2, idf = ln(3 / 1)
        assert result.vectors[0].weights["tables"] == pytest.approx(0.5 * np.log(3))
        assert result.vectors[0].weights["routing"] == pytest.approx(0.5 * np.log(3 / 2))

    def test_vocabulary_cap_keeps_strongest_terms(self):
        titles = ["alpha beta gamma", "alpha delta epsilon", "alpha zeta theta"]

        result = TextFeaturizer(max_features=2).featurize(titles)

        assert len(result.vocabulary) == 2
        assert "alpha" not in result.vocabulary  # idf 0, weakest term

    def test_empty_titles_do_not_crash(self, featurizer):
        result = featurizer.featurize(["", "", ""])

        assert result.size == 3
        assert result.degenerate
        assert not result.matrix.any()

    def test_identical_titles_are_degenerate(self, featurizer):
        result = featurizer.featurize(["TCP basics"] * 4)

        assert result.degenerate
        assert "zero" in result.degenerate_reason

    def test_no_shared_vocabulary_is_degenerate(self, featurizer):
        result = featurizer.featurize(["apples oranges", "bicycles trains", "violins pianos"])

        assert result.degenerate
        assert result.degenerate_reason == "no token shared between titles"

    def test_single_title_is_not_degenerate(self, featurizer):
        result = featurizer.featurize(["Only one video"])

        assert not result.degenerate

    def test_terms_for_group(self, featurizer):
        result = featurizer.featurize(["ospf routing", "bgp routing", "tcp windows", "tcp congestion"])

        assert set(result.terms_for([0, 1], n=3)) == {"ospf", "bgp", "routing"}
        assert result.terms_for([]) == ()

    def test_corpus_keywords_strongest_first(self, featurizer):
        result = featurizer.featurize(["ospf routing", "bgp routing", "tcp windows", "tcp congestion"])

        keywords = result.corpus_keywords(3)
        weights = [w for _, w in keywords]
        assert weights == sorted(weights, reverse=True)
        assert all(w > 0 for w in weights)


class TestFeatureWeights:
    """Tests for weights derived from scikit-learn term counts."""

    def test_weights_match_counts_from_count_vectorizer(self):
        from sklearn.feature_extraction.text import CountVectorizer

        titles = ["tcp congestion window", "tcp congestion control", "ospf routing area"]
        featurizer = TextFeaturizer()
        result = featurizer.featurize(titles)

        tokens = [featurizer.tokenize(t) for t in titles]
        counts = CountVectorizer(analyzer=lambda doc: doc).fit_transform(tokens).toarray()
        df = (counts > 0).sum(axis=0)
        expected = counts / counts.sum(axis=1, keepdims=True) * np.log(len(titles) / df)
        np.testing.assert_array_almost_equal(result.matrix, expected)

    def test_vectors_hold_only_present_terms(self):
        result = TextFeaturizer().featurize(["tcp congestion window", "ospf routing area", "tcp routing"])

        assert set(result.vectors[0].weights) == {"tcp", "congestion", "window"}

    def test_expired_budget_raises_phase_timeout(self):
        budget = PhaseBudget("featurize", 0.0)

        with pytest.raises(PhaseTimeout):
            TextFeaturizer().featurize(["tcp congestion", "ospf routing"], budget)

    def test_blank_result_has_no_columns(self):
        result = FeaturizationResult.blank(3)

        assert result.matrix.shape == (3, 0)
        assert result.corpus_keywords() == []
        assert not result.degenerate


class TestSimilarityEngine:
    """Tests for SimilarityEngine and SimilarityMatrix."""

    @pytest.fixture
    def matrix(self):
        titles = ["tcp congestion window", "tcp congestion control", "ospf routing area", "ospf routing metric"]
        features = TextFeaturizer().featurize(titles)
        return SimilarityEngine().compute(features)

    def test_matrix_is_symmetric_with_unit_diagonal(self, matrix):
        values = matrix.values

        np.testing.assert_array_almost_equal(values, values.T)
        np.testing.assert_array_almost_equal(np.diag(values), np.ones(4))
        assert values.min() >= 0.0
        assert values.max() <= 1.0

    def test_related_titles_are_more_similar(self, matrix):
        assert matrix.get(0, 1) > matrix.get(0, 2)
        assert matrix.get(2, 3) > matrix.get(1, 3)

    def test_pairwise_values_cover_upper_triangle(self, matrix):
        assert len(matrix.pairwise_values()) == 6

    def test_single_item_matrix(self):
        features = TextFeaturizer().featurize(["Only one video"])

        matrix = SimilarityEngine().compute(features)

        assert matrix.values.tolist() == [[1.0]]

    def test_degenerate_corpus_gets_uniform_matrix(self):
        features = TextFeaturizer().featurize(["apples oranges", "bicycles trains", "violins pianos"])

        matrix = SimilarityEngine().compute(features)

        np.testing.assert_array_equal(matrix.values, np.eye(3))

    def test_distance_has_zero_diagonal(self, matrix):
        distance = matrix.distance()

        assert np.all(np.diag(distance) == 0)
        np.testing.assert_array_almost_equal(distance, 1 - matrix.values)

    def test_distribution_detects_clear_clusters(self):
        titles = ["tcp congestion", "tcp congestion", "ospf routing", "ospf routing"]
        matrix = SimilarityEngine().compute(TextFeaturizer().featurize(titles))

        distribution = matrix.distribution()

        assert distribution.min == pytest.approx(0.0)
        assert distribution.has_clear_clusters

    def test_mean_within_singleton_is_one(self, matrix):
        assert matrix.mean_within([2]) == 1.0

    def test_computation_is_deterministic(self):
        titles = ["tcp congestion window", "tcp congestion control", "ospf routing area"]

        first = SimilarityEngine().compute(TextFeaturizer().featurize(titles))
        second = SimilarityEngine().compute(TextFeaturizer().featurize(titles))

        np.testing.assert_array_equal(first.values, second.values)
