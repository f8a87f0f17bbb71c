"""
Unit tests for numbered-series detection over video titles.
"""
import pytest

from coursepilot.semantic.sequential_detection import (
    ContentType,
    PatternType,
    detect_sequential_patterns,
    sequence_confidence,
)

TOPICS = [
    "Routing tables",
    "Switching loops",
    "Subnet masks",
    "Packet capture",
    "Firewall rules",
    "Load balancers",
    "Name resolution",
    "Wireless security",
]


class TestSequenceConfidence:
    """Tests for the match/consecutive blend."""

    def test_full_consecutive_run(self):
        assert sequence_confidence([1, 2, 3], 3, 3) == pytest.approx(1.0)

    def test_gaps_and_partial_matches(self):
        # 0.6 * 3/6 + 0.4 * 0/2
        assert sequence_confidence([1, 3, 5], 3, 6) == pytest.approx(0.3)

    def test_no_numbers(self):
        assert sequence_confidence([], 0, 5) == 0.0


class TestDetectSequentialPatterns:
    """Tests for content type classification."""

    def test_lesson_series_preserves_order(self):
        titles = [f"Lesson {i}: {topic}" for i, topic in enumerate(TOPICS, start=1)]

        analysis = detect_sequential_patterns(titles)

        assert analysis.content_type == ContentType.SEQUENTIAL
        assert analysis.preserve_order
        assert analysis.consistent_format
        assert PatternType.NUMERIC in {p.kind for p in analysis.patterns}

    def test_module_series_preserves_order(self):
        titles = [f"Module {i} - {topic}" for i, topic in enumerate(TOPICS, start=1)]

        analysis = detect_sequential_patterns(titles)

        assert analysis.content_type == ContentType.SEQUENTIAL
        assert analysis.preserve_order
        assert PatternType.MODULE in {p.kind for p in analysis.patterns}

    def test_lettered_chapters_are_recognised(self):
        titles = [f"Chapter {letter}: {topic}" for letter, topic in zip("ABCDE", TOPICS)]

        analysis = detect_sequential_patterns(titles)

        assert PatternType.ALPHABETIC in {p.kind for p in analysis.patterns}

    def test_topical_titles_are_not_sequential(self):
        titles = [
            "tcp congestion window",
            "tcp congestion control",
            "ospf routing area",
            "ospf routing metric",
        ]

        analysis = detect_sequential_patterns(titles)

        assert analysis.content_type == ContentType.AMBIGUOUS
        assert not analysis.preserve_order
        assert analysis.patterns == []

    def test_few_numbered_titles_do_not_preserve_order(self):
        titles = ["Lesson 1: Routing tables"] + TOPICS[1:]

        analysis = detect_sequential_patterns(titles)

        assert not analysis.preserve_order

    def test_empty_input(self):
        analysis = detect_sequential_patterns([])

        assert analysis.content_type == ContentType.AMBIGUOUS
        assert analysis.confidence == 0.0

    def test_describe_names_patterns(self):
        titles = [f"Lesson {i}: {topic}" for i, topic in enumerate(TOPICS, start=1)]

        assert "numeric" in detect_sequential_patterns(titles).describe()
