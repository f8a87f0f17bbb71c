"""
Sequential Pattern Detection - Recognise numbered course series from titles.

Courses named "Lesson 1", "Module 2 - ...", "Step 3" or "Chapter C" carry
their own progression; clustering them by vocabulary would reorder the
author's sequence. The analysis here scores such patterns and tells the
selector when to keep the original order.

Scoring:
    sequential = 0.4 * sum(pattern confidence)
               + 0.2 * module indicator ratio (when <= 0.3)
               + 0.3 * naming consistency (when the format is consistent)
    thematic   = 0.3 * module indicator ratio (when > 0.3)
               + 0.2 (when titles use more than three naming formats)

Pattern confidence = 0.6 * matched share + 0.4 * consecutive-number share.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger


class ContentType(str, Enum):
    SEQUENTIAL = "sequential"
    THEMATIC = "thematic"
    MIXED = "mixed"
    AMBIGUOUS = "ambiguous"


class PatternType(str, Enum):
    NUMERIC = "numeric"  # Lesson 1, Part 2, 03 - ...
    ALPHABETIC = "alphabetic"  # Chapter A, Section B
    MODULE = "module"  # Module 1, Unit 2
    STEP = "step"  # Step 1, Tutorial 2
    CHRONOLOGICAL = "chronological"  # first ... final


_NUMERIC_PATTERNS = [
    re.compile(r"\b(lesson|part|episode|chapter|section|tutorial|video)\s*(\d+)", re.IGNORECASE),
    re.compile(r"\b(\d+)\s*[-.:]\s*", re.IGNORECASE),
    re.compile(r"^(\d+)\s*[-.:]\s*", re.IGNORECASE),
]
_ALPHABETIC_PATTERN = re.compile(r"\b(chapter|section|part|unit)\s*([a-z])\b", re.IGNORECASE)
_MODULE_PATTERN = re.compile(r"\b(module|unit|course)\s*(\d+)", re.IGNORECASE)
_STEP_PATTERNS = [
    re.compile(r"\b(step|tutorial|guide)\s*(\d+)", re.IGNORECASE),
    re.compile(r"\bhow\s*to\s*.*\s*(\d+)", re.IGNORECASE),
]
_CHRONOLOGICAL_PATTERNS = [
    re.compile(r"\b(first|second|third|fourth|fifth|sixth|seventh|eighth|ninth|tenth)\b", re.IGNORECASE),
    re.compile(r"\b(beginning|start|introduction|basics|fundamentals)\b", re.IGNORECASE),
    re.compile(r"\b(final|conclusion|summary|wrap.?up|ending)\b", re.IGNORECASE),
]
_MODULE_INDICATORS = [
    re.compile(r"^(module|unit|chapter|section|part)\s*\d*\s*[-:]?\s*(.*)", re.IGNORECASE),
    re.compile(r"\b(introduction\s*to|overview\s*of|getting\s*started\s*with)\s*(.*)", re.IGNORECASE),
    re.compile(r"^(.*)\s*[-:]\s*(introduction|overview|basics|fundamentals)", re.IGNORECASE),
]
_NAMING_FORMATS = [
    re.compile(r"^(lesson|part|episode|chapter|section|tutorial|video)\s*\d+", re.IGNORECASE),
    re.compile(r"^(module|unit|course)\s*\d+", re.IGNORECASE),
    re.compile(r"^\d+\s*[-.:]\s*", re.IGNORECASE),
    re.compile(r"\b(step|tutorial|guide)\s*\d+", re.IGNORECASE),
]

CONTENT_TYPE_THRESHOLD = 0.6


@dataclass
class SequentialPattern:
    kind: PatternType
    confidence: float
    matched_indices: list[int]
    description: str


@dataclass
class ContentTypeAnalysis:
    """What the titles say about the course's own ordering."""

    content_type: ContentType
    confidence: float
    patterns: list[SequentialPattern] = field(default_factory=list)
    module_indicators: int = 0
    naming_consistency: float = 0.0
    consistent_format: bool = False

    @property
    def preserve_order(self) -> bool:
        if self.content_type != ContentType.SEQUENTIAL:
            return False
        if self.confidence > 0.7:
            return True
        return self.confidence > 0.5 and any(p.confidence > 0.8 for p in self.patterns)

    def describe(self) -> str:
        if not self.patterns:
            return f"{self.content_type.value} content"
        kinds = ", ".join(p.kind.value for p in self.patterns)
        return f"{self.content_type.value} content ({kinds} pattern, confidence {self.confidence:.2f})"


def sequence_confidence(numbers: list[int], matches: int, total: int) -> float:
    """Share of matching titles blended with how consecutive their numbers are."""
    if not numbers or total == 0:
        return 0.0
    ordered = sorted(numbers)
    consecutive = sum(1 for a, b in zip(ordered, ordered[1:]) if b == a + 1)
    sequence_ratio = consecutive / (len(numbers) - 1) if len(numbers) > 1 else 0.0
    return min(1.0, 0.6 * matches / total + 0.4 * sequence_ratio)


def _numbered_matches(pattern: re.Pattern[str], titles: list[str]) -> tuple[list[int], list[int]]:
    indices, numbers = [], []
    for i, title in enumerate(titles):
        match = pattern.search(title)
        if match is None:
            continue
        indices.append(i)
        digits = match.group(match.lastindex) if match.lastindex else ""
        if digits.isdigit():
            numbers.append(int(digits))
    return indices, numbers


def _numeric_pattern(titles: list[str]) -> SequentialPattern | None:
    best = None
    for pattern in _NUMERIC_PATTERNS:
        indices, numbers = _numbered_matches(pattern, titles)
        if len(indices) < 3:
            continue
        confidence = sequence_confidence(numbers, len(indices), len(titles))
        if best is None or confidence > best.confidence:
            best = SequentialPattern(
                PatternType.NUMERIC,
                confidence,
                indices,
                f"{len(indices)} of {len(titles)} titles are numbered",
            )
    return best


def _alphabetic_pattern(titles: list[str]) -> SequentialPattern | None:
    indices, letters = [], []
    for i, title in enumerate(titles):
        match = _ALPHABETIC_PATTERN.search(title)
        if match:
            indices.append(i)
            letters.append(ord(match.group(2).lower()) - ord("a") + 1)
    if len(indices) < 3:
        return None
    confidence = sequence_confidence(letters, len(indices), len(titles))
    if confidence <= 0.5:
        return None
    return SequentialPattern(PatternType.ALPHABETIC, confidence, indices, f"{len(indices)} titles run A, B, C...")


def _module_pattern(titles: list[str]) -> SequentialPattern | None:
    indices, numbers = _numbered_matches(_MODULE_PATTERN, titles)
    if len(indices) < 2:
        return None
    confidence = sequence_confidence(numbers, len(indices), len(titles))
    if confidence <= 0.6:
        return None
    return SequentialPattern(PatternType.MODULE, confidence, indices, f"{len(indices)} numbered modules")


def _step_pattern(titles: list[str]) -> SequentialPattern | None:
    for pattern in _STEP_PATTERNS:
        indices = [i for i, title in enumerate(titles) if pattern.search(title)]
        confidence = len(indices) / len(titles)
        if len(indices) >= 3 and confidence > 0.4:
            return SequentialPattern(PatternType.STEP, confidence, indices, f"{len(indices)} step-by-step titles")
    return None


def _chronological_pattern(titles: list[str]) -> SequentialPattern | None:
    indices = sorted(
        {i for pattern in _CHRONOLOGICAL_PATTERNS for i, title in enumerate(titles) if pattern.search(title)}
    )
    confidence = len(indices) / len(titles)
    if len(indices) >= 2 and confidence > 0.3:
        return SequentialPattern(
            PatternType.CHRONOLOGICAL, confidence, indices, f"{len(indices)} temporal markers"
        )
    return None


def _naming_consistency(titles: list[str]) -> tuple[float, int]:
    counts = [sum(1 for title in titles if pattern.search(title)) for pattern in _NAMING_FORMATS]
    formats = sum(1 for count in counts if count > 0)
    return sum(counts) / len(titles), formats


def detect_sequential_patterns(titles: list[str]) -> ContentTypeAnalysis:
    """
    Classify a course as sequential, thematic, mixed or ambiguous.

    Example:
        >>> analysis = detect_sequential_patterns([f"Lesson {i}: Topic" for i in range(1, 9)])
        >>> analysis.content_type, analysis.preserve_order
        (<ContentType.SEQUENTIAL: 'sequential'>, True)
    """
    if not titles:
        return ContentTypeAnalysis(ContentType.AMBIGUOUS, 0.0)

    detectors = (_numeric_pattern, _alphabetic_pattern, _module_pattern, _step_pattern, _chronological_pattern)
    patterns = [p for p in (detect(titles) for detect in detectors) if p is not None]

    indicators = sum(1 for title in titles if any(p.search(title) for p in _MODULE_INDICATORS))
    consistency, formats = _naming_consistency(titles)
    consistent_format = consistency > 0.6 and formats <= 2

    sequential = sum(p.confidence * 0.4 for p in patterns)
    thematic = 0.0
    indicator_ratio = indicators / len(titles)
    if indicator_ratio > 0.3:
        thematic += indicator_ratio * 0.3
    elif indicator_ratio > 0:
        sequential += indicator_ratio * 0.2
    if consistent_format:
        sequential += consistency * 0.3
    elif formats > 3:
        thematic += 0.2
    sequential, thematic = min(sequential, 1.0), min(thematic, 1.0)

    if sequential > CONTENT_TYPE_THRESHOLD and sequential > thematic:
        content_type, confidence = ContentType.SEQUENTIAL, sequential
    elif thematic > CONTENT_TYPE_THRESHOLD and thematic > sequential:
        content_type, confidence = ContentType.THEMATIC, thematic
    elif abs(sequential - thematic) < 0.2 and sequential > 0.3:
        content_type, confidence = ContentType.MIXED, (sequential + thematic) / 2
    else:
        content_type, confidence = ContentType.AMBIGUOUS, (sequential + thematic) / 2

    analysis = ContentTypeAnalysis(
        content_type=content_type,
        confidence=confidence,
        patterns=patterns,
        module_indicators=indicators,
        naming_consistency=consistency,
        consistent_format=consistent_format,
    )
    logger.debug(f"Title patterns for {len(titles)} videos: {analysis.describe()}")
    return analysis
