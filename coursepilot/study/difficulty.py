"""
Difficulty Analyzer - Lexical and duration based difficulty estimates.

Each video gets a score in [0, 1]:

    0.5 + keyword weights + duration factor + experience adjustment
        + numbered-sequence progression, clamped

Scores are only an optimization signal for session grouping; nothing is
ever excluded or reordered because of them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from loguru import logger

from coursepilot.core.models import ExperienceLevel, VideoItem

BASE_SCORE = 0.5
STEEP_JUMP_THRESHOLD = 0.3

KEYWORD_WEIGHTS: dict[str, float] = {
    # Introductory
    "introduction": -0.3,
    "basics": -0.3,
    "fundamentals": -0.2,
    "getting started": -0.3,
    "beginner": -0.4,
    "overview": -0.2,
    "what is": -0.2,
    "how to": -0.1,
    "tutorial": -0.1,
    "guide": -0.1,
    # Hands-on
    "implementation": 0.2,
    "building": 0.1,
    "creating": 0.1,
    "developing": 0.2,
    "working with": 0.1,
    "applying": 0.1,
    # Advanced
    "advanced": 0.4,
    "expert": 0.5,
    "master": 0.4,
    "deep dive": 0.3,
    "optimization": 0.3,
    "architecture": 0.3,
    "complex": 0.3,
    "sophisticated": 0.3,
    "algorithm": 0.4,
    "theory": 0.3,
    "internals": 0.4,
    "performance": 0.2,
    "scaling": 0.3,
    "enterprise": 0.2,
    # Practice topics
    "debugging": 0.2,
    "troubleshooting": 0.2,
    "testing": 0.1,
    "deployment": 0.2,
    "production": 0.2,
    "security": 0.3,
    "concurrency": 0.4,
    "async": 0.3,
    "parallel": 0.3,
}

EXPERIENCE_ADJUSTMENT = {
    ExperienceLevel.BEGINNER: 0.1,
    ExperienceLevel.INTERMEDIATE: 0.0,
    ExperienceLevel.ADVANCED: -0.1,
    ExperienceLevel.EXPERT: -0.2,
}

_SEQUENCE_RE = re.compile(r"\b(?:part|chapter|lesson|section|episode)\s+(\d+)\b")


def duration_factor(seconds: int) -> float:
    """Longer videos are modestly harder; unknown (0) duration is neutral."""
    if seconds <= 0:
        return 0.0
    minutes = seconds // 60
    if minutes <= 5:
        return -0.1
    if minutes <= 10:
        return 0.0
    if minutes <= 20:
        return 0.1
    if minutes <= 40:
        return 0.2
    if minutes <= 60:
        return 0.3
    return 0.4


def sequence_progression(title: str) -> float:
    """'Part 3', 'Lesson 4'... later parts of a series are a little harder."""
    match = _SEQUENCE_RE.search(title.lower())
    if not match:
        return 0.0
    number = int(match.group(1))
    return 0.05 * min(max(number - 1, 0), 5)


def cognitive_load(score: float) -> float:
    if score < 0.2:
        return 0.1
    if score < 0.4:
        return 0.3
    if score < 0.6:
        return 0.5
    if score < 0.8:
        return 0.7
    return 0.9


@dataclass
class DifficultyProgression:
    """How smoothly difficulty evolves across a sequence."""

    scores: list[float]
    progression_quality: float
    steep_jumps: list[int] = field(default_factory=list)
    cognitive_load_distribution: list[float] = field(default_factory=list)


class DifficultyAnalyzer:
    """
    Score videos and modules for difficulty.

    Example:
        >>> analyzer = DifficultyAnalyzer(ExperienceLevel.BEGINNER)
        >>> analyzer.score_title("Advanced Routing Deep Dive", 1800)
        1.0
    """

    def __init__(
        self,
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        keyword_weights: dict[str, float] | None = None,
    ):
        self.experience_level = experience_level
        self.keyword_weights = keyword_weights or KEYWORD_WEIGHTS

    def score_title(self, title: str, duration: int = 0) -> float:
        lower = title.lower()
        score = BASE_SCORE
        score += sum(weight for keyword, weight in self.keyword_weights.items() if keyword in lower)
        score += duration_factor(duration)
        score += EXPERIENCE_ADJUSTMENT[self.experience_level]
        score += sequence_progression(lower)
        return min(1.0, max(0.0, score))

    def score_item(self, item: VideoItem) -> float:
        return self.score_title(item.title, item.duration)

    def score_items(self, items: list[VideoItem]) -> list[float]:
        return [self.score_item(item) for item in items]

    @staticmethod
    def module_difficulty(scores: list[float], durations: list[int]) -> float:
        """Duration-weighted mean; plain mean when no duration is known."""
        if not scores:
            return BASE_SCORE
        total = sum(durations)
        if total <= 0:
            return sum(scores) / len(scores)
        return sum(s * d for s, d in zip(scores, durations)) / total

    def analyze_progression(self, scores: list[float]) -> DifficultyProgression:
        """Grade the transitions of a difficulty sequence."""
        if not scores:
            return DifficultyProgression(scores=[], progression_quality=0.0)

        steep = [i + 1 for i in range(len(scores) - 1) if scores[i + 1] - scores[i] > STEEP_JUMP_THRESHOLD]
        if steep:
            logger.debug(f"Steep difficulty jumps at positions {steep}")

        return DifficultyProgression(
            scores=list(scores),
            progression_quality=self._progression_quality(scores),
            steep_jumps=steep,
            cognitive_load_distribution=[cognitive_load(s) for s in scores],
        )

    @staticmethod
    def _progression_quality(scores: list[float]) -> float:
        if len(scores) < 2:
            return 1.0

        total = 0.0
        for prev, curr in zip(scores, scores[1:]):
            diff = curr - prev
            if -0.05 <= diff <= 0.15:
                total += 1.0  # gradual increase
            elif -0.1 <= diff <= 0.25:
                total += 0.7
            elif -0.2 <= diff <= 0.35:
                total += 0.4
        return total / (len(scores) - 1)
