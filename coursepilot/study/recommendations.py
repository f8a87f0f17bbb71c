"""
Study Recommendations - Pacing advice derived from a finished plan.

Looks at the experience level, the mean module difficulty and the plan
that was actually produced, and suggests a weekly frequency, a session
length, a study strategy label, time management tips and an estimated
completion time in weeks.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from loguru import logger

from coursepilot.core.models import CourseStructure, ExperienceLevel, StudyPlan
from coursepilot.study.difficulty import DifficultyAnalyzer, DifficultyProgression

PEAK_THRESHOLD = 0.7
EASY_START_THRESHOLD = 0.4
MAX_SESSION_MINUTES = 120
BUFFER_WEEKS_PERCENT = 20

BASE_SESSION_MINUTES = {
    ExperienceLevel.BEGINNER: 30,
    ExperienceLevel.INTERMEDIATE: 45,
    ExperienceLevel.ADVANCED: 60,
    ExperienceLevel.EXPERT: 90,
}


@dataclass
class StudyRecommendations:
    sessions_per_week: int
    session_minutes: int
    strategy: str
    complexity: float
    completion_weeks: int
    progression: DifficultyProgression
    starts_easy: bool = False
    complexity_peaks: list[int] = field(default_factory=list)
    break_points: list[int] = field(default_factory=list)
    tips: list[str] = field(default_factory=list)

    @property
    def steep_learning_curve(self) -> bool:
        return bool(self.progression.steep_jumps)


def optimal_frequency(level: ExperienceLevel, complexity: float, item_count: int) -> int:
    """Sessions per week for a learner at this level facing this content."""
    if level == ExperienceLevel.BEGINNER:
        if complexity > 0.7:
            return 5
        return 4 if item_count > 20 else 3
    if level == ExperienceLevel.INTERMEDIATE:
        return 4 if complexity > 0.6 else 3
    if level == ExperienceLevel.ADVANCED:
        return 5 if item_count > 50 else 4
    return 3


def recommended_session_minutes(level: ExperienceLevel, complexity: float) -> int:
    return min(BASE_SESSION_MINUTES[level] + int(complexity * 30), MAX_SESSION_MINUTES)


def study_strategy(level: ExperienceLevel, complexity: float) -> str:
    if level == ExperienceLevel.BEGINNER:
        return "guided learning" if complexity > 0.6 else "steady progression"
    if level == ExperienceLevel.INTERMEDIATE:
        return "structured learning" if complexity > 0.7 else "flexible learning"
    if level == ExperienceLevel.ADVANCED:
        return "intensive learning"
    return "self-directed learning"


class StudyAdvisor:
    """
    Turn a course structure and its plan into pacing recommendations.

    Example:
        >>> advisor = StudyAdvisor(ExperienceLevel.BEGINNER)
        >>> advice = advisor.recommend(structure, plan)
        >>> advice.strategy
        'steady progression'
    """

    def __init__(self, experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE):
        self.experience_level = experience_level
        self.analyzer = DifficultyAnalyzer(experience_level)

    def recommend(self, structure: CourseStructure, plan: StudyPlan) -> StudyRecommendations:
        difficulties = [module.difficulty for module in structure.modules]
        complexity = sum(difficulties) / len(difficulties) if difficulties else 0.0
        progression = self.analyzer.analyze_progression(difficulties)

        frequency = optimal_frequency(self.experience_level, complexity, len(structure.items))
        minutes = recommended_session_minutes(self.experience_level, complexity)
        peaks = [i for i, d in enumerate(difficulties) if d > PEAK_THRESHOLD]

        recommendations = StudyRecommendations(
            sessions_per_week=frequency,
            session_minutes=minutes,
            strategy=study_strategy(self.experience_level, complexity),
            complexity=complexity,
            completion_weeks=self._completion_weeks(len(plan.content_sessions), frequency),
            progression=progression,
            starts_easy=bool(difficulties) and difficulties[0] < EASY_START_THRESHOLD,
            complexity_peaks=peaks,
            break_points=[i + 1 for i in peaks if i + 1 < len(difficulties)],
        )
        recommendations.tips = self._tips(plan, recommendations)

        logger.debug(
            f"Recommended {frequency}x{minutes}min per week "
            f"({recommendations.strategy}, {recommendations.completion_weeks} weeks)"
        )
        return recommendations

    @staticmethod
    def _completion_weeks(content_sessions: int, sessions_per_week: int) -> int:
        if content_sessions == 0:
            return 0
        weeks = math.ceil(content_sessions / sessions_per_week)
        return weeks + math.ceil(weeks * BUFFER_WEEKS_PERCENT / 100)

    def _tips(self, plan: StudyPlan, advice: StudyRecommendations) -> list[str]:
        settings = plan.settings
        tips = []
        if settings.sessions_per_week >= 5:
            tips.append("Plan lighter review days between intensive sessions to avoid burnout")
        if settings.session_minutes >= 90:
            tips.append("Take a 10-15 minute break every 45 minutes in long sessions")
        if not settings.include_weekends:
            tips.append("Use weekends for light review or catching up on missed sessions")

        if settings.sessions_per_week < advice.sessions_per_week:
            tips.append(
                f"Consider {advice.sessions_per_week} sessions per week instead of "
                f"{settings.sessions_per_week} for this content"
            )
        if abs(settings.session_minutes - advice.session_minutes) >= 15:
            tips.append(f"Sessions of about {advice.session_minutes} minutes suit this content best")
        if advice.steep_learning_curve:
            tips.append("Difficulty rises sharply in places; revisit earlier modules before moving on")
        if advice.complexity_peaks:
            tips.append("Schedule extra time around the hardest modules")
        if self.experience_level == ExperienceLevel.BEGINNER and not advice.starts_easy:
            tips.append("The course opens at a demanding level; skim prerequisite material first")
        return tips
