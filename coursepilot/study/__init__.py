"""
Study planning over clustered course content.

Provides:
- Duration balancing of clusters into session-sized modules
- Lexical difficulty scoring and progression analysis
- Multi-factor grouping of modules into dated sessions
- Spaced review sessions at completion checkpoints
- Pacing recommendations from a finished plan
"""

from coursepilot.study.difficulty import DifficultyAnalyzer, DifficultyProgression
from coursepilot.study.duration_balancer import BalanceMetrics, DurationBalancer, balance_metrics
from coursepilot.study.optimizer import MultiFactorOptimizer, OptimizationResult
from coursepilot.study.recommendations import StudyAdvisor, StudyRecommendations
from coursepilot.study.session_calendar import SessionCalendar
from coursepilot.study.spaced_repetition import SpacedRepetitionScheduler

__all__ = [
    "DurationBalancer",
    "BalanceMetrics",
    "balance_metrics",
    "DifficultyAnalyzer",
    "DifficultyProgression",
    "MultiFactorOptimizer",
    "OptimizationResult",
    "SessionCalendar",
    "SpacedRepetitionScheduler",
    "StudyAdvisor",
    "StudyRecommendations",
]
