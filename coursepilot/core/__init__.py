"""
Core types shared by every planning stage.

- Value objects and validated models (items, clusters, modules, sessions, profile)
- Error taxonomy rooted at CoursePilotError
- Cooperative cancellation and per-phase time budgets
"""

from coursepilot.core.cancellation import CancellationToken, PhaseBudget
from coursepilot.core.errors import (
    ClusteringFailure,
    CoursePilotError,
    InputError,
    InsufficientDataError,
    PhaseTimeout,
    ProfileCorruptionError,
    RunCancelled,
)
from coursepilot.core.models import (
    BalancedModule,
    Cluster,
    ClusteringMetadata,
    CourseStructure,
    ExperienceLevel,
    FactorWeights,
    FeedbackEvent,
    FeedbackKind,
    PlanSettings,
    QualityMetrics,
    SessionType,
    StrategyKind,
    StudyPlan,
    StudySession,
    UserPreferenceProfile,
    VideoItem,
)

__all__ = [
    # Models
    "VideoItem",
    "Cluster",
    "QualityMetrics",
    "ClusteringMetadata",
    "BalancedModule",
    "CourseStructure",
    "StudySession",
    "StudyPlan",
    "PlanSettings",
    "FactorWeights",
    "FeedbackEvent",
    "UserPreferenceProfile",
    # Enums
    "StrategyKind",
    "SessionType",
    "ExperienceLevel",
    "FeedbackKind",
    # Errors
    "CoursePilotError",
    "InputError",
    "ClusteringFailure",
    "InsufficientDataError",
    "PhaseTimeout",
    "ProfileCorruptionError",
    "RunCancelled",
    # Cancellation
    "CancellationToken",
    "PhaseBudget",
]
