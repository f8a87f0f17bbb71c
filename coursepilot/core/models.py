"""
Planning Core Data Models.

Value objects flowing between the pipeline stages. Run-scoped types are
frozen dataclasses; types the host persists or validates (settings, the
preference profile and feedback events) are Pydantic models.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from coursepilot.core.errors import InputError

DEFAULT_REVIEW_INTERVALS = (1, 3, 7, 14, 30, 90)


# =============================================================================
# Enums
# =============================================================================


class StrategyKind(str, Enum):
    """Closed set of clustering strategies."""

    KMEANS = "kmeans"
    HIERARCHICAL = "hierarchical"
    TOPIC_MODEL = "topic_model"
    FALLBACK = "fallback"  # Fixed-size chunks in original order
    SEQUENTIAL = "sequential"  # Numbered series kept in course order


LEARNABLE_STRATEGIES = (
    StrategyKind.KMEANS,
    StrategyKind.HIERARCHICAL,
    StrategyKind.TOPIC_MODEL,
)


class SessionType(str, Enum):
    INTRODUCTION = "introduction"
    PRACTICE = "practice"
    REVIEW = "review"
    ASSESSMENT = "assessment"


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class FeedbackKind(str, Enum):
    """Feedback sources, explicit ones first."""

    RATING = "rating"
    PARAMETER_CHANGE = "parameter_change"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    IMPLICIT_ACCEPT = "implicit_accept"
    IMPLICIT_REJECT = "implicit_reject"


# =============================================================================
# Run-scoped value objects
# =============================================================================


@dataclass(frozen=True)
class VideoItem:
    """A video in course order. Duration in seconds, 0 when unknown."""

    id: str
    title: str
    duration: int = 0


@dataclass(frozen=True)
class Cluster:
    """Group of items produced by a clustering strategy."""

    indices: tuple[int, ...]
    member_ids: tuple[str, ...]
    representative_terms: tuple[str, ...] = ()
    cohesion: float = 0.0

    @property
    def size(self) -> int:
        return len(self.indices)


@dataclass(frozen=True)
class QualityMetrics:
    """Cluster quality; every score except wcss/perplexity is in [0, 1] or [-1, 1]."""

    silhouette: float = 0.0
    intra_cluster_similarity: float = 0.0
    inter_cluster_separation: float = 0.0
    overall: float = 0.0
    wcss: float | None = None
    perplexity: float | None = None


@dataclass(frozen=True)
class ClusteringMetadata:
    """How a course structure was produced. Read-only once built."""

    strategy: StrategyKind
    quality: QualityMetrics = field(default_factory=QualityMetrics)
    confidence: float = 0.0
    rationale: str = ""
    cluster_count: int = 0
    is_fallback: bool = False
    degenerate_input: bool = False
    similarity_threshold: float = 0.6
    candidates_tried: tuple[StrategyKind, ...] = ()
    timings: dict[str, float] = field(default_factory=dict)
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class BalancedModule:
    """A contiguous run of items sized against a session target."""

    index: int
    title: str
    indices: tuple[int, ...]
    member_ids: tuple[str, ...]
    total_duration: int
    target_duration: int
    capacity: float
    representative_terms: tuple[str, ...] = ()
    cohesion: float = 0.0
    overflow: bool = False
    difficulty: float = 0.5

    @property
    def utilization(self) -> float:
        if self.target_duration <= 0:
            return 0.0
        return self.total_duration / self.target_duration

    @property
    def buffer_time(self) -> float:
        """Seconds left before the module reaches capacity."""
        return max(0.0, self.capacity - self.total_duration)


@dataclass(frozen=True)
class CourseStructure:
    """Ordered balanced modules plus the metadata that explains them."""

    items: tuple[VideoItem, ...]
    modules: tuple[BalancedModule, ...]
    metadata: ClusteringMetadata

    def item_ids(self) -> list[str]:
        return [item_id for module in self.modules for item_id in module.member_ids]

    @property
    def total_duration(self) -> int:
        return sum(module.total_duration for module in self.modules)


@dataclass(frozen=True)
class StudySession:
    """One dated study session over whole modules."""

    index: int
    session_type: SessionType
    module_indices: tuple[int, ...]
    item_ids: tuple[str, ...]
    day_offset: int
    date: date
    duration: int
    difficulty: float = 0.5
    score: float = 0.0

    @property
    def is_review(self) -> bool:
        return self.session_type == SessionType.REVIEW


@dataclass(frozen=True)
class StudyPlan:
    """Ordered sessions (content and review) with scoring details."""

    sessions: tuple[StudySession, ...]
    settings: PlanSettings
    factor_scores: dict[str, float] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()

    @property
    def content_sessions(self) -> list[StudySession]:
        return [s for s in self.sessions if not s.is_review]

    @property
    def review_sessions(self) -> list[StudySession]:
        return [s for s in self.sessions if s.is_review]

    def summary(self) -> dict[str, Any]:
        """Plan analytics for display."""
        if not self.sessions:
            return {"total_sessions": 0, "by_type": {}, "content_seconds": 0, "span_days": 0}

        by_type = Counter(s.session_type.value for s in self.sessions)
        last = max(self.sessions, key=lambda s: s.day_offset)
        return {
            "total_sessions": len(self.sessions),
            "by_type": dict(by_type),
            "content_seconds": sum(s.duration for s in self.content_sessions),
            "span_days": last.day_offset + 1,
            "completion_date": last.date.isoformat(),
        }


# =============================================================================
# Host-facing validated models
# =============================================================================


class PlanSettings(BaseModel):
    """Scheduling options recognised by the planner."""

    model_config = {"frozen": True}

    start_date: date | None = None
    sessions_per_week: int = Field(default=3, ge=1, le=14)
    session_minutes: int = Field(default=60, ge=15, le=180)
    include_weekends: bool = False
    buffer_percent: float = Field(default=20.0, ge=0, le=100)
    review_intervals: tuple[int, ...] = DEFAULT_REVIEW_INTERVALS

    @field_validator("review_intervals")
    @classmethod
    def _positive_sorted(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            return DEFAULT_REVIEW_INTERVALS
        if any(v < 1 for v in value):
            raise ValueError("review intervals must be positive day offsets")
        return tuple(sorted(set(value)))

    @classmethod
    def parse(cls, data: dict[str, Any]) -> PlanSettings:
        """Validate raw options, raising InputError instead of ValidationError."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InputError(f"Invalid plan settings: {e}") from e

    @property
    def target_seconds(self) -> int:
        return self.session_minutes * 60

    @property
    def capacity_seconds(self) -> float:
        return self.target_seconds * (1 + self.buffer_percent / 100)

    def resolved_start(self) -> date:
        return self.start_date or date.today()


class FactorWeights(BaseModel):
    """Optimizer factor weights, each in [0, 1]; normalised by the optimizer."""

    content: float = Field(default=1.0, ge=0, le=1)
    duration: float = Field(default=1.0, ge=0, le=1)
    difficulty: float = Field(default=0.8, ge=0, le=1)
    preference: float = Field(default=0.5, ge=0, le=1)

    def normalized(self) -> dict[str, float]:
        raw = self.model_dump()
        total = sum(raw.values())
        if total <= 0:
            return {name: 1 / len(raw) for name in raw}
        return {name: value / total for name, value in raw.items()}


class ParameterChange(BaseModel):
    """Explicit parameter edits carried by a PARAMETER_CHANGE event."""

    model_config = {"extra": "forbid"}

    similarity_threshold: float | None = Field(default=None, ge=0, le=1)
    content_vs_duration_weight: float | None = Field(default=None, ge=0, le=1)
    factor_weights: dict[
        Literal["content", "duration", "difficulty", "preference"],
        Annotated[float, Field(ge=0, le=1)],
    ] | None = None
    preferred_session_minutes: int | None = Field(default=None, ge=5, le=240)
    max_cluster_size: int | None = Field(default=None, ge=1)
    min_cluster_size: int | None = Field(default=None, ge=1)


class ManualAdjustment(BaseModel):
    """Hand edits of a proposed structure."""

    model_config = {"extra": "forbid"}

    splits: int = Field(default=0, ge=0)
    merges: int = Field(default=0, ge=0)


class FeedbackEvent(BaseModel):
    """A single append-only feedback record."""

    kind: FeedbackKind
    strategy: StrategyKind | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    course_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _validate_payload(self) -> FeedbackEvent:
        if self.kind == FeedbackKind.PARAMETER_CHANGE:
            self.payload = ParameterChange.model_validate(self.payload).model_dump(exclude_none=True)
        elif self.kind == FeedbackKind.MANUAL_ADJUSTMENT:
            self.payload = ManualAdjustment.model_validate(self.payload).model_dump()
        return self

    @property
    def is_explicit(self) -> bool:
        return self.kind in (FeedbackKind.RATING, FeedbackKind.PARAMETER_CHANGE)

    def signal(self) -> float | None:
        """Satisfaction signal in [0, 1], or None when the event carries none."""
        if self.rating is not None:
            return (self.rating - 1) / 4
        if self.kind == FeedbackKind.IMPLICIT_ACCEPT:
            return 1.0
        if self.kind == FeedbackKind.IMPLICIT_REJECT:
            return 0.0
        if self.kind == FeedbackKind.MANUAL_ADJUSTMENT:
            # Every manual fix is a mild vote against the result
            edits = int(self.payload.get("splits", 0)) + int(self.payload.get("merges", 0))
            return max(0.0, 0.6 - 0.1 * edits)
        return None


def _default_strategy_weights() -> dict[StrategyKind, float]:
    return {kind: 0.5 for kind in LEARNABLE_STRATEGIES}


class UserPreferenceProfile(BaseModel):
    """Learned clustering and planning preferences. Persisted by the host."""

    model_config = {"validate_assignment": True}

    similarity_threshold: float = Field(default=0.6, ge=0.05, le=0.95)
    preferred_strategy: StrategyKind | None = None
    strategy_weights: dict[StrategyKind, float] = Field(default_factory=_default_strategy_weights)
    max_cluster_size: int = Field(default=20, ge=1)
    min_cluster_size: int = Field(default=1, ge=1)
    content_vs_duration_weight: float = Field(default=0.7, ge=0, le=1)
    factor_weights: FactorWeights = Field(default_factory=FactorWeights)
    preferred_session_minutes: int | None = Field(default=None, ge=5, le=240)
    experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE
    feedback_history: list[FeedbackEvent] = Field(default_factory=list)
    tuned_through: int = 0
    usage_count: int = 0
    satisfaction_score: float = 0.5
    updated_at: datetime | None = None

    def weight_for(self, kind: StrategyKind) -> float:
        return self.strategy_weights.get(kind, 0.5)
