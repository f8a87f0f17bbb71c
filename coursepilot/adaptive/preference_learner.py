"""
Preference Learner - Adapt clustering and planning defaults from feedback.

Feedback is append-only. ``auto_tune`` folds every event recorded since
the previous tune into the profile with weighted moving averages:

    value += learning_rate * kind_weight * (target - value)

Explicit feedback moves the profile more than implicit signals:

    rating 1.0 | parameter change 0.8 | manual adjustment 0.6 | implicit 0.3

A/B tests compare the rating signals of two strategies with Welch's
t-test and stay "inconclusive" until both arms have enough samples.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np
from loguru import logger
from scipy import stats

from config import Settings, get_settings
from coursepilot.core.models import (
    LEARNABLE_STRATEGIES,
    ExperienceLevel,
    FactorWeights,
    FeedbackEvent,
    FeedbackKind,
    StrategyKind,
    UserPreferenceProfile,
)

KIND_WEIGHTS = {
    FeedbackKind.RATING: 1.0,
    FeedbackKind.PARAMETER_CHANGE: 0.8,
    FeedbackKind.MANUAL_ADJUSTMENT: 0.6,
    FeedbackKind.IMPLICIT_ACCEPT: 0.3,
    FeedbackKind.IMPLICIT_REJECT: 0.3,
}

PREFERENCE_LEAD = 0.15
THRESHOLD_STEP = 0.1
THRESHOLD_BOUNDS = (0.05, 0.95)

INCONCLUSIVE = "inconclusive"


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


@dataclass
class ABTestResult:
    """Outcome of comparing two strategies on recorded ratings."""

    variant_a: StrategyKind
    variant_b: StrategyKind
    samples_a: int
    samples_b: int
    mean_a: float | None = None
    mean_b: float | None = None
    p_value: float | None = None
    winner: StrategyKind | None = None

    @property
    def outcome(self) -> str:
        return self.winner.value if self.winner else INCONCLUSIVE

    @property
    def conclusive(self) -> bool:
        return self.winner is not None


class PreferenceLearner:
    """
    Single writer for a UserPreferenceProfile.

    Example:
        >>> learner = PreferenceLearner()
        >>> learner.record_feedback(FeedbackEvent(kind=FeedbackKind.RATING, strategy=StrategyKind.KMEANS, rating=1))
        >>> learner.auto_tune().weight_for(StrategyKind.KMEANS)
        0.4
    """

    def __init__(
        self,
        profile: UserPreferenceProfile | None = None,
        settings: Settings | None = None,
    ):
        self.profile = profile or UserPreferenceProfile()
        self.settings = settings or get_settings()

    def get_profile(self) -> UserPreferenceProfile:
        """A copy of the current profile; runs never see later mutations."""
        return self.profile.model_copy(deep=True)

    def record_feedback(self, event: FeedbackEvent) -> None:
        self.profile.feedback_history.append(event)
        self.profile.usage_count += 1
        logger.debug(f"Recorded {event.kind.value} feedback ({len(self.profile.feedback_history)} total)")

    # =========================================================================
    # Auto-tuning
    # =========================================================================

    def auto_tune(self) -> UserPreferenceProfile:
        """Apply pending feedback and return the updated profile."""
        profile = self.profile.model_copy(deep=True)
        pending = profile.feedback_history[profile.tuned_through:]
        if not pending:
            return profile.model_copy(deep=True)

        for event in pending:
            alpha = self.settings.learning_rate * KIND_WEIGHTS[event.kind]
            self._apply(profile, event, alpha)

        profile.preferred_strategy = self._leading_strategy(profile)
        profile.tuned_through = len(profile.feedback_history)
        profile.updated_at = datetime.now(timezone.utc)
        self.profile = profile

        weights = ", ".join(f"{k.value}={profile.weight_for(k):.3f}" for k in LEARNABLE_STRATEGIES)
        logger.info(f"Auto-tuned profile from {len(pending)} events: {weights}")
        return profile.model_copy(deep=True)

    def _apply(self, profile: UserPreferenceProfile, event: FeedbackEvent, alpha: float) -> None:
        signal = event.signal()
        if signal is not None:
            if event.strategy in LEARNABLE_STRATEGIES:
                current = profile.weight_for(event.strategy)
                profile.strategy_weights[event.strategy] = current + alpha * (signal - current)
            profile.satisfaction_score += alpha * (signal - profile.satisfaction_score)

        if event.kind == FeedbackKind.MANUAL_ADJUSTMENT:
            # Splits mean clusters were too coarse, merges that they were too fine
            splits = int(event.payload.get("splits", 0))
            merges = int(event.payload.get("merges", 0))
            shift = alpha * THRESHOLD_STEP * (splits - merges)
            profile.similarity_threshold = _clamp(profile.similarity_threshold + shift, *THRESHOLD_BOUNDS)

        elif event.kind == FeedbackKind.PARAMETER_CHANGE:
            self._apply_parameter_change(profile, event.payload, alpha)

    @staticmethod
    def _apply_parameter_change(profile: UserPreferenceProfile, payload: dict, alpha: float) -> None:
        if "similarity_threshold" in payload:
            target = float(payload["similarity_threshold"])
            moved = profile.similarity_threshold + alpha * (target - profile.similarity_threshold)
            profile.similarity_threshold = _clamp(moved, *THRESHOLD_BOUNDS)

        if "content_vs_duration_weight" in payload:
            target = float(payload["content_vs_duration_weight"])
            moved = profile.content_vs_duration_weight + alpha * (target - profile.content_vs_duration_weight)
            profile.content_vs_duration_weight = _clamp(moved, 0.0, 1.0)

        if "factor_weights" in payload:
            current = profile.factor_weights.model_dump()
            for name, target in payload["factor_weights"].items():
                if name in current:
                    current[name] = _clamp(current[name] + alpha * (float(target) - current[name]), 0.0, 1.0)
            profile.factor_weights = FactorWeights(**current)

        if "preferred_session_minutes" in payload:
            profile.preferred_session_minutes = int(payload["preferred_session_minutes"])
        if "max_cluster_size" in payload:
            profile.max_cluster_size = max(1, int(payload["max_cluster_size"]))
        if "min_cluster_size" in payload:
            profile.min_cluster_size = max(1, int(payload["min_cluster_size"]))

    @staticmethod
    def _leading_strategy(profile: UserPreferenceProfile) -> StrategyKind | None:
        ranked = sorted(LEARNABLE_STRATEGIES, key=profile.weight_for, reverse=True)
        top, runner_up = ranked[0], ranked[1]
        if profile.weight_for(top) - profile.weight_for(runner_up) >= PREFERENCE_LEAD:
            return top
        return None

    # =========================================================================
    # Recommendations and A/B testing
    # =========================================================================

    def recommended_parameters(self, item_count: int) -> UserPreferenceProfile:
        """Profile adjusted for course size and the user's experience."""
        update: dict = {}
        threshold = self.profile.similarity_threshold
        if item_count < self.settings.small_corpus_threshold:
            update["similarity_threshold"] = min(0.9, threshold + 0.1)
        elif item_count > self.settings.large_corpus_threshold:
            update["similarity_threshold"] = max(0.3, threshold - 0.05)

        if self.profile.experience_level == ExperienceLevel.BEGINNER:
            update["content_vs_duration_weight"] = 0.8
        elif self.profile.experience_level == ExperienceLevel.EXPERT:
            update["content_vs_duration_weight"] = 0.6

        return self.profile.model_copy(deep=True, update=update)

    @staticmethod
    def assign_variant(course_id: str, variant_a: StrategyKind, variant_b: StrategyKind) -> StrategyKind:
        """Stable assignment of a course to one arm of a test."""
        digest = hashlib.sha256(course_id.encode("utf-8")).digest()
        return variant_a if digest[-1] % 2 == 0 else variant_b

    def run_ab_test(
        self,
        variant_a: StrategyKind,
        variant_b: StrategyKind,
        sample_size: int,
    ) -> ABTestResult:
        """Compare rating signals of two strategies; needs enough samples per arm."""
        samples_a = self._ratings_for(variant_a)
        samples_b = self._ratings_for(variant_b)
        required = max(sample_size, self.settings.ab_min_samples)

        result = ABTestResult(
            variant_a=variant_a,
            variant_b=variant_b,
            samples_a=len(samples_a),
            samples_b=len(samples_b),
            mean_a=float(np.mean(samples_a)) if samples_a else None,
            mean_b=float(np.mean(samples_b)) if samples_b else None,
        )
        if len(samples_a) < required or len(samples_b) < required:
            logger.info(
                f"A/B {variant_a.value} vs {variant_b.value}: {INCONCLUSIVE} "
                f"({len(samples_a)}/{len(samples_b)} of {required} samples)"
            )
            return result

        _, p_value = stats.ttest_ind(samples_a, samples_b, equal_var=False)
        p_value = float(p_value)
        if np.isnan(p_value):
            # Zero variance in both arms
            if result.mean_a != result.mean_b:
                p_value = 0.0
            else:
                result.p_value = None
                return result

        result.p_value = p_value
        if p_value < self.settings.ab_significance_level:
            result.winner = variant_a if result.mean_a > result.mean_b else variant_b

        logger.info(f"A/B {variant_a.value} vs {variant_b.value}: {result.outcome} (p={p_value:.4f})")
        return result

    def _ratings_for(self, strategy: StrategyKind) -> list[float]:
        return [
            event.signal()
            for event in self.profile.feedback_history
            if event.strategy == strategy and event.kind == FeedbackKind.RATING and event.rating is not None
        ]
