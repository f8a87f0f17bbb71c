"""
Adaptive preferences learned from user feedback.

- Weighted moving-average auto-tuning of strategy weights and thresholds
- A/B comparison of strategies (Welch's t-test)
- JSON persistence of the profile
"""

from coursepilot.adaptive.preference_learner import ABTestResult, PreferenceLearner
from coursepilot.adaptive.profile_store import ProfileStore

__all__ = [
    "PreferenceLearner",
    "ABTestResult",
    "ProfileStore",
]
