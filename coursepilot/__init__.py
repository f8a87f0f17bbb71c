"""
coursepilot: course structuring and study planning core.

Turns an ordered list of videos into coherent, duration-balanced modules
and a dated study plan with spaced reviews, and learns its defaults from
user feedback.
"""

from coursepilot.pipeline import CoursePlanner, PlanningRun

__all__ = ["CoursePlanner", "PlanningRun"]

__version__ = "0.1.0"
