"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from coursepilot.core.models import PlanSettings, UserPreferenceProfile, VideoItem  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "bdd: Behaviour scenarios")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "bdd" in str(item.fspath):
            item.add_marker(pytest.mark.bdd)


def make_items(titles, durations=None):
    """VideoItems v0, v1, ... with the given titles and durations."""
    durations = durations or [600] * len(titles)
    return [VideoItem(id=f"v{i}", title=t, duration=d) for i, (t, d) in enumerate(zip(titles, durations))]


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def networking_items():
    """A small course with two clear topics and an intro."""
    titles = [
        "Introduction to Networking",
        "Networking Basics Overview",
        "TCP Handshake Explained",
        "TCP Congestion Control",
        "TCP Retransmission Timers",
        "Routing Tables and Routing Protocols",
        "OSPF Routing Deep Dive",
        "BGP Routing Between Networks",
        "Advanced Routing Policy",
        "Course Wrap Up",
    ]
    durations = [420, 540, 900, 1200, 780, 960, 1500, 1320, 1100, 300]
    return make_items(titles, durations)


@pytest.fixture
def scenario_items():
    """Five videos: two intros, two advanced, one outro."""
    return make_items(
        ["Intro A", "Intro B", "Advanced X", "Advanced Y", "Outro"],
        [300, 280, 900, 950, 200],
    )


@pytest.fixture
def scenario_settings():
    """1200 s sessions with a 20 % buffer (1440 s cap)."""
    return PlanSettings(start_date=date(2025, 1, 6), session_minutes=20, buffer_percent=20)


@pytest.fixture
def plan_settings():
    return PlanSettings(start_date=date(2025, 1, 6), sessions_per_week=3, session_minutes=60)


@pytest.fixture
def default_profile():
    return UserPreferenceProfile()


@pytest.fixture
def item_factory():
    """Build VideoItems from titles and optional durations."""
    return make_items
