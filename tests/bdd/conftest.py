"""
Pytest configuration for BDD tests.

This module provides shared fixtures and configuration for the
pytest-bdd behavior-driven tests of the course planner.
"""

import sys

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def setup_logging():
    """Configure logging for BDD tests."""
    # Remove default handler
    logger.remove()

    # Add test handler
    logger.add(
        sys.stderr,
        level="DEBUG",
        format="<level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    )

    yield

    # Cleanup
    logger.remove()


def pytest_bdd_apply_tag(tag, function):
    """
    Apply pytest markers based on Gherkin tags.

    Tags in the feature file become pytest markers:
    - @structuring -> pytest.mark.structuring
    - @critical -> pytest.mark.critical
    - @slow -> pytest.mark.slow
    """
    marker = getattr(pytest.mark, tag)
    return marker(function)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "structuring: Tests for clustering and duration balancing"
    )
    config.addinivalue_line(
        "markers", "planning: Tests for session optimization and reviews"
    )
    config.addinivalue_line(
        "markers", "adaptive: Tests for preference learning"
    )
    config.addinivalue_line(
        "markers", "critical: Critical path tests"
    )
