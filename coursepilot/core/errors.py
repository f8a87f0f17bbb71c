"""
Error taxonomy for the planning core.

Only InputError is meant to reach callers as a hard failure. Clustering-level
errors are recovered by the strategy selector and reported through metadata.
"""


class CoursePilotError(Exception):
    """Base class for all planning core errors."""
    pass


class InputError(CoursePilotError):
    """Raised when the item list or plan settings are empty or invalid."""
    pass


class ClusteringFailure(CoursePilotError):
    """Raised when a clustering strategy could not produce a result."""

    def __init__(self, strategy: str, reason: str):
        super().__init__(f"{strategy} clustering failed: {reason}")
        self.strategy = strategy
        self.reason = reason


class InsufficientDataError(ClusteringFailure):
    """Raised when there are too few items for the requested parameters."""
    pass


class PhaseTimeout(CoursePilotError, TimeoutError):
    """Raised when a pipeline phase exceeds its time budget."""

    def __init__(self, phase: str, budget_seconds: float):
        super().__init__(f"Phase '{phase}' exceeded its {budget_seconds:.2f}s budget")
        self.phase = phase
        self.budget_seconds = budget_seconds


class ProfileCorruptionError(CoursePilotError):
    """Raised when a stored preference profile cannot be read."""
    pass


class RunCancelled(CoursePilotError):
    """Raised when a run is cancelled between or inside phases."""
    pass
