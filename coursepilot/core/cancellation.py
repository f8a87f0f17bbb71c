"""
Cooperative cancellation and per-phase time budgets.

A run owns one CancellationToken. Phases create a PhaseBudget and call
``check()`` from their loops; both raise instead of returning partial results.
"""
from __future__ import annotations

import threading
import time

from coursepilot.core.errors import PhaseTimeout, RunCancelled


class CancellationToken:
    """Thread-safe flag that a host sets to stop an in-flight run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, phase: str = "") -> None:
        if self._event.is_set():
            raise RunCancelled(f"Run cancelled{f' during {phase}' if phase else ''}")


class PhaseBudget:
    """Wall-clock budget for one phase, also honouring the run's token."""

    def __init__(
        self,
        phase: str,
        seconds: float | None,
        token: CancellationToken | None = None,
    ):
        self.phase = phase
        self.seconds = seconds
        self.token = token
        self.started = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started

    def check(self) -> None:
        """Raise RunCancelled or PhaseTimeout when the phase must stop."""
        if self.token is not None:
            self.token.raise_if_cancelled(self.phase)
        if self.seconds is not None and self.elapsed > self.seconds:
            raise PhaseTimeout(self.phase, self.seconds)


def unbounded(phase: str = "unbounded") -> PhaseBudget:
    """Budget that never times out, for direct use of a single component."""
    return PhaseBudget(phase, None)
