"""
Countdown and progress tracking for an in-progress delivery.

The ETA window (start and end) is captured once per in-progress episode and
stays fixed; later ETA recomputation does not move it.
"""

import math
from dataclasses import dataclass
from typing import Optional


@dataclass
class CountdownTracker:
    """ETA window plus the countdown/progress derived from it (epoch seconds)."""
    eta_start: Optional[float] = None
    eta_end: Optional[float] = None
    countdown_seconds: Optional[int] = None
    progress_percent: float = 0.0

    @property
    def is_armed(self) -> bool:
        return self.eta_start is not None and self.eta_end is not None

    def begin(self, eta_minutes: int, now: float) -> bool:
        """
        Capture the ETA window if this episode has none yet.

        Returns:
            True when a new window was captured
        """
        if self.is_armed:
            return False
        self.eta_start = now
        self.eta_end = now + eta_minutes * 60
        self.countdown_seconds = eta_minutes * 60
        self.progress_percent = 0.0
        return True

    def refresh(self, now: float) -> None:
        """Recompute countdown and progress for the current time."""
        if not self.is_armed:
            return
        self.countdown_seconds = seconds_left(self.eta_end, now)
        self.progress_percent = progress_percent(self.eta_start, self.eta_end, now)

    def reset(self) -> None:
        self.eta_start = None
        self.eta_end = None
        self.countdown_seconds = None
        self.progress_percent = 0.0


def seconds_left(eta_end: float, now: float) -> int:
    """
    Whole seconds until ``eta_end``, never negative.
    Rounds half-up but never reports 0 before ``eta_end`` is reached.
    """
    remaining = eta_end - now
    if remaining <= 0:
        return 0
    return max(1, math.floor(remaining + 0.5))


def progress_percent(eta_start: float, eta_end: float, now: float) -> float:
    """Elapsed share of the ETA window, clamped to [0, 100]."""
    window = eta_end - eta_start
    if window <= 0:
        # Zero-length window: already at (or past) the destination
        return 100.0
    return min(100.0, max(0.0, (now - eta_start) / window * 100))
