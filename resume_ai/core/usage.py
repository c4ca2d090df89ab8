"""
In-process request usage tracking.

Counts orchestrated requests against an assumed daily request cap. The
counter lives only as long as the tracker object; it is not persisted and
separate processes each keep their own count.
"""

import logging
import threading
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# 3 free models x 50 requests/day
DEFAULT_DAILY_CAP = 150


@dataclass(frozen=True)
class UsageSnapshot:
    """Point-in-time view of the tracker."""
    count: int
    percent: float
    recommendation: str


def _recommendation(percent: float, daily_cap: int) -> str:
    if percent > 90:
        return f"URGENT: Consider upgrading to a paid plan - you're using all {daily_cap} daily requests"
    if percent > 75:
        return "WARNING: High usage detected - paid plan recommended for production"
    if percent > 50:
        return "MODERATE: Monitor usage - may need upgrade soon"
    return "NORMAL: Current free tier sufficient for now"


class UsageTracker:
    """Request counter shared by everything holding the same instance."""

    def __init__(self, daily_cap: int = DEFAULT_DAILY_CAP):
        if daily_cap <= 0:
            raise ValueError("daily_cap must be > 0")
        self.daily_cap = daily_cap
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    def increment(self) -> int:
        """Count one request and return the new total."""
        with self._lock:
            self._count += 1
            return self._count

    def reset(self) -> None:
        """Set the counter back to zero."""
        with self._lock:
            self._count = 0
        logger.info("Daily usage counter reset")

    def snapshot(self) -> UsageSnapshot:
        """Return the count and its share of the assumed daily cap (capped at 100%)."""
        count = self._count
        percent = min(count / self.daily_cap * 100, 100.0)
        return UsageSnapshot(
            count=count,
            percent=percent,
            recommendation=_recommendation(percent, self.daily_cap)
        )
