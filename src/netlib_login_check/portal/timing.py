from __future__ import annotations

from dataclasses import dataclass
from time import monotonic


@dataclass(frozen=True)
class Deadline:
    """
    Absolute point on the monotonic clock, passed down through every polling wait so nested waits
    (readiness -> disconnect clearing, resolver -> disconnect clearing) share one deadline.
    """

    at: float

    @classmethod
    def after_ms(cls, timeout_ms: float) -> "Deadline":
        return cls(at=monotonic() + max(0.0, float(timeout_ms)) / 1000)

    def remaining_ms(self) -> int:
        return max(0, int((self.at - monotonic()) * 1000))

    def expired(self) -> bool:
        return monotonic() >= self.at

    def clamp_ms(self, wait_ms: float) -> int:
        """Shorten a sleep so it never overshoots the deadline (minimum 1ms so loops progress)."""
        return max(1, min(int(wait_ms), self.remaining_ms()))
