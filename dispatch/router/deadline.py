"""Wall-clock budget threaded through evaluate -> orchestrator -> retry -> client."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from dispatch.errors import DeadlineExceeded


@dataclass(frozen=True)
class Deadline:
    """An absolute expiry on a monotonic clock."""

    expires_at: float
    clock: Callable[[], float] = field(default=time.monotonic, repr=False, compare=False)

    @classmethod
    def after(cls, seconds: float, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        return cls(expires_at=clock() + seconds, clock=clock)

    @classmethod
    def optional(cls, seconds: Optional[float]) -> Optional["Deadline"]:
        """Build a deadline only when a positive budget is given."""
        if seconds is None or seconds <= 0:
            return None
        return cls.after(seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self.clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def check(self, what: str = "request") -> None:
        if self.expired:
            raise DeadlineExceeded(f"Deadline exceeded before {what}")
