from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class Deadline:
    """Absolute end of a run, fixed once when the run starts."""

    ends_at: float
    clock: Callable[[], float] = field(default=time.monotonic, compare=False)

    @classmethod
    def after(cls, seconds: float, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        return cls(ends_at=clock() + seconds, clock=clock)

    def remaining_ms(self) -> int:
        return max(0, int((self.ends_at - self.clock()) * 1000))

    @property
    def expired(self) -> bool:
        return self.clock() >= self.ends_at

    def timeout(self, cap_ms: int) -> int:
        """Per-operation timeout: the cap, shortened to what is left of the run."""

        return min(cap_ms, self.remaining_ms())
