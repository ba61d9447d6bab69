"""Wall-clock source for the pet engine.

All engine code takes time as an explicit epoch-millisecond integer. The
service layer obtains it from a ``Clock`` so tests can pin the instant.
"""

import time
from collections.abc import Callable

Clock = Callable[[], int]

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE


def system_clock() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start_ms: int = 0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, *, minutes: float = 0, hours: float = 0) -> int:
        self.now_ms += int(minutes * MS_PER_MINUTE + hours * MS_PER_HOUR)
        return self.now_ms
