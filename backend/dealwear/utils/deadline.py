"""Wall-clock budget shared by the stages of one search request."""

from __future__ import annotations

import time
from collections.abc import Callable


class Deadline:
    """A fixed point in time measured on a monotonic clock.

    Stages ask for ``remaining()`` and size their own timeouts from it, so
    retries and fallbacks never re-grant a full budget.
    """

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def budget(self, cap: float) -> float:
        """Timeout for a sub-stage: the smaller of ``cap`` and what is left."""
        return min(cap, self.remaining())
