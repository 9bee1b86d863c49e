"""
Cooperative cancellation for a single search call.
"""

from __future__ import annotations

import time


class CancellationToken:
    """
    Cancelled explicitly via ``cancel()`` or implicitly once ``timeout`` elapses.

    Checked before each embedding dispatch; calls already in flight are left
    to finish.
    """

    def __init__(self, timeout: float | None = None) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be >= 0")
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        if self._cancelled:
            return 0.0
        return max(0.0, self._deadline - time.monotonic())
