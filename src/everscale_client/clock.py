"""
Clock with an adjustable offset.

Message expiration is computed against this clock so that a skewed local
clock can be corrected without touching the system time.
"""

import time


class Clock:
    """Wall clock shifted by ``offset`` milliseconds."""

    def __init__(self, offset: int = 0):
        self._offset = int(offset)

    @property
    def offset(self) -> int:
        return self._offset

    def update_offset(self, offset: int) -> None:
        self._offset = int(offset)

    def now_ms(self) -> int:
        """Adjusted current time in milliseconds."""
        return int(time.time() * 1000) + self._offset

    def now(self) -> float:
        """Adjusted current time in seconds."""
        return self.now_ms() / 1000.0

    def __repr__(self) -> str:
        return f"Clock(offset={self._offset})"
