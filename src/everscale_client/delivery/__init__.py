"""
Message delivery with retries and local fallback.
"""

from .coordinator import (
    LOCAL_MESSAGE_TIMEOUT,
    SendCoordinator,
    SendOperation,
    SendOutcome,
    SendState,
    best_effort_decode,
    timeout_schedule,
)

__all__ = [
    "LOCAL_MESSAGE_TIMEOUT",
    "SendCoordinator",
    "SendOperation",
    "SendOutcome",
    "SendState",
    "best_effort_decode",
    "timeout_schedule",
]
