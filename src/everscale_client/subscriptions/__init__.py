"""
Per-address subscriptions and pending message tracking.
"""

from .controller import (
    DEFAULT_EXPIRY_TOLERANCE,
    DEFAULT_RESUBSCRIBE_INTERVAL,
    PendingMessage,
    Subscription,
    SubscriptionController,
    SubscriptionSnapshot,
)

__all__ = [
    "DEFAULT_EXPIRY_TOLERANCE",
    "DEFAULT_RESUBSCRIBE_INTERVAL",
    "PendingMessage",
    "Subscription",
    "SubscriptionController",
    "SubscriptionSnapshot",
]
