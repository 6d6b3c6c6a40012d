"""
State handling: reconciliation of request outcomes and the replaying publisher.
"""

from .publisher import Subscription, UpdatePublisher
from .reconciler import reconcile, unreachable_state

__all__ = [
    "Subscription",
    "UpdatePublisher",
    "reconcile",
    "unreachable_state",
]
