from __future__ import annotations

from enum import Enum


class PickupStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# No further status changes once a request reaches one of these.
TERMINAL_STATUSES = frozenset({PickupStatus.COMPLETED, PickupStatus.CANCELLED})
