"""
Commission enumerations.
"""

import enum


class CommissionStatus(str, enum.Enum):
    """Commission record status enumeration."""
    PENDING = "pending"  # Created on first settlement, still mutable
    PAID = "paid"  # Driver paid out (terminal)
    CANCELLED = "cancelled"  # Voided by admin (terminal)

    @property
    def is_terminal(self) -> bool:
        return self is not CommissionStatus.PENDING


class MultiplierSource(str, enum.Enum):
    """Which rule produced the time multiplier of a fee quote."""
    TIME_SLOT = "time_slot"
    HOLIDAY = "holiday"
    WEEKEND = "weekend"
    NONE = "none"
