"""
Pricing value types.

Immutable inputs and outputs of the fee calculator. Plain dataclasses so the
calculator stays free of any database or framework state.
"""

from dataclasses import dataclass, field
from datetime import datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

from backend.app.core.exceptions import ValidationError
from backend.app.models.commission_enums import MultiplierSource


def to_decimal(value: Any, field_name: str) -> Decimal:
    """Convert a number to Decimal via its string form, rejecting NaN/inf."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(field_name, "must be a number", value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(field_name, "must be a number", value)
    if not result.is_finite():
        raise ValidationError(field_name, "must be finite", value)
    return result


@dataclass(frozen=True)
class PricingConfigData:
    """Snapshot of the active pricing configuration row."""
    base_fee: Decimal
    price_per_km: Decimal
    free_delivery_threshold: Decimal
    max_free_distance_km: Decimal
    remote_zone_fee: Decimal
    remote_zone_distance_km: Decimal
    multi_stop_fee: Decimal
    rush_hour_multiplier: Decimal = Decimal("1")
    weekend_multiplier: Decimal = Decimal("1")
    holiday_multiplier: Decimal = Decimal("1")
    is_active: bool = True
    id: Optional[int] = None
    name: str = "default"


@dataclass(frozen=True)
class TimeSlotRule:
    name: str
    start_time: time
    end_time: time
    multiplier: Decimal
    is_active: bool = True
    id: Optional[int] = None

    def covers(self, moment: time) -> bool:
        """Inclusive on both ends; start > end wraps past midnight."""
        if self.start_time <= self.end_time:
            return self.start_time <= moment <= self.end_time
        return moment >= self.start_time or moment <= self.end_time


@dataclass(frozen=True)
class ZoneRule:
    id: int
    name: str
    fee: Decimal
    is_active: bool = True


@dataclass(frozen=True)
class PricingSnapshot:
    """Config, slots and zones read together in one transaction."""
    config: Optional[PricingConfigData]
    time_slots: Tuple[TimeSlotRule, ...] = ()
    zones: Tuple[ZoneRule, ...] = ()
    taken_at: Optional[datetime] = None


@dataclass(frozen=True)
class OrderContext:
    subtotal: Any
    distance_km: Any
    placed_at: datetime
    stop_count: int = 1
    zone_id: Optional[int] = None
    order_id: Optional[str] = None


@dataclass(frozen=True)
class FeeBreakdown:
    base_fee: Decimal
    distance_fee: Decimal
    remote_fee: Decimal
    zone_fee: Decimal
    multi_stop_fee: Decimal
    subtotal_fee: Decimal
    time_multiplier: Decimal
    total_fee: Decimal
    multiplier_source: MultiplierSource = MultiplierSource.NONE
    time_slot_name: Optional[str] = None
    zone_name: Optional[str] = None
    distance_km: Decimal = field(default=Decimal("0"))
    stop_count: int = 1
