"""
Delivery Fee Calculator (Domain Logic).

Pure function from (order context, pricing snapshot) to a fee breakdown.
No I/O, no clock, no hidden configuration: everything arrives as arguments.

Order of evaluation:
1. Base fee (waived at or above the free-delivery threshold)
2. Distance fee beyond the free distance
3. Remote-distance surcharge
4. Zone surcharge (active zones only)
5. Multi-stop surcharge
6. Time multiplier (time slot > holiday > weekend > none, never stacked)
7. Total, rounded half-up to the cent
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from backend.app.core.exceptions import ValidationError, ConfigInactiveError
from backend.app.domain.pricing.holidays import HolidayCalendar, NoHolidays
from backend.app.domain.pricing.types import (
    FeeBreakdown, OrderContext, PricingConfigData, PricingSnapshot,
    TimeSlotRule, ZoneRule, to_decimal,
)
from backend.app.models.commission_enums import MultiplierSource

CENT = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")

SATURDAY, SUNDAY = 5, 6


def quantize_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _validate_context(context: OrderContext) -> Tuple[Decimal, Decimal, int]:
    subtotal = to_decimal(context.subtotal, "subtotal")
    if subtotal < 0:
        raise ValidationError("subtotal", "must be >= 0", context.subtotal)

    distance_km = to_decimal(context.distance_km, "distance_km")
    if distance_km < 0:
        raise ValidationError("distance_km", "must be >= 0", context.distance_km)

    stop_count = context.stop_count
    if isinstance(stop_count, bool) or not isinstance(stop_count, int):
        raise ValidationError("stop_count", "must be an integer", stop_count)
    if stop_count < 1:
        raise ValidationError("stop_count", "must be >= 1", stop_count)

    if context.placed_at is None:
        raise ValidationError("placed_at", "is required")

    return subtotal, distance_km, stop_count


def resolve_time_multiplier(
    context: OrderContext,
    config: PricingConfigData,
    time_slots: Iterable[TimeSlotRule],
    holiday_calendar: HolidayCalendar,
) -> Tuple[Decimal, MultiplierSource, Optional[str]]:
    """
    Pick the single multiplier for the order time.

    Overlapping slots: highest multiplier wins, then slot name for a stable label.
    """
    moment = context.placed_at.time()
    matching = [slot for slot in time_slots if slot.is_active and slot.covers(moment)]
    if matching:
        best = min(matching, key=lambda slot: (-slot.multiplier, slot.name))
        return best.multiplier, MultiplierSource.TIME_SLOT, best.name

    day = context.placed_at.date()
    if holiday_calendar.is_holiday(day):
        return config.holiday_multiplier, MultiplierSource.HOLIDAY, None
    if day.weekday() in (SATURDAY, SUNDAY):
        return config.weekend_multiplier, MultiplierSource.WEEKEND, None
    return ONE, MultiplierSource.NONE, None


def _resolve_zone(zone_id: Optional[int], zones: Iterable[ZoneRule]) -> Optional[ZoneRule]:
    if zone_id is None:
        return None
    for zone in zones:
        if zone.id == zone_id and zone.is_active:
            return zone
    return None


def compute(
    order_context: OrderContext,
    pricing_config: Optional[PricingConfigData],
    time_slots: Iterable[TimeSlotRule] = (),
    zones: Iterable[ZoneRule] = (),
    holiday_calendar: Optional[HolidayCalendar] = None,
) -> FeeBreakdown:
    """
    Compute the delivery fee for one order.

    Raises:
        ConfigInactiveError: If the config is missing or inactive.
        ValidationError: If an order field is out of range (names the field).
    """
    if pricing_config is None or not pricing_config.is_active:
        raise ConfigInactiveError()

    subtotal, distance_km, stop_count = _validate_context(order_context)
    calendar = holiday_calendar or NoHolidays()
    config = pricing_config

    base_fee = ZERO if subtotal >= config.free_delivery_threshold else config.base_fee
    distance_fee = max(ZERO, distance_km - config.max_free_distance_km) * config.price_per_km
    remote_fee = config.remote_zone_fee if distance_km > config.remote_zone_distance_km else ZERO

    zone = _resolve_zone(order_context.zone_id, zones)
    zone_fee = zone.fee if zone else ZERO

    multi_stop_fee = (stop_count - 1) * config.multi_stop_fee

    multiplier, source, slot_name = resolve_time_multiplier(order_context, config, time_slots, calendar)

    subtotal_fee = base_fee + distance_fee + remote_fee + zone_fee + multi_stop_fee
    total_fee = quantize_money(subtotal_fee * multiplier)

    return FeeBreakdown(
        base_fee=base_fee,
        distance_fee=distance_fee,
        remote_fee=remote_fee,
        zone_fee=zone_fee,
        multi_stop_fee=multi_stop_fee,
        subtotal_fee=subtotal_fee,
        time_multiplier=multiplier,
        total_fee=total_fee,
        multiplier_source=source,
        time_slot_name=slot_name,
        zone_name=zone.name if zone else None,
        distance_km=distance_km,
        stop_count=stop_count,
    )


def compute_from_snapshot(
    order_context: OrderContext,
    snapshot: PricingSnapshot,
    holiday_calendar: Optional[HolidayCalendar] = None,
) -> FeeBreakdown:
    return compute(order_context, snapshot.config, snapshot.time_slots, snapshot.zones, holiday_calendar)
