"""
Fee Calculator Tests.

Pure pricing function: no database, no app.
"""

import pytest
from datetime import datetime, time
from decimal import Decimal

from backend.app.core.exceptions import ValidationError, ConfigInactiveError
from backend.app.domain.pricing.fee_calculator import compute, compute_from_snapshot
from backend.app.domain.pricing.holidays import FixedHolidayCalendar
from backend.app.domain.pricing.types import (
    OrderContext, PricingConfigData, PricingSnapshot, TimeSlotRule, ZoneRule,
)
from backend.app.models.commission_enums import MultiplierSource

WEDNESDAY_NOON = datetime(2026, 10, 14, 12, 0)
SATURDAY_NOON = datetime(2026, 10, 17, 12, 0)
CHRISTMAS_FRIDAY = datetime(2026, 12, 25, 12, 0)
BOXING_DAY_SATURDAY = datetime(2026, 12, 26, 12, 0)

HOLIDAYS = FixedHolidayCalendar(["01-01", "07-01", "12-25", "12-26"])


def make_config(**overrides) -> PricingConfigData:
    values = {
        "base_fee": Decimal("2.99"),
        "price_per_km": Decimal("0.50"),
        "free_delivery_threshold": Decimal("25.00"),
        "max_free_distance_km": Decimal("5"),
        "remote_zone_fee": Decimal("5.00"),
        "remote_zone_distance_km": Decimal("15"),
        "multi_stop_fee": Decimal("3.00"),
        "rush_hour_multiplier": Decimal("1.5"),
        "weekend_multiplier": Decimal("1.2"),
        "holiday_multiplier": Decimal("1.3"),
    }
    values.update(overrides)
    return PricingConfigData(**values)


def order(subtotal="20", distance_km="3", placed_at=WEDNESDAY_NOON, **kwargs) -> OrderContext:
    return OrderContext(subtotal=Decimal(subtotal), distance_km=Decimal(distance_km), placed_at=placed_at, **kwargs)


def slot(name, start, end, multiplier, is_active=True) -> TimeSlotRule:
    return TimeSlotRule(name=name, start_time=start, end_time=end, multiplier=Decimal(multiplier), is_active=is_active)


def test_free_delivery_within_free_distance():
    """Subtotal above threshold and short distance costs nothing."""
    result = compute(order(subtotal="30", distance_km="3"), make_config())

    assert result.base_fee == 0
    assert result.distance_fee == 0
    assert result.total_fee == Decimal("0.00")
    assert result.time_multiplier == 1


def test_long_distance_remote_order():
    result = compute(order(subtotal="20", distance_km="20"), make_config())

    assert result.base_fee == Decimal("2.99")
    assert result.distance_fee == Decimal("7.5")
    assert result.remote_fee == Decimal("5")
    assert result.total_fee == Decimal("15.49")
    assert result.multiplier_source == MultiplierSource.NONE


def test_threshold_boundary_waives_base_fee():
    result = compute(order(subtotal="25.00", distance_km="1"), make_config())
    assert result.base_fee == 0

    just_below = compute(order(subtotal="24.99", distance_km="1"), make_config())
    assert just_below.base_fee == Decimal("2.99")


def test_remote_fee_applies_strictly_beyond_distance():
    at_limit = compute(order(distance_km="15"), make_config())
    beyond = compute(order(distance_km="15.01"), make_config())

    assert at_limit.remote_fee == 0
    assert beyond.remote_fee == Decimal("5.00")


def test_total_never_decreases_with_distance():
    config = make_config()
    slots = [slot("lunch", time(11, 0), time(13, 0), "1.25")]
    previous = Decimal("-1")
    for tenths in range(0, 400, 7):
        distance = Decimal(tenths) / 10
        total = compute(order(distance_km=str(distance)), config, slots).total_fee
        assert total >= previous
        previous = total


def test_multi_stop_surcharge():
    result = compute(order(distance_km="2", stop_count=3), make_config())

    assert result.multi_stop_fee == Decimal("6.00")
    assert result.total_fee == Decimal("8.99")


def test_active_zone_adds_fee():
    zones = [ZoneRule(id=1, name="Downtown", fee=Decimal("1.50")), ZoneRule(id=2, name="Airport", fee=Decimal("4.00"), is_active=False)]

    downtown = compute(order(zone_id=1), make_config(), zones=zones)
    airport = compute(order(zone_id=2), make_config(), zones=zones)
    unknown = compute(order(zone_id=99), make_config(), zones=zones)

    assert downtown.zone_fee == Decimal("1.50")
    assert downtown.zone_name == "Downtown"
    assert downtown.total_fee == Decimal("4.49")
    assert airport.zone_fee == 0
    assert unknown.zone_fee == 0


def test_overlapping_slots_take_highest_multiplier():
    slots = [
        slot("lunch", time(11, 0), time(14, 0), "1.2"),
        slot("peak", time(12, 0), time(13, 0), "1.5"),
        slot("disabled", time(0, 0), time(23, 59), "3.0", is_active=False),
    ]
    result = compute(order(), make_config(), slots)

    assert result.time_multiplier == Decimal("1.5")
    assert result.time_slot_name == "peak"
    assert result.multiplier_source == MultiplierSource.TIME_SLOT
    assert result.total_fee == Decimal("4.49")  # 2.99 * 1.5 = 4.485


def test_equal_multipliers_pick_name_deterministically():
    slots = [slot("b-slot", time(11, 0), time(13, 0), "1.5"), slot("a-slot", time(12, 0), time(12, 30), "1.5")]
    assert compute(order(), make_config(), slots).time_slot_name == "a-slot"
    assert compute(order(), make_config(), list(reversed(slots))).time_slot_name == "a-slot"


def test_slot_wrapping_midnight():
    night = [slot("night", time(22, 0), time(2, 0), "2.0")]

    late = compute(order(placed_at=datetime(2026, 10, 14, 23, 30)), make_config(), night)
    early = compute(order(placed_at=datetime(2026, 10, 15, 1, 15)), make_config(), night)
    morning = compute(order(placed_at=datetime(2026, 10, 15, 2, 1)), make_config(), night)

    assert late.time_multiplier == Decimal("2.0")
    assert early.time_multiplier == Decimal("2.0")
    assert morning.time_multiplier == 1


def test_slot_bounds_are_inclusive():
    rush = [slot("evening rush", time(17, 0), time(19, 0), "1.5")]
    assert compute(order(placed_at=datetime(2026, 10, 14, 19, 0)), make_config(), rush).time_multiplier == Decimal("1.5")
    assert compute(order(placed_at=datetime(2026, 10, 14, 19, 0, 1)), make_config(), rush).time_multiplier == 1


def test_weekend_multiplier():
    result = compute(order(placed_at=SATURDAY_NOON), make_config(), holiday_calendar=HOLIDAYS)

    assert result.time_multiplier == Decimal("1.2")
    assert result.multiplier_source == MultiplierSource.WEEKEND


def test_holiday_beats_weekend():
    result = compute(order(placed_at=BOXING_DAY_SATURDAY), make_config(), holiday_calendar=HOLIDAYS)

    assert result.time_multiplier == Decimal("1.3")
    assert result.multiplier_source == MultiplierSource.HOLIDAY


def test_time_slot_beats_holiday():
    slots = [slot("lunch", time(11, 0), time(13, 0), "1.1")]
    result = compute(order(placed_at=CHRISTMAS_FRIDAY), make_config(), slots, holiday_calendar=HOLIDAYS)

    assert result.time_multiplier == Decimal("1.1")
    assert result.multiplier_source == MultiplierSource.TIME_SLOT


def test_no_calendar_means_no_holidays():
    result = compute(order(placed_at=CHRISTMAS_FRIDAY), make_config())
    assert result.multiplier_source == MultiplierSource.NONE


def test_total_rounds_half_up():
    slots = [slot("peak", time(0, 0), time(23, 59, 59), "1.5")]
    result = compute(order(), make_config(base_fee=Decimal("2.15")), slots)

    assert result.subtotal_fee * result.time_multiplier == Decimal("3.225")
    assert result.total_fee == Decimal("3.23")


@pytest.mark.parametrize("field,context", [
    ("distance_km", dict(distance_km="-0.1")),
    ("subtotal", dict(subtotal="-1")),
    ("distance_km", dict(distance_km="NaN")),
])
def test_out_of_range_values_name_the_field(field, context):
    with pytest.raises(ValidationError) as exc_info:
        compute(order(**context), make_config())
    assert exc_info.value.field == field
    assert exc_info.value.error_code == "ERR_INVALID_FIELD"


@pytest.mark.parametrize("stop_count", [0, -2, 1.5])
def test_invalid_stop_count(stop_count):
    with pytest.raises(ValidationError) as exc_info:
        compute(order(stop_count=stop_count), make_config())
    assert exc_info.value.field == "stop_count"


def test_inactive_config_blocks_pricing():
    with pytest.raises(ConfigInactiveError) as exc_info:
        compute(order(), make_config(is_active=False))
    assert exc_info.value.error_code == "ERR_PRICING_INACTIVE"


def test_missing_config_blocks_pricing():
    with pytest.raises(ConfigInactiveError):
        compute_from_snapshot(order(), PricingSnapshot(config=None))


def test_inactive_config_checked_before_fields():
    """An operator must publish pricing first; field errors come after."""
    with pytest.raises(ConfigInactiveError):
        compute(order(distance_km="-5"), None)
