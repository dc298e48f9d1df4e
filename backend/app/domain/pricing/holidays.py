"""
Holiday calendar collaborators for the fee calculator.
"""

from datetime import date
from typing import Iterable, Protocol

from backend.app.core.exceptions import ValidationError


class HolidayCalendar(Protocol):
    def is_holiday(self, day: date) -> bool: ...


class FixedHolidayCalendar:
    """
    Recurring holidays given as MM-DD strings (same date every year).

    Defaults come from settings.holiday_dates.
    """

    def __init__(self, month_days: Iterable[str]):
        parsed = set()
        for entry in month_days:
            try:
                month, day = (int(part) for part in entry.split("-"))
                date(2000, month, day)  # leap year, so 02-29 is accepted
            except ValueError:
                raise ValidationError("holiday_dates", "expected MM-DD", entry)
            parsed.add((month, day))
        self._month_days = frozenset(parsed)

    def is_holiday(self, day: date) -> bool:
        return (day.month, day.day) in self._month_days


class NoHolidays:
    def is_holiday(self, day: date) -> bool:
        return False


def default_holiday_calendar() -> FixedHolidayCalendar:
    from backend.app.core.config import settings
    return FixedHolidayCalendar(settings.holiday_dates)
