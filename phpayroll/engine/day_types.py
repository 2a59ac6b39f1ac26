# phpayroll/engine/day_types.py
"""
Day type resolution against the company calendar.

The calendar decides holidays. Rest days for pay purposes come from each
attendance record's stored day type; the weekday fallback here only covers
dates with no stored record.
"""

from datetime import datetime
from decimal import Decimal

from .attendance import MANILA
from .types import DayType, DayTypeResolution, HolidayInfo

DAY_TYPE_MULTIPLIERS = {
    DayType.WORKDAY: Decimal('1.0'),
    DayType.REST_DAY: Decimal('1.3'),
    DayType.REGULAR_HOLIDAY: Decimal('2.0'),
    DayType.SPECIAL_HOLIDAY: Decimal('1.3'),
    DayType.SPECIAL_WORKING: Decimal('1.0'),
}

# Holiday falling on the employee's rest day
HOLIDAY_REST_DAY_MULTIPLIERS = {
    DayType.REGULAR_HOLIDAY: Decimal('2.6'),
    DayType.SPECIAL_HOLIDAY: Decimal('1.5'),
}

DEFAULT_REST_DAYS = frozenset({5, 6})  # Saturday, Sunday


def date_key(value, tz=MANILA):
    """ISO date of a date or datetime, read in local time for aware datetimes."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        value = value.date()
    return value.isoformat()


def build_event_map(events, tz=MANILA):
    """
    Keys calendar events by local date. Each event needs date, id, name and
    day_type; multiplier and rest_day_multiplier are optional.
    """
    event_map = {}
    for event in events:
        day_type = DayType(event.day_type)
        event_map[date_key(event.date, tz)] = HolidayInfo(
            id=event.id,
            name=event.name,
            day_type=day_type,
            multiplier=getattr(event, 'multiplier', None),
            rest_day_multiplier=getattr(event, 'rest_day_multiplier', None),
        )
    return event_map


def resolve_day_type(day, default_rest_days=DEFAULT_REST_DAYS, calendar_events=None,
                     rest_day_multiplier=None, tz=MANILA):
    """
    Holiday events win over the weekday. Without an event the date is a
    REST_DAY when its weekday (Monday is 0) is in default_rest_days,
    otherwise a WORKDAY.
    """
    event = (calendar_events or {}).get(date_key(day, tz))
    if event is not None:
        multiplier = event.multiplier
        if multiplier is None:
            multiplier = DAY_TYPE_MULTIPLIERS[event.day_type]
        rest_multiplier = event.rest_day_multiplier
        if rest_multiplier is None:
            rest_multiplier = HOLIDAY_REST_DAY_MULTIPLIERS.get(event.day_type, multiplier)
        return DayTypeResolution(
            day_type=event.day_type,
            holiday_id=event.id,
            holiday_name=event.name,
            multiplier=Decimal(multiplier),
            rest_day_multiplier=Decimal(rest_multiplier),
        )

    weekday = day.astimezone(tz).weekday() if isinstance(day, datetime) and day.tzinfo else day.weekday()
    if weekday in default_rest_days:
        if rest_day_multiplier is None:
            rest_day_multiplier = DAY_TYPE_MULTIPLIERS[DayType.REST_DAY]
        return DayTypeResolution(day_type=DayType.REST_DAY, multiplier=rest_day_multiplier)
    return DayTypeResolution(day_type=DayType.WORKDAY)
