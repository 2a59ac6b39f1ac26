# phpayroll/engine/wages.py
"""Rate derivation and pay-frequency helpers shared by the engine and YTD."""

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from .exceptions import PayrollInputError
from .types import PayFrequency, WageType, ZERO

CENT = Decimal('0.01')
RATE_PLACES = Decimal('0.0001')
MINUTE_RATE_PLACES = Decimal('0.000001')
SIXTY = Decimal('60')

PERIODS_PER_MONTH = {
    PayFrequency.MONTHLY: Decimal('1'),
    PayFrequency.SEMI_MONTHLY: Decimal('2'),
    PayFrequency.BI_WEEKLY: Decimal('2.17'),
    PayFrequency.WEEKLY: Decimal('4.33'),
}

FREQUENCY_LABELS = {
    PayFrequency.MONTHLY: 'Monthly',
    PayFrequency.SEMI_MONTHLY: 'Semi-Monthly',
    PayFrequency.BI_WEEKLY: 'Bi-Weekly',
    PayFrequency.WEEKLY: 'Weekly',
}


def money(value):
    """Rounds to centavos, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value):
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def periods_per_month(pay_frequency):
    try:
        return PERIODS_PER_MONTH[PayFrequency(pay_frequency)]
    except (KeyError, ValueError):
        return Decimal('2')


@dataclass(frozen=True)
class DerivedRates:
    daily: Decimal
    hourly: Decimal
    minute: Decimal
    monthly_salary_credit: Decimal


def derive_rates(wage_type, base_rate, work_days_per_month=26, hours_per_day=8,
                 salary_credit_days=26, daily_rate_override=None):
    """
    Daily, hourly and per-minute rates from a wage type and base rate.
    A daily rate override replaces the derived daily rate for one day.
    """
    base_rate = to_decimal(base_rate)
    hours = Decimal(hours_per_day)
    if base_rate < ZERO:
        raise PayrollInputError(f'Base rate cannot be negative: {base_rate}')
    if hours <= ZERO or work_days_per_month <= 0:
        raise PayrollInputError('Standard hours and work days must be positive')

    if daily_rate_override is not None:
        daily = to_decimal(daily_rate_override)
    elif wage_type == WageType.MONTHLY:
        daily = base_rate / Decimal(work_days_per_month)
    elif wage_type == WageType.DAILY:
        daily = base_rate
    elif wage_type == WageType.HOURLY:
        daily = base_rate * hours
    else:
        raise PayrollInputError(f'Unknown wage type: {wage_type}')

    daily = daily.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)
    hourly = (daily / hours).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)
    minute = (hourly / SIXTY).quantize(MINUTE_RATE_PLACES, rounding=ROUND_HALF_UP)
    return DerivedRates(
        daily=daily,
        hourly=hourly,
        minute=minute,
        monthly_salary_credit=(daily * salary_credit_days).quantize(CENT, rounding=ROUND_HALF_UP),
    )


def profile_rates(profile, salary_credit_days=26, daily_rate_override=None):
    return derive_rates(
        profile.wage_type, profile.base_rate,
        work_days_per_month=profile.standard_work_days_per_month,
        hours_per_day=profile.standard_hours_per_day,
        salary_credit_days=salary_credit_days,
        daily_rate_override=daily_rate_override,
    )


def override_monthly_equivalent(override, work_days_per_month=26, hours_per_day=8):
    """Monthly wage implied by a declared statutory override."""
    base = to_decimal(override.base_rate)
    if override.wage_type == WageType.MONTHLY:
        return base
    if override.wage_type == WageType.DAILY:
        return base * Decimal(work_days_per_month)
    return base * Decimal(hours_per_day) * Decimal(work_days_per_month)


def tax_period_number(period_start, pay_frequency):
    """
    Period number within the tax year, from the period start date.
    Semi-monthly: the 1st-15th is the first half of a month, the rest the second.
    """
    ppm = periods_per_month(pay_frequency)
    within_month = 1
    if ppm == 2:
        within_month = 1 if period_start.day <= 15 else 2
    elif ppm >= 4:
        within_month = min(math.ceil(period_start.day / 7), int(ppm))
    previous_months = (period_start.month - 1) * ppm
    return max(1, int(previous_months + within_month))


def minutes_amount(minutes, hourly_rate, multiplier=Decimal('1')):
    """Pay for a number of minutes at an hourly rate and multiplier, unrounded."""
    return Decimal(minutes) / SIXTY * hourly_rate * multiplier
