# phpayroll/engine/lines.py
"""
Payslip line builders.

Each builder looks at the prepared attendance days (or the employee's
adjustments, penalties, statutory shares) and returns a list of lines,
empty when nothing applies. Amounts are summed per day at full precision
and rounded to centavos once per line.
"""

from decimal import Decimal

from .types import (
    AdjustmentSource, AdjustmentType, AttendanceSource, DayType, InstallmentSource,
    LineCategory, PayslipLine, WageType, ZERO,
)
from .wages import FREQUENCY_LABELS, SIXTY, minutes_amount, money, profile_rates

ONE = Decimal('1')
HUNDRED = Decimal('100')

SORT_ORDER = {
    'BASIC_PAY': 100,
    'REGULAR_HOLIDAY_WORKED': 110,
    'REGULAR_HOLIDAY_UNWORKED': 111,
    'SPECIAL_HOLIDAY_WORKED': 120,
    'REST_DAY_PREMIUM': 130,
    'OT_REGULAR': 200,
    'OT_REST_DAY': 210,
    'OT_REST_DAY_EXCESS': 211,
    'OT_HOLIDAY': 220,
    'OT_REGULAR_HOLIDAY': 221,
    'OT_SPECIAL_HOLIDAY': 222,
    'NIGHT_DIFF': 300,
    'ALLOWANCE': 400,
    'ADJUSTMENT_ADD': 800,
    'LATE_UT_DEDUCT': 1015,
    'ABSENT_DEDUCT': 1020,
    'SSS_EE': 1100,
    'SSS_ER': 1101,
    'PHILHEALTH_EE': 1110,
    'PHILHEALTH_ER': 1111,
    'PAGIBIG_EE': 1120,
    'PAGIBIG_ER': 1121,
    'WITHHOLDING_TAX': 1200,
    'PENALTY_INSTALLMENT': 1350,
    'ADJUSTMENT_DEDUCT': 1400,
}

# Manual earnings in these categories are reimbursed at cost, outside gross pay
NON_TAXABLE_ADJUSTMENT_CATEGORIES = {'REIMBURSEMENT'}


def fmt_quantity(value):
    return format(Decimal(value).normalize(), 'f')


def fmt_percent(multiplier):
    return fmt_quantity(multiplier * HUNDRED)


def day_rates(profile, day, salary_credit_days=26, use_day_override=True):
    override = day.source.daily_rate_override if use_day_override else None
    return profile_rates(profile, salary_credit_days, override)


def _source(days):
    return AttendanceSource(tuple(d.source.id for d in days if d.source.id is not None))


def is_covered_by_basic(profile, day):
    """Monthly salary already pays every scheduled workday, holiday or not."""
    return profile.wage_type == WageType.MONTHLY and day.stored_day_type.is_workday


def premium_day_minutes(profile, day):
    """
    Minutes worked on a holiday or rest day, split into (within the standard
    day, beyond it). Only overtime-eligible employees get the split.
    """
    worked = day.overtime_holiday_minutes or day.overtime_rest_day_minutes
    if not profile.is_ot_eligible:
        return worked, 0
    standard = int(profile.standard_hours_per_day) * 60
    return min(worked, standard), max(0, worked - standard)


# --- BASIC PAY AND ATTENDANCE DEDUCTIONS ---

def basic_pay_lines(profile, days, periods_per_month, use_day_override=True):
    base = profile_rates(profile)

    if profile.wage_type == WageType.MONTHLY:
        amount = money(profile.base_rate / periods_per_month)
        label = FREQUENCY_LABELS.get(profile.pay_frequency, 'Period')
        return [PayslipLine(
            category=LineCategory.BASIC_PAY,
            description=f'Basic Pay ({label})',
            amount=amount,
            sort_order=SORT_ORDER['BASIC_PAY'],
            quantity=ONE,
            rate=amount,
            rule_code='BASIC_PAY',
            rule_description='Monthly salary divided by pay periods per month',
        )]

    hours_per_day = Decimal(profile.standard_hours_per_day)
    quantity = ZERO
    total = ZERO
    contributing = []
    for day in days:
        if not day.effective_day_type.is_workday:
            continue
        rates = day_rates(profile, day, use_day_override=use_day_override)
        leave_hours = day.source.leave_hours
        if profile.wage_type == WageType.DAILY:
            if day.worked_minutes > 0:
                units = ONE
            elif day.is_paid_leave:
                units = Decimal(leave_hours) / hours_per_day if leave_hours else ONE
            else:
                continue
            total += rates.daily * units
        else:
            if day.worked_minutes > 0:
                ot_minutes = day.approved_ot_minutes if profile.is_ot_eligible else 0
                units = Decimal(max(0, day.worked_minutes - ot_minutes)) / SIXTY
            elif day.is_paid_leave:
                units = Decimal(leave_hours) if leave_hours else hours_per_day
            else:
                continue
            total += rates.hourly * units
        if units <= ZERO:
            continue
        quantity += units
        contributing.append(day)

    if quantity <= ZERO:
        return []
    if profile.wage_type == WageType.DAILY:
        description, rate = f'Basic Pay ({fmt_quantity(quantity)} days)', base.daily
        rule_description = 'Daily rate x days with qualifying attendance'
    else:
        quantity = quantity.quantize(Decimal('0.01'))
        description, rate = f'Basic Pay ({fmt_quantity(quantity)} hrs)', base.hourly
        rule_description = 'Hourly rate x regular hours worked'
    return [PayslipLine(
        category=LineCategory.BASIC_PAY,
        description=description,
        amount=money(total),
        sort_order=SORT_ORDER['BASIC_PAY'],
        quantity=quantity,
        rate=rate,
        rule_code='BASIC_PAY',
        rule_description=rule_description,
        source=_source(contributing),
    )]


def late_undertime_lines(profile, days, use_day_override=True):
    # Hourly pay already leaves out the missing minutes
    if profile.wage_type == WageType.HOURLY:
        return []
    minutes = 0
    total = ZERO
    contributing = []
    for day in days:
        day_minutes = day.metrics.late_minutes + day.metrics.undertime_minutes
        if day_minutes <= 0:
            continue
        rates = day_rates(profile, day, use_day_override=use_day_override)
        total += rates.minute * day_minutes
        minutes += day_minutes
        contributing.append(day)
    amount = money(total)
    if amount <= ZERO:
        return []
    return [PayslipLine(
        category=LineCategory.LATE_UT_DEDUCTION,
        description=f'Late/Undertime ({minutes} mins)',
        amount=amount,
        sort_order=SORT_ORDER['LATE_UT_DEDUCT'],
        quantity=Decimal(minutes),
        rate=profile_rates(profile).minute,
        rule_code='LATE_UT_DEDUCT',
        rule_description='Per-minute rate x late and undertime minutes',
        source=_source(contributing),
    )]


def absent_lines(profile, days):
    # Daily and hourly employees are simply not paid for days they miss
    if profile.wage_type != WageType.MONTHLY:
        return []
    absent_days = ZERO
    total = ZERO
    contributing = []
    for day in days:
        if day.absent_minutes <= 0:
            continue
        fraction = ONE
        if day.scheduled_minutes:
            fraction = Decimal(day.absent_minutes) / Decimal(day.scheduled_minutes)
        total += day_rates(profile, day).daily * fraction
        absent_days += fraction
        contributing.append(day)
    amount = money(total)
    if amount <= ZERO:
        return []
    absent_days = absent_days.quantize(Decimal('0.01'))
    return [PayslipLine(
        category=LineCategory.ABSENT_DEDUCTION,
        description=f'Absences ({fmt_quantity(absent_days)} days)',
        amount=amount,
        sort_order=SORT_ORDER['ABSENT_DEDUCT'],
        quantity=absent_days,
        rate=profile_rates(profile).daily,
        rule_code='ABSENT_DEDUCT',
        rule_description='Daily rate x unexcused absent days',
        source=_source(contributing),
    )]


# --- PREMIUMS ---

class _Bucket:
    """Accumulates minutes and amounts for one (rule, multiplier) line."""

    def __init__(self):
        self.minutes = 0
        self.count = ZERO
        self.total = ZERO
        self.days = []

    def add(self, day, amount, minutes=0, count=ZERO):
        self.minutes += minutes
        self.count += count
        self.total += amount
        self.days.append(day)


def _bucket(buckets, key):
    if key not in buckets:
        buckets[key] = _Bucket()
    return buckets[key]


HOLIDAY_PREMIUM_LABELS = {
    'REGULAR_HOLIDAY_WORKED': 'Regular Holiday Premium',
    'SPECIAL_HOLIDAY_WORKED': 'Special Holiday Premium',
    'REST_DAY_PREMIUM': 'Rest Day Premium',
}


def holiday_and_rest_day_lines(profile, days):
    """
    Premium portion of a standard day's work on holidays and rest days, plus
    regular holiday pay for daily and hourly employees who did not work it.
    """
    buckets = {}
    for day in days:
        day_type = day.effective_day_type
        if day_type.is_holiday:
            rule = ('REGULAR_HOLIDAY_WORKED' if day_type == DayType.REGULAR_HOLIDAY
                    else 'SPECIAL_HOLIDAY_WORKED')
        elif day_type == DayType.REST_DAY:
            rule = 'REST_DAY_PREMIUM'
        else:
            continue
        rates = day_rates(profile, day)
        if day.worked_minutes > 0:
            minutes, _ = premium_day_minutes(profile, day)
            premium = day.multiplier - ONE
            if premium > ZERO and minutes > 0:
                amount = minutes_amount(minutes, rates.hourly, premium)
                _bucket(buckets, (rule, premium)).add(day, amount, minutes=minutes)
        elif day_type == DayType.REGULAR_HOLIDAY and profile.wage_type != WageType.MONTHLY:
            _bucket(buckets, ('REGULAR_HOLIDAY_UNWORKED', ONE)).add(day, rates.daily, count=ONE)

    base = profile_rates(profile)
    lines = []
    for (rule, multiplier), bucket in buckets.items():
        category = (LineCategory.REST_DAY_PAY if rule == 'REST_DAY_PREMIUM'
                    else LineCategory.HOLIDAY_PAY)
        if rule == 'REGULAR_HOLIDAY_UNWORKED':
            lines.append(PayslipLine(
                category=category,
                description=f'Regular Holiday Pay ({fmt_quantity(bucket.count)} days)',
                amount=money(bucket.total),
                sort_order=SORT_ORDER[rule],
                quantity=bucket.count,
                rate=base.daily,
                multiplier=multiplier,
                rule_code=rule,
                rule_description='Unworked regular holiday paid at the daily rate',
                source=_source(bucket.days),
            ))
            continue
        label = HOLIDAY_PREMIUM_LABELS[rule]
        lines.append(PayslipLine(
            category=category,
            description=f'{label} ({bucket.minutes} mins @ {fmt_percent(multiplier)}%)',
            amount=money(bucket.total),
            sort_order=SORT_ORDER[rule],
            quantity=Decimal(bucket.minutes),
            rate=base.hourly,
            multiplier=multiplier,
            rule_code=rule,
            rule_description='Hourly rate x worked hours x premium over the base rate',
            source=_source(bucket.days),
        ))
    return lines


PREMIUM_DAY_OVERTIME_LABELS = {
    'OT_REST_DAY_EXCESS': 'Rest Day Overtime',
    'OT_REGULAR_HOLIDAY': 'Regular Holiday Overtime',
    'OT_SPECIAL_HOLIDAY': 'Special Holiday Overtime',
}


def _premium_day_overtime_rule(day):
    day_type = day.effective_day_type
    if day_type == DayType.REGULAR_HOLIDAY:
        return 'OT_REGULAR_HOLIDAY'
    if day_type.is_holiday:
        return 'OT_SPECIAL_HOLIDAY'
    return 'OT_REST_DAY_EXCESS'


def overtime_lines(profile, days, ruleset):
    """
    Approved overtime on workdays at the overtime multiplier, straight time
    for a standard day's work on rest days and holidays the basic pay does
    not cover, and minutes beyond the standard day on those days at the day
    multiplier times the premium-day overtime multiplier.
    """
    regular = _Bucket()
    rest_day = _Bucket()
    holiday = _Bucket()
    excess = {}
    for day in days:
        rates = day_rates(profile, day)
        if day.effective_day_type.is_workday:
            minutes = day.approved_ot_minutes
            if minutes > 0 and profile.is_ot_eligible:
                regular.add(day, minutes_amount(minutes, rates.hourly, ruleset.overtime_multiplier),
                            minutes=minutes)
            continue

        minutes, beyond = premium_day_minutes(profile, day)
        if beyond > 0:
            multiplier = day.multiplier * ruleset.premium_day_overtime_multiplier
            _bucket(excess, (_premium_day_overtime_rule(day), multiplier)).add(
                day, minutes_amount(beyond, rates.hourly, multiplier), minutes=beyond)
        if minutes <= 0 or is_covered_by_basic(profile, day):
            continue
        if day.overtime_rest_day_minutes > 0:
            rest_day.add(day, minutes_amount(minutes, rates.hourly), minutes=minutes)
        elif day.overtime_holiday_minutes > 0:
            holiday.add(day, minutes_amount(minutes, rates.hourly), minutes=minutes)

    hourly = profile_rates(profile).hourly
    lines = []
    if regular.minutes:
        lines.append(PayslipLine(
            category=LineCategory.OVERTIME_REGULAR,
            description=(f'Regular Overtime ({regular.minutes} mins @ '
                         f'{fmt_percent(ruleset.overtime_multiplier)}%)'),
            amount=money(regular.total),
            sort_order=SORT_ORDER['OT_REGULAR'],
            quantity=Decimal(regular.minutes),
            rate=hourly,
            multiplier=ruleset.overtime_multiplier,
            rule_code='OT_REGULAR',
            rule_description='Approved early-in, late-out and skipped-break minutes',
            source=_source(regular.days),
        ))
    if rest_day.minutes:
        lines.append(PayslipLine(
            category=LineCategory.OVERTIME_REST_DAY,
            description=f'Rest Day Work ({rest_day.minutes} mins)',
            amount=money(rest_day.total),
            sort_order=SORT_ORDER['OT_REST_DAY'],
            quantity=Decimal(rest_day.minutes),
            rate=hourly,
            multiplier=ONE,
            rule_code='OT_REST_DAY',
            rule_description='Standard-day minutes worked on a rest day at the hourly rate',
            source=_source(rest_day.days),
        ))
    if holiday.minutes:
        lines.append(PayslipLine(
            category=LineCategory.OVERTIME_HOLIDAY,
            description=f'Holiday Work ({holiday.minutes} mins)',
            amount=money(holiday.total),
            sort_order=SORT_ORDER['OT_HOLIDAY'],
            quantity=Decimal(holiday.minutes),
            rate=hourly,
            multiplier=ONE,
            rule_code='OT_HOLIDAY',
            rule_description='Standard-day minutes worked on a holiday at the hourly rate',
            source=_source(holiday.days),
        ))
    for (rule, multiplier), bucket in sorted(excess.items()):
        category = (LineCategory.OVERTIME_REST_DAY if rule == 'OT_REST_DAY_EXCESS'
                    else LineCategory.OVERTIME_HOLIDAY)
        lines.append(PayslipLine(
            category=category,
            description=(f'{PREMIUM_DAY_OVERTIME_LABELS[rule]} ({bucket.minutes} mins @ '
                         f'{fmt_percent(multiplier)}%)'),
            amount=money(bucket.total),
            sort_order=SORT_ORDER[rule],
            quantity=Decimal(bucket.minutes),
            rate=hourly,
            multiplier=multiplier,
            rule_code=rule,
            rule_description='Minutes beyond the standard day at the day multiplier x overtime premium',
            source=_source(bucket.days),
        ))
    return lines


def night_differential_lines(profile, days, ruleset):
    if not profile.is_nd_eligible:
        return []
    bucket = _Bucket()
    for day in days:
        minutes = day.metrics.night_diff_minutes
        if minutes > 0:
            rates = day_rates(profile, day)
            bucket.add(day, minutes_amount(minutes, rates.hourly, ruleset.night_diff_rate),
                       minutes=minutes)
    if not bucket.minutes:
        return []
    return [PayslipLine(
        category=LineCategory.NIGHT_DIFFERENTIAL,
        description=(f'Night Differential ({bucket.minutes} mins @ '
                     f'{fmt_percent(ruleset.night_diff_rate)}%)'),
        amount=money(bucket.total),
        sort_order=SORT_ORDER['NIGHT_DIFF'],
        quantity=Decimal(bucket.minutes),
        rate=profile_rates(profile).hourly,
        multiplier=ruleset.night_diff_rate,
        rule_code='NIGHT_DIFF',
        rule_description='Work between 22:00 and 06:00',
        source=_source(bucket.days),
    )]


# --- FIXED AMOUNTS ---

def allowance_lines(profile, periods_per_month):
    lines = []
    for offset, (name, monthly) in enumerate(profile.allowances.items()):
        if not monthly or monthly <= ZERO:
            continue
        lines.append(PayslipLine(
            category=LineCategory.ALLOWANCE,
            description=f"{name.replace('_', ' ').title()} Allowance",
            amount=money(monthly / periods_per_month),
            sort_order=SORT_ORDER['ALLOWANCE'] + offset,
            quantity=ONE,
            rate=monthly,
            rule_code=f'ALLOWANCE_{name.upper()}',
            rule_description='Monthly allowance divided by pay periods per month',
        ))
    return lines


def allowance_amounts(lines):
    """{allowance name: amount} for the allowance lines among lines (engine or stored)."""
    prefix = 'ALLOWANCE_'
    return {
        line.rule_code[len(prefix):].lower(): line.amount
        for line in lines
        if line.category == LineCategory.ALLOWANCE and (line.rule_code or '').startswith(prefix)
    }


def adjustment_lines(adjustments):
    lines = []
    for index, adjustment in enumerate(adjustments):
        if adjustment.adjustment_type == AdjustmentType.EARNING:
            if (adjustment.category or '').upper() in NON_TAXABLE_ADJUSTMENT_CATEGORIES:
                category = LineCategory.REIMBURSEMENT
            else:
                category = LineCategory.ADJUSTMENT_ADD
            sort_order = SORT_ORDER['ADJUSTMENT_ADD'] + index
        else:
            category = LineCategory.ADJUSTMENT_DEDUCT
            sort_order = SORT_ORDER['ADJUSTMENT_DEDUCT'] + index
        lines.append(PayslipLine(
            category=category,
            description=adjustment.description,
            amount=money(adjustment.amount),
            sort_order=sort_order,
            rule_code='MANUAL_ADJUSTMENT',
            rule_description=adjustment.remarks or adjustment.category,
            source=AdjustmentSource(adjustment.id),
        ))
    return lines


def penalty_lines(penalties):
    return [
        PayslipLine(
            category=LineCategory.PENALTY_DEDUCTION,
            description=(f'{penalty.description} '
                         f'({penalty.installment_number}/{penalty.installment_count})'),
            amount=money(penalty.amount),
            sort_order=SORT_ORDER['PENALTY_INSTALLMENT'],
            quantity=ONE,
            rule_code='PENALTY_INSTALLMENT',
            source=InstallmentSource(penalty.penalty_id, penalty.installment_id),
        )
        for penalty in penalties
    ]


STATUTORY_LINES = (
    ('SSS_EE', LineCategory.SSS_EE, 'SSS Contribution (EE)'),
    ('SSS_ER', LineCategory.SSS_ER, 'SSS Contribution (ER)'),
    ('PHILHEALTH_EE', LineCategory.PHILHEALTH_EE, 'PhilHealth Contribution (EE)'),
    ('PHILHEALTH_ER', LineCategory.PHILHEALTH_ER, 'PhilHealth Contribution (ER)'),
    ('PAGIBIG_EE', LineCategory.PAGIBIG_EE, 'Pag-IBIG Contribution (EE)'),
    ('PAGIBIG_ER', LineCategory.PAGIBIG_ER, 'Pag-IBIG Contribution (ER)'),
)


def statutory_lines(shares, salary_base):
    """shares maps SSS_EE, SSS_ER, ... to per-period amounts."""
    lines = []
    for code, category, description in STATUTORY_LINES:
        amount = shares.get(code, ZERO)
        if amount <= ZERO:
            continue
        lines.append(PayslipLine(
            category=category,
            description=description,
            amount=amount,
            sort_order=SORT_ORDER[code],
            rate=salary_base,
            rule_code=code,
            rule_description='Bracket lookup on the monthly salary credit',
        ))
    return lines


def withholding_tax_lines(amount, taxable_income):
    if amount <= ZERO:
        return []
    return [PayslipLine(
        category=LineCategory.TAX_WITHHOLDING,
        description='Withholding Tax',
        amount=amount,
        sort_order=SORT_ORDER['WITHHOLDING_TAX'],
        rate=taxable_income,
        rule_code='WITHHOLDING_TAX',
        rule_description='Cumulative annualized TRAIN withholding',
    )]
