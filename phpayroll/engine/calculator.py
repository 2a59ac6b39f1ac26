# phpayroll/engine/calculator.py
"""
Payroll compute engine.

compute_payroll() turns a pay period, a statutory ruleset and a list of
employee inputs into payslips. Each employee is computed independently;
one employee's bad data ends up in the errors list and never stops the run.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from decimal import Decimal

from . import lines as payslip_lines
from .attendance import MANILA, metrics_for_day, scheduled_work_minutes
from .day_types import DAY_TYPE_MULTIPLIERS, resolve_day_type
from .exceptions import PayrollInputError
from .statutory import (
    calculate_pagibig, calculate_philhealth, calculate_sss, calculate_withholding_tax,
    is_statutory_eligible, taxable_allowances,
)
from .types import (
    ComputedPayslip, DayType, EmployeeError, LineCategory, LineKind, PayrollResult,
    PayslipTotals, PreparedDay, WageType, Ytd, ZERO,
)
from .wages import money, periods_per_month, profile_rates, tax_period_number, to_decimal

logger = logging.getLogger(__name__)

ONE = Decimal('1')

SHARE_FIELDS = {
    LineCategory.SSS_EE: 'sss_ee',
    LineCategory.SSS_ER: 'sss_er',
    LineCategory.PHILHEALTH_EE: 'philhealth_ee',
    LineCategory.PHILHEALTH_ER: 'philhealth_er',
    LineCategory.PAGIBIG_EE: 'pagibig_ee',
    LineCategory.PAGIBIG_ER: 'pagibig_er',
    LineCategory.TAX_WITHHOLDING: 'withholding_tax',
}


# --- DAY PREPARATION ---

def prepare_day(day, pay_period, ruleset):
    """Resolves the day type and computes metrics for one attendance day."""
    tz = pay_period.tz or MANILA
    resolution = resolve_day_type(
        day.date, pay_period.rest_days, pay_period.calendar_events,
        rest_day_multiplier=ruleset.rest_day_multiplier, tz=tz,
    )
    stored = DayType(day.day_type)
    effective = resolution.day_type if resolution.is_holiday else stored
    stored_rest_day = stored == DayType.REST_DAY

    if effective.is_holiday:
        if resolution.is_holiday:
            multiplier = resolution.rest_day_multiplier if stored_rest_day else resolution.multiplier
        else:
            multiplier = DAY_TYPE_MULTIPLIERS[effective]
    elif effective == DayType.REST_DAY:
        multiplier = ruleset.rest_day_multiplier
    else:
        multiplier = ONE

    metrics = metrics_for_day(day, tz=tz)
    worked = metrics.worked_minutes
    overtime_rest_day = overtime_holiday = 0
    if not effective.is_workday:
        # Any work on these days is paid in full; nothing is late or early
        metrics = replace(
            metrics, late_minutes=0, undertime_minutes=0, ot_early_in_minutes=0,
            ot_late_out_minutes=0, ot_break_minutes=0,
        )
        if effective.is_holiday:
            overtime_holiday = worked
        else:
            overtime_rest_day = worked

    scheduled = scheduled_work_minutes(
        day.date, day.sched_start, day.sched_end, day.break_minutes, day.is_overnight,
    )
    absent = 0
    no_punches = day.clock_in is None and day.clock_out is None
    excused = day.is_on_leave and day.leave_is_paid
    if no_punches and effective == DayType.WORKDAY and not excused:
        absent = scheduled

    return PreparedDay(
        source=day,
        resolution=resolution,
        stored_day_type=stored,
        effective_day_type=effective,
        metrics=metrics,
        multiplier=Decimal(multiplier),
        scheduled_minutes=scheduled,
        absent_minutes=absent,
        overtime_rest_day_minutes=overtime_rest_day,
        overtime_holiday_minutes=overtime_holiday,
    )


# --- STATUTORY ---

def statutory_salary_base(profile, rates, override, salary_credit_days):
    """Monthly salary credit from actual rates, or from the declared override."""
    if override is None:
        return rates.monthly_salary_credit
    base = to_decimal(override.base_rate)
    if override.wage_type == WageType.DAILY:
        daily = base
    elif override.wage_type == WageType.HOURLY:
        daily = base * Decimal(profile.standard_hours_per_day)
    else:
        daily = base / Decimal(profile.standard_work_days_per_month)
    return money(daily * salary_credit_days)


def statutory_shares(ruleset, salary_base, ppm):
    sss_ee, sss_er = calculate_sss(ruleset.sss_table, salary_base)
    ph_ee, ph_er = calculate_philhealth(ruleset.philhealth_table, salary_base)
    pi_ee, pi_er = calculate_pagibig(ruleset.pagibig_table, salary_base)
    monthly = {
        'SSS_EE': sss_ee, 'SSS_ER': sss_er,
        'PHILHEALTH_EE': ph_ee, 'PHILHEALTH_ER': ph_er,
        'PAGIBIG_EE': pi_ee, 'PAGIBIG_ER': pi_er,
    }
    return {code: money(amount / ppm) for code, amount in monthly.items()}


def _line_total(lines, *categories):
    return sum((line.amount for line in lines if line.category in categories), ZERO)


def taxable_income_for_period(employee, profile, days, earning_lines, ee_total, ppm):
    """
    Current-period taxable income under the employee's tax basis: full gross
    earnings plus allowances above their de minimis ceilings, or basic pay
    less late/undertime (at the declared wage when a statutory override
    exists). Statutory employee shares always come off.
    """
    if employee.tax_on_full_earnings:
        gross = sum((l.amount for l in earning_lines if l.kind == LineKind.EARNING), ZERO)
        gross += taxable_allowances(payslip_lines.allowance_amounts(earning_lines), ppm)
        return money(max(ZERO, gross - ee_total))

    override = employee.statutory_override
    if override is None:
        basic = _line_total(earning_lines, LineCategory.BASIC_PAY)
        late_ut = _line_total(
            payslip_lines.late_undertime_lines(profile, days), LineCategory.LATE_UT_DEDUCTION,
        )
    else:
        declared = replace(profile, wage_type=override.wage_type,
                           base_rate=to_decimal(override.base_rate))
        basic = _line_total(
            payslip_lines.basic_pay_lines(declared, days, ppm, use_day_override=False),
            LineCategory.BASIC_PAY,
        )
        late_ut = _line_total(
            payslip_lines.late_undertime_lines(declared, days, use_day_override=False),
            LineCategory.LATE_UT_DEDUCTION,
        )
    return money(max(ZERO, basic - late_ut - ee_total))


# --- TOTALS ---

def summarize_lines(lines, taxable_income=ZERO):
    gross = additions = deductions = ZERO
    shares = {name: ZERO for name in SHARE_FIELDS.values()}
    for line in lines:
        kind = line.category.kind
        if kind == LineKind.EARNING:
            gross += line.amount
        elif kind == LineKind.ADDITION:
            additions += line.amount
        elif kind == LineKind.DEDUCTION:
            deductions += line.amount
        elif kind == LineKind.EMPLOYER:
            pass
        else:
            raise ValueError(f'Unhandled line kind: {kind}')
        if line.category in SHARE_FIELDS:
            shares[SHARE_FIELDS[line.category]] += line.amount
    total_earnings = gross + additions
    return PayslipTotals(
        gross_pay=gross,
        total_earnings=total_earnings,
        total_deductions=deductions,
        net_pay=total_earnings - deductions,
        taxable_income=taxable_income,
        **shares,
    )


# --- PER EMPLOYEE ---

def validate_employee_input(employee):
    profile = employee.profile
    if profile is None:
        raise PayrollInputError('Missing wage profile', employee.employee_id)
    if profile.base_rate is None:
        raise PayrollInputError('Wage profile has no base rate', employee.employee_id)
    if to_decimal(profile.base_rate) <= ZERO:
        raise PayrollInputError(
            f'Base rate must be positive, got {profile.base_rate}', employee.employee_id)
    WageType(profile.wage_type)
    for day in employee.attendance:
        if day.date is None:
            raise PayrollInputError(f'Attendance day {day.id} has no date', employee.employee_id)
        if (day.sched_start is None) != (day.sched_end is None):
            raise PayrollInputError(
                f'Attendance day {day.id} has an incomplete schedule', employee.employee_id)
    for adjustment in employee.adjustments:
        if to_decimal(adjustment.amount) < ZERO:
            raise PayrollInputError(
                f'Adjustment {adjustment.id} has a negative amount', employee.employee_id)


def compute_employee_payslip(employee, pay_period, ruleset):
    validate_employee_input(employee)
    profile = employee.profile
    ppm = periods_per_month(pay_period.pay_frequency)
    rates = profile_rates(profile, ruleset.salary_credit_days)

    attendance = sorted(employee.attendance, key=lambda d: (d.date, d.id or 0))
    days = [prepare_day(day, pay_period, ruleset) for day in attendance]

    earnings = []
    earnings += payslip_lines.basic_pay_lines(profile, days, ppm)
    earnings += payslip_lines.holiday_and_rest_day_lines(profile, days)
    earnings += payslip_lines.overtime_lines(profile, days, ruleset)
    earnings += payslip_lines.night_differential_lines(profile, days, ruleset)
    earnings += payslip_lines.allowance_lines(profile, ppm)

    adjustments = payslip_lines.adjustment_lines(employee.adjustments)
    earnings += [l for l in adjustments if l.kind != LineKind.DEDUCTION]

    deductions = []
    deductions += payslip_lines.late_undertime_lines(profile, days)
    deductions += payslip_lines.absent_lines(profile, days)

    # Ineligible employees get neither contributions nor withholding
    statutory = []
    tax = []
    taxable = withholding = ZERO
    previous = employee.previous_ytd
    if is_statutory_eligible(profile, employee.regularization, pay_period.end):
        salary_base = statutory_salary_base(
            profile, rates, employee.statutory_override, ruleset.salary_credit_days)
        shares = statutory_shares(ruleset, salary_base, ppm)
        statutory = payslip_lines.statutory_lines(shares, salary_base)
        ee_total = shares['SSS_EE'] + shares['PHILHEALTH_EE'] + shares['PAGIBIG_EE']

        taxable = taxable_income_for_period(employee, profile, days, earnings, ee_total, ppm)
        period_number = 1
        if previous.taxable_income > ZERO:
            period_number = tax_period_number(pay_period.start, pay_period.pay_frequency)
        withholding = calculate_withholding_tax(
            ruleset.tax_table, taxable, previous.taxable_income, previous.tax_withheld,
            period_number, ppm * 12,
        )
        tax = payslip_lines.withholding_tax_lines(withholding, taxable)

    deductions += payslip_lines.penalty_lines(employee.penalties)
    deductions += [l for l in adjustments if l.kind == LineKind.DEDUCTION]

    all_lines = sorted(earnings + deductions + statutory + tax, key=lambda l: l.sort_order)
    totals = summarize_lines(all_lines, taxable)

    work_days = sum(
        (ONE for d in days if d.effective_day_type.is_workday
         and (d.worked_minutes > 0 or d.is_paid_leave)),
        ZERO,
    )
    return ComputedPayslip(
        employee_id=employee.employee_id,
        lines=tuple(all_lines),
        totals=totals,
        ytd=Ytd(
            gross_pay=previous.gross_pay + totals.gross_pay,
            taxable_income=previous.taxable_income + taxable,
            tax_withheld=previous.tax_withheld + withholding,
        ),
        pay_profile_snapshot=profile.snapshot(),
        employee_number=employee.employee_number,
        work_days=work_days,
    )


# --- RUN ---

def _compute_one(employee, pay_period, ruleset):
    try:
        return compute_employee_payslip(employee, pay_period, ruleset), None
    except Exception as exc:
        logger.exception('Payroll computation failed for employee %s', employee.employee_id)
        message = getattr(exc, 'message', None) or str(exc) or exc.__class__.__name__
        return None, EmployeeError(employee.employee_id, message)


def compute_payroll(pay_period, ruleset, employees, max_workers=None):
    """
    Computes every employee's payslip. Workers share nothing; results are
    placed back in input order and totals are reduced afterwards, so the
    output is identical however many workers run.
    """
    employees = list(employees)
    workers = max_workers or os.cpu_count() or 1
    workers = max(1, min(workers, len(employees)))
    logger.info('Computing payroll for %d employee(s) with %d worker(s)', len(employees), workers)

    outcomes = [None] * len(employees)
    if workers == 1:
        for index, employee in enumerate(employees):
            outcomes[index] = _compute_one(employee, pay_period, ruleset)
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_index = {
                executor.submit(_compute_one, employee, pay_period, ruleset): index
                for index, employee in enumerate(employees)
            }
            for future in as_completed(future_to_index):
                outcomes[future_to_index[future]] = future.result()

    payslips = tuple(payslip for payslip, _ in outcomes if payslip is not None)
    errors = tuple(error for _, error in outcomes if error is not None)
    totals = sum((payslip.totals for payslip in payslips), PayslipTotals())

    if errors:
        logger.warning('Payroll computed with %d employee error(s)', len(errors))
    return PayrollResult(
        payslips=payslips,
        totals=totals,
        employee_count=len(employees),
        payslip_count=len(payslips),
        errors=errors,
    )
