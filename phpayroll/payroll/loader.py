# phpayroll/payroll/loader.py
"""
Builds engine inputs from the database: one loader for the whole run or for
a selection of employees.
"""

from datetime import date
from decimal import Decimal

import pytz
from flask import current_app

from phpayroll import db
from phpayroll.engine.day_types import build_event_map
from phpayroll.engine.lines import allowance_amounts
from phpayroll.engine.penalties import select_penalty_deductions
from phpayroll.engine.types import (
    AdjustmentType, Allowances, ApprovalFlags, AttendanceDayInput, DayType,
    EmployeePayrollInput, EmploymentType, ManualAdjustment as AdjustmentInput,
    PastPayslip, PayFrequency, PayPeriod, PayProfile, Regularization, RunStatus,
    StatutoryOverride, WageType,
)
from phpayroll.engine.statutory import taxable_allowances
from phpayroll.engine.wages import periods_per_month
from phpayroll.engine.ytd import compute_employee_ytd
from phpayroll.models.payroll import (
    AttendanceDay, Holiday, ManualAdjustment, PayrollRun, Payslip, PayslipLine,
)
from phpayroll.models.user import Employee

ZERO = Decimal('0.00')


def _decimal(value):
    return Decimal(value) if value is not None else ZERO


def build_pay_profile(employee, pay_frequency):
    profile = employee.wage_profile
    if profile is None:
        return None
    return PayProfile(
        employee_id=employee.id,
        wage_type=WageType(profile.wage_type),
        base_rate=profile.base_rate,
        pay_frequency=PayFrequency(pay_frequency),
        standard_work_days_per_month=profile.standard_work_days_per_month or 26,
        standard_hours_per_day=profile.standard_hours_per_day or 8,
        is_benefits_eligible=bool(profile.is_benefits_eligible),
        is_ot_eligible=bool(profile.is_ot_eligible),
        is_nd_eligible=bool(profile.is_nd_eligible),
        allowances=Allowances(
            rice=_decimal(profile.rice_allowance),
            clothing=_decimal(profile.clothing_allowance),
            laundry=_decimal(profile.laundry_allowance),
            medical=_decimal(profile.medical_allowance),
            transportation=_decimal(profile.transportation_allowance),
            meal=_decimal(profile.meal_allowance),
            communication=_decimal(profile.communication_allowance),
        ),
    )


def build_statutory_override(employee):
    if employee.declared_wage_override is None:
        return None
    return StatutoryOverride(
        wage_type=WageType(employee.declared_wage_type or 'MONTHLY'),
        base_rate=Decimal(employee.declared_wage_override),
    )


def build_attendance_input(day, default_shift=None):
    shift = day.shift_template or default_shift
    leave = day.leave_request
    on_leave = leave is not None and leave.is_approved
    return AttendanceDayInput(
        id=day.id,
        date=day.work_date,
        clock_in=day.clock_in,
        clock_out=day.clock_out,
        sched_start=shift.start_time if shift else None,
        sched_end=shift.end_time if shift else None,
        break_minutes=shift.break_minutes if shift else 60,
        break_minutes_override=day.break_minutes_override,
        break_start=shift.break_start if shift else None,
        break_end=shift.break_end if shift else None,
        is_overnight=bool(shift.is_overnight) if shift else False,
        approvals=ApprovalFlags(
            early_in=bool(day.early_in_approved),
            late_out=bool(day.late_out_approved),
            late_in=bool(day.late_in_approved),
            early_out=bool(day.early_out_approved),
        ),
        day_type=DayType(day.day_type),
        is_on_leave=on_leave,
        leave_is_paid=on_leave and bool(leave.is_paid),
        leave_hours=day.leave_hours,
        daily_rate_override=day.daily_rate_override,
    )


def configured_timezone():
    return pytz.timezone(current_app.config['TIMEZONE'])


def load_calendar_events(start, end, tz=None):
    holidays = Holiday.query.filter(Holiday.date >= start, Holiday.date <= end).all()
    return build_event_map(holidays, tz or configured_timezone())


def load_past_payslips(employee_id, period_start):
    year_start = date(period_start.year, 1, 1)
    rows = (
        db.session.query(Payslip, PayrollRun)
        .join(PayrollRun, Payslip.payroll_run_id == PayrollRun.id)
        .filter(
            Payslip.employee_id == employee_id,
            PayrollRun.status == RunStatus.RELEASED.value,
            PayrollRun.pay_period_start >= year_start,
            PayrollRun.pay_period_start < period_start,
        )
        .order_by(PayrollRun.pay_period_start)
        .all()
    )
    return [
        PastPayslip(
            period_start=run.pay_period_start,
            status=RunStatus(run.status),
            gross_pay=_decimal(payslip.gross_pay),
            tax_withheld=_decimal(payslip.withholding_tax),
            sss_ee=_decimal(payslip.sss_ee),
            philhealth_ee=_decimal(payslip.philhealth_ee),
            pagibig_ee=_decimal(payslip.pagibig_ee),
            basic_pay=_decimal(payslip.basic_pay),
            late_ut_deduction=_decimal(payslip.late_ut_deduction),
            taxable_allowances=taxable_allowances(
                allowance_amounts(payslip.lines), periods_per_month(run.pay_frequency)),
        )
        for payslip, run in rows
    ]


def load_claimed_installment_ids(employee_id, run_id):
    """Installments already on a payslip of another run that is not cancelled."""
    rows = (
        db.session.query(PayslipLine.penalty_installment_id)
        .join(Payslip, PayslipLine.payslip_id == Payslip.id)
        .join(PayrollRun, Payslip.payroll_run_id == PayrollRun.id)
        .filter(
            Payslip.employee_id == employee_id,
            PayrollRun.id != run_id,
            PayrollRun.status != RunStatus.CANCELLED.value,
            PayslipLine.penalty_installment_id.isnot(None),
        )
        .all()
    )
    return {installment_id for installment_id, in rows}


def build_pay_period(run):
    tz = configured_timezone()
    return PayPeriod(
        start=run.pay_period_start,
        end=run.pay_period_end,
        pay_frequency=PayFrequency(run.pay_frequency),
        pay_date=run.pay_date,
        calendar_events=load_calendar_events(run.pay_period_start, run.pay_period_end, tz),
        rest_days=frozenset(current_app.config.get('DEFAULT_REST_DAYS', {5, 6})),
        tz=tz,
    )


def build_employee_input(employee, run):
    profile = build_pay_profile(employee, run.pay_frequency)
    override = build_statutory_override(employee)
    default_shift = employee.wage_profile.shift_template if employee.wage_profile else None

    days = (
        employee.attendance_days
        .filter(AttendanceDay.work_date >= run.pay_period_start,
                AttendanceDay.work_date <= run.pay_period_end)
        .order_by(AttendanceDay.work_date)
        .all()
    )
    adjustments = (
        ManualAdjustment.query
        .filter_by(payroll_run_id=run.id, employee_id=employee.id)
        .order_by(ManualAdjustment.id)
        .all()
    )
    previous_ytd = compute_employee_ytd(
        load_past_payslips(employee.id, run.pay_period_start),
        employee.tax_on_full_earnings,
        override,
        periods_per_month(run.pay_frequency),
        run.pay_period_start,
    )

    return EmployeePayrollInput(
        employee_id=employee.id,
        employee_number=employee.employee_id_number,
        profile=profile,
        attendance=tuple(build_attendance_input(day, default_shift) for day in days),
        regularization=Regularization(
            employment_type=EmploymentType(employee.employment_type or 'REGULAR'),
            regularization_date=employee.regularization_date,
        ),
        adjustments=tuple(
            AdjustmentInput(
                id=a.id,
                adjustment_type=AdjustmentType(a.adjustment_type),
                category=a.category,
                description=a.description,
                amount=Decimal(a.amount),
                remarks=a.remarks,
            )
            for a in adjustments
        ),
        penalties=tuple(select_penalty_deductions(
            employee.penalties.all(), run.pay_period_end,
            load_claimed_installment_ids(employee.id, run.id),
        )),
        previous_ytd=previous_ytd,
        statutory_override=override,
        tax_on_full_earnings=bool(employee.tax_on_full_earnings),
    )


def load_employee_inputs(run, employee_ids=None):
    """
    Pay period plus one EmployeePayrollInput per active employee, or per
    listed employee when employee_ids is given. Employees without a wage
    profile are still returned so the engine reports them.
    """
    query = Employee.query.filter(Employee.status == 'Active')
    if employee_ids is not None:
        query = query.filter(Employee.id.in_(list(employee_ids)))
    employees = query.order_by(Employee.id).all()

    current_app.logger.info('Loading payroll inputs for %d employee(s), run %s',
                            len(employees), run.id)
    return build_pay_period(run), [build_employee_input(e, run) for e in employees]
