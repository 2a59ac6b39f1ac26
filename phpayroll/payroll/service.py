# phpayroll/payroll/service.py
"""
Payroll run lifecycle: create, compute, approve, release, cancel. Also the
per-run manual adjustments and employee penalties.

Functions stage their changes on db.session; only compute_payroll_run
commits on its own, since it has to persist the COMPUTING status before
it starts and roll back to DRAFT if it fails.
"""

import logging
from datetime import datetime

from flask import current_app

from phpayroll import db
from phpayroll.engine.calculator import compute_payroll
from phpayroll.engine.exceptions import PayrollInputError, PayrollNotFound, PayrollStateError
from phpayroll.engine.penalties import build_installment_schedule
from phpayroll.engine.statutory import get_ruleset
from phpayroll.engine.types import (
    AdjustmentSource, AdjustmentType, AttendanceSource, InstallmentSource, LineCategory,
    PayFrequency, PenaltyStatus, RunStatus,
)
from phpayroll.engine.wages import money, to_decimal
from phpayroll.models.payroll import (
    ManualAdjustment, Penalty, PenaltyInstallment, PayrollRun, Payslip, PayslipLine,
)
from phpayroll.models.user import Employee
from .loader import load_employee_inputs

logger = logging.getLogger(__name__)

COMPUTABLE = (RunStatus.DRAFT, RunStatus.REVIEW)
EDITABLE = (RunStatus.DRAFT, RunStatus.REVIEW)
CANCELLABLE = (RunStatus.DRAFT, RunStatus.REVIEW, RunStatus.APPROVED)


def get_payroll_run(run_id):
    run = db.session.get(PayrollRun, run_id)
    if run is None:
        raise PayrollNotFound(f'Payroll run {run_id} not found')
    return run


def _require_status(run, allowed, action):
    status = RunStatus(run.status)
    if status not in allowed:
        raise PayrollStateError(f'Cannot {action} a payroll run in {status.value} status')


def create_payroll_run(pay_period_start, pay_period_end, pay_date,
                       pay_frequency=PayFrequency.SEMI_MONTHLY, created_by_id=None):
    if pay_period_end < pay_period_start:
        raise PayrollInputError('Pay period end date must be on or after start date')
    frequency = PayFrequency(pay_frequency)
    ruleset = get_ruleset(current_app.config['PAYROLL_RULESET'])

    run = PayrollRun(
        pay_period_start=pay_period_start,
        pay_period_end=pay_period_end,
        pay_date=pay_date,
        pay_frequency=frequency.value,
        status=RunStatus.DRAFT.value,
        ruleset_id=ruleset.id,
        ruleset_version=ruleset.version,
        created_by_id=created_by_id,
    )
    db.session.add(run)
    db.session.flush()
    if pay_date < pay_period_end:
        logger.warning('Payroll run %s pays on %s, before its period ends', run.id, pay_date)
    return run


# --- Compute ---

def payslip_number(employee_number, run):
    """<employee number>-YYYY-MM-<run id>, unique per employee per run."""
    start = run.pay_period_start
    return f'{employee_number}-{start.year:04d}-{start.month:02d}-{run.id:03d}'


def _line_record(line):
    record = PayslipLine(
        category=line.category.value,
        description=line.description,
        quantity=line.quantity,
        rate=line.rate,
        multiplier=line.multiplier,
        amount=line.amount,
        sort_order=line.sort_order,
        rule_code=line.rule_code,
        rule_description=line.rule_description,
    )
    source = line.source
    if isinstance(source, AttendanceSource):
        record.attendance_day_ids = list(source.attendance_day_ids)
    elif isinstance(source, AdjustmentSource):
        record.manual_adjustment_id = source.manual_adjustment_id
    elif isinstance(source, InstallmentSource):
        record.penalty_installment_id = source.penalty_installment_id
    return record


def _category_total(computed, category):
    return sum((l.amount for l in computed.lines if l.category == category), money(0))


def save_payslips(run, result, employee_ids=None):
    """
    Replaces the run's payslips with the computed ones. With employee_ids,
    only those employees' payslips are replaced.
    """
    existing = run.payslips
    if employee_ids is not None:
        existing = existing.filter(Payslip.employee_id.in_(list(employee_ids)))
    for payslip in existing.all():
        db.session.delete(payslip)
    db.session.flush()

    saved = []
    for computed in result.payslips:
        totals = computed.totals
        payslip = Payslip(
            employee_id=computed.employee_id,
            payroll_run_id=run.id,
            payslip_number=payslip_number(computed.employee_number or computed.employee_id, run),
            gross_pay=totals.gross_pay,
            total_earnings=totals.total_earnings,
            total_deductions=totals.total_deductions,
            net_pay=totals.net_pay,
            taxable_income=totals.taxable_income,
            basic_pay=_category_total(computed, LineCategory.BASIC_PAY),
            late_ut_deduction=_category_total(computed, LineCategory.LATE_UT_DEDUCTION),
            work_days=computed.work_days,
            sss_ee=totals.sss_ee,
            sss_er=totals.sss_er,
            philhealth_ee=totals.philhealth_ee,
            philhealth_er=totals.philhealth_er,
            pagibig_ee=totals.pagibig_ee,
            pagibig_er=totals.pagibig_er,
            withholding_tax=totals.withholding_tax,
            ytd_gross_pay=computed.ytd.gross_pay,
            ytd_taxable_income=computed.ytd.taxable_income,
            ytd_tax_withheld=computed.ytd.tax_withheld,
            pay_profile_snapshot=computed.pay_profile_snapshot,
        )
        payslip.lines = [_line_record(line) for line in computed.lines]
        db.session.add(payslip)
        saved.append(payslip)
    db.session.flush()
    return saved


def compute_payroll_run(run, employee_ids=None):
    """
    Computes the run, or only the listed employees, and moves it to REVIEW.
    On failure the run goes back to DRAFT with last_error set and the
    exception is re-raised. Per-employee failures do not fail the run; they
    come back in result.errors.
    """
    _require_status(run, COMPUTABLE, 'compute')
    ruleset = get_ruleset(current_app.config['PAYROLL_RULESET'])

    run.status = RunStatus.COMPUTING.value
    db.session.commit()

    try:
        pay_period, employees = load_employee_inputs(run, employee_ids)
        result = compute_payroll(
            pay_period, ruleset, employees,
            max_workers=current_app.config.get('PAYROLL_MAX_WORKERS'),
        )
        save_payslips(run, result, employee_ids)

        run.status = RunStatus.REVIEW.value
        run.ruleset_id = ruleset.id
        run.ruleset_version = ruleset.version
        run.employee_count = run.payslips.count() if employee_ids is not None else result.employee_count
        run.computed_at = datetime.utcnow()
        run.last_error = '; '.join(f'{e.employee_id}: {e.message}' for e in result.errors) or None
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        logger.exception('Payroll run %s failed to compute', run.id)
        run.status = RunStatus.DRAFT.value
        run.last_error = str(exc)
        db.session.commit()
        raise

    logger.info('Payroll run %s computed: %d payslip(s), %d error(s)',
                run.id, result.payslip_count, len(result.errors))
    return result


# --- Approval and release ---

def approve_payroll_run(run, approved_by_id=None):
    _require_status(run, (RunStatus.REVIEW,), 'approve')
    if run.payslips.count() == 0:
        raise PayrollStateError('Cannot approve a payroll run without payslips')
    run.status = RunStatus.APPROVED.value
    run.approved_by_id = approved_by_id
    run.approved_at = datetime.utcnow()
    return run


def release_payroll_run(run):
    """
    Releases an approved run and marks every penalty installment its
    payslips deducted. Released payslips feed later runs' year-to-date.
    """
    _require_status(run, (RunStatus.APPROVED,), 'release')
    now = datetime.utcnow()

    installment_ids = [
        line.penalty_installment_id
        for payslip in run.payslips
        for line in payslip.lines
        if line.penalty_installment_id is not None
    ]
    for installment_id in installment_ids:
        installment = db.session.get(PenaltyInstallment, installment_id)
        if installment is None or installment.is_deducted:
            continue
        installment.is_deducted = True
        installment.deducted_at = now
        installment.payroll_run_id = run.id

    run.status = RunStatus.RELEASED.value
    run.released_at = now
    db.session.flush()
    return run


def cancel_payroll_run(run):
    _require_status(run, CANCELLABLE, 'cancel')
    run.status = RunStatus.CANCELLED.value
    return run


# --- Manual adjustments ---

def add_manual_adjustment(run, employee_id, adjustment_type, category, description,
                          amount, remarks=None, created_by_id=None):
    _require_status(run, EDITABLE, 'adjust')
    if db.session.get(Employee, employee_id) is None:
        raise PayrollNotFound(f'Employee {employee_id} not found')
    amount = money(to_decimal(amount))
    if amount <= 0:
        raise PayrollInputError('Adjustment amount must be positive', employee_id)

    adjustment = ManualAdjustment(
        payroll_run_id=run.id,
        employee_id=employee_id,
        adjustment_type=AdjustmentType(adjustment_type).value,
        category=category,
        description=description,
        amount=amount,
        remarks=remarks,
        created_by_id=created_by_id,
    )
    db.session.add(adjustment)
    db.session.flush()
    return adjustment


def delete_manual_adjustment(adjustment_id):
    adjustment = db.session.get(ManualAdjustment, adjustment_id)
    if adjustment is None:
        raise PayrollNotFound(f'Adjustment {adjustment_id} not found')
    _require_status(adjustment.payroll_run, EDITABLE, 'adjust')

    PayslipLine.query.filter_by(manual_adjustment_id=adjustment.id).update(
        {'manual_adjustment_id': None}, synchronize_session=False)
    db.session.delete(adjustment)
    db.session.flush()
    return adjustment


# --- Penalties ---

def create_penalty(employee_id, description, total_amount, installment_count,
                   effective_date, remarks=None):
    if db.session.get(Employee, employee_id) is None:
        raise PayrollNotFound(f'Employee {employee_id} not found')
    schedule = build_installment_schedule(total_amount, installment_count)

    penalty = Penalty(
        employee_id=employee_id,
        description=description,
        total_amount=money(to_decimal(total_amount)),
        installment_count=installment_count,
        effective_date=effective_date,
        status=PenaltyStatus.ACTIVE.value,
        remarks=remarks,
    )
    penalty.installments = [
        PenaltyInstallment(installment_number=number, amount=amount)
        for number, amount in enumerate(schedule, start=1)
    ]
    db.session.add(penalty)
    db.session.flush()
    return penalty


def cancel_penalty(penalty_id):
    penalty = db.session.get(Penalty, penalty_id)
    if penalty is None:
        raise PayrollNotFound(f'Penalty {penalty_id} not found')
    if PenaltyStatus(penalty.status) != PenaltyStatus.ACTIVE:
        raise PayrollStateError(f'Cannot cancel a {penalty.status} penalty')
    penalty.status = PenaltyStatus.CANCELLED.value
    penalty.cancelled_at = datetime.utcnow()
    return penalty
