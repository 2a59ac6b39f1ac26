# phpayroll/payroll/routes.py

from flask import current_app, jsonify, request
from flask_login import current_user

from phpayroll import db
from phpayroll.auth.decorators import log_admin_action, role_required
from phpayroll.engine.exceptions import PayrollError, PayrollInputError, PayrollNotFound
from phpayroll.models.payroll import Payslip
from phpayroll.payroll import bp
from phpayroll.payroll.forms import ManualAdjustmentForm, PenaltyForm, RunPayrollForm
from . import service


def _str(value):
    return str(value) if value is not None else None


def run_to_dict(run):
    return {
        'id': run.id,
        'pay_period_start': run.pay_period_start.isoformat(),
        'pay_period_end': run.pay_period_end.isoformat(),
        'pay_date': run.pay_date.isoformat(),
        'pay_frequency': run.pay_frequency,
        'status': run.status,
        'ruleset_id': run.ruleset_id,
        'ruleset_version': run.ruleset_version,
        'total_gross_pay': _str(run.total_gross_pay),
        'total_deductions': _str(run.total_deductions),
        'total_net_pay': _str(run.total_net_pay),
        'employee_count': run.employee_count,
        'payslip_count': run.payslip_count,
        'last_error': run.last_error,
    }


def payslip_to_dict(payslip):
    return {
        'id': payslip.id,
        'payslip_number': payslip.payslip_number,
        'employee_id': payslip.employee_id,
        'payroll_run_id': payslip.payroll_run_id,
        'gross_pay': _str(payslip.gross_pay),
        'total_earnings': _str(payslip.total_earnings),
        'total_deductions': _str(payslip.total_deductions),
        'net_pay': _str(payslip.net_pay),
        'taxable_income': _str(payslip.taxable_income),
        'withholding_tax': _str(payslip.withholding_tax),
        'ytd_gross_pay': _str(payslip.ytd_gross_pay),
        'ytd_taxable_income': _str(payslip.ytd_taxable_income),
        'ytd_tax_withheld': _str(payslip.ytd_tax_withheld),
        'pay_profile_snapshot': payslip.pay_profile_snapshot,
        'lines': [
            {
                'category': line.category,
                'description': line.description,
                'quantity': _str(line.quantity),
                'rate': _str(line.rate),
                'multiplier': _str(line.multiplier),
                'amount': _str(line.amount),
                'sort_order': line.sort_order,
                'rule_code': line.rule_code,
                'rule_description': line.rule_description,
                'attendance_day_ids': line.attendance_day_ids,
                'manual_adjustment_id': line.manual_adjustment_id,
                'penalty_installment_id': line.penalty_installment_id,
            }
            for line in payslip.lines
        ],
    }


def _form_error(form):
    return jsonify({'error': 'Invalid request.', 'fields': form.errors}), 400


# --- Runs ---

@bp.route('/runs', methods=['POST'])
@role_required('Payroll_Admin')
def create_run():
    form = RunPayrollForm()
    if not form.validate_on_submit():
        return _form_error(form)
    try:
        run = service.create_payroll_run(
            form.pay_period_start.data,
            form.pay_period_end.data,
            form.pay_date.data,
            form.pay_frequency.data,
            created_by_id=current_user.id,
        )
        log_admin_action(
            action='CREATE_PAYROLL_RUN',
            details=f"Run ID: {run.id}. Period {run.pay_period_start} to {run.pay_period_end}."
        )
        db.session.commit()
    except PayrollError:
        db.session.rollback()
        raise
    return jsonify(run_to_dict(run)), 201


@bp.route('/runs/<int:run_id>', methods=['GET'])
@role_required('Payroll_Admin')
def view_run(run_id):
    run = service.get_payroll_run(run_id)
    data = run_to_dict(run)
    data['payslips'] = [
        {'id': p.id, 'payslip_number': p.payslip_number, 'employee_id': p.employee_id,
         'net_pay': _str(p.net_pay)}
        for p in run.payslips.order_by(Payslip.employee_id)
    ]
    return jsonify(data)


@bp.route('/runs/<int:run_id>/compute', methods=['POST'])
@role_required('Payroll_Admin')
def compute_run(run_id):
    run = service.get_payroll_run(run_id)
    payload = request.get_json(silent=True) or {}
    employee_ids = payload.get('employee_ids')
    if employee_ids is not None:
        if not isinstance(employee_ids, list) or not all(isinstance(i, int) for i in employee_ids):
            raise PayrollInputError('employee_ids must be a list of integers')

    result = service.compute_payroll_run(run, employee_ids)
    log_admin_action(
        action='COMPUTE_PAYROLL_RUN',
        details=f"Run ID: {run.id}. {result.payslip_count} payslip(s), {len(result.errors)} error(s)."
    )
    db.session.commit()
    current_app.logger.info('Run %s computed by %s', run.id, current_user.username)

    data = run_to_dict(run)
    data['errors'] = [{'employee_id': e.employee_id, 'message': e.message} for e in result.errors]
    return jsonify(data)


def _transition(run_id, action, apply):
    run = service.get_payroll_run(run_id)
    try:
        apply(run)
        log_admin_action(action=action, details=f"Run ID: {run.id}. Status now {run.status}.")
        db.session.commit()
    except PayrollError:
        db.session.rollback()
        raise
    return jsonify(run_to_dict(run))


@bp.route('/runs/<int:run_id>/approve', methods=['POST'])
@role_required('Payroll_Admin')
def approve_run(run_id):
    return _transition(run_id, 'APPROVE_PAYROLL_RUN',
                       lambda run: service.approve_payroll_run(run, current_user.id))


@bp.route('/runs/<int:run_id>/release', methods=['POST'])
@role_required('Payroll_Admin')
def release_run(run_id):
    return _transition(run_id, 'RELEASE_PAYROLL_RUN', service.release_payroll_run)


@bp.route('/runs/<int:run_id>/cancel', methods=['POST'])
@role_required('Payroll_Admin')
def cancel_run(run_id):
    return _transition(run_id, 'CANCEL_PAYROLL_RUN', service.cancel_payroll_run)


# --- Payslips ---

@bp.route('/payslips/<int:payslip_id>', methods=['GET'])
@role_required('Payroll_Admin')
def view_payslip(payslip_id):
    payslip = db.session.get(Payslip, payslip_id)
    if payslip is None:
        raise PayrollNotFound(f'Payslip {payslip_id} not found')
    return jsonify(payslip_to_dict(payslip))


# --- Adjustments ---

@bp.route('/runs/<int:run_id>/adjustments', methods=['POST'])
@role_required('Payroll_Admin')
def add_adjustment(run_id):
    run = service.get_payroll_run(run_id)
    form = ManualAdjustmentForm()
    if not form.validate_on_submit():
        return _form_error(form)
    try:
        adjustment = service.add_manual_adjustment(
            run,
            form.employee_id.data,
            form.adjustment_type.data,
            form.category.data,
            form.description.data,
            form.amount.data,
            remarks=form.remarks.data or None,
            created_by_id=current_user.id,
        )
        log_admin_action(
            action='ADD_ADJUSTMENT',
            details=f"Run ID: {run.id}. Employee ID: {adjustment.employee_id}. "
                    f"{adjustment.adjustment_type} {adjustment.category} {adjustment.amount}."
        )
        db.session.commit()
    except PayrollError:
        db.session.rollback()
        raise
    return jsonify({
        'id': adjustment.id,
        'payroll_run_id': adjustment.payroll_run_id,
        'employee_id': adjustment.employee_id,
        'adjustment_type': adjustment.adjustment_type,
        'category': adjustment.category,
        'description': adjustment.description,
        'amount': _str(adjustment.amount),
    }), 201


@bp.route('/adjustments/<int:adjustment_id>', methods=['DELETE'])
@role_required('Payroll_Admin')
def delete_adjustment(adjustment_id):
    try:
        adjustment = service.delete_manual_adjustment(adjustment_id)
        log_admin_action(
            action='DELETE_ADJUSTMENT',
            details=f"Adjustment ID: {adjustment_id}. Run ID: {adjustment.payroll_run_id}."
        )
        db.session.commit()
    except PayrollError:
        db.session.rollback()
        raise
    return jsonify({'deleted': adjustment_id})


# --- Penalties ---

def penalty_to_dict(penalty):
    return {
        'id': penalty.id,
        'employee_id': penalty.employee_id,
        'description': penalty.description,
        'total_amount': _str(penalty.total_amount),
        'installment_count': penalty.installment_count,
        'effective_date': penalty.effective_date.isoformat(),
        'status': penalty.status,
        'total_deducted': _str(penalty.total_deducted),
        'installments': [
            {'installment_number': i.installment_number, 'amount': _str(i.amount),
             'is_deducted': i.is_deducted}
            for i in penalty.installments
        ],
    }


@bp.route('/penalties', methods=['POST'])
@role_required('Payroll_Admin')
def create_penalty():
    form = PenaltyForm()
    if not form.validate_on_submit():
        return _form_error(form)
    try:
        penalty = service.create_penalty(
            form.employee_id.data,
            form.description.data,
            form.total_amount.data,
            form.installment_count.data,
            form.effective_date.data,
            remarks=form.remarks.data or None,
        )
        log_admin_action(
            action='CREATE_PENALTY',
            details=f"Employee ID: {penalty.employee_id}. {penalty.total_amount} "
                    f"over {penalty.installment_count} installment(s)."
        )
        db.session.commit()
    except PayrollError:
        db.session.rollback()
        raise
    return jsonify(penalty_to_dict(penalty)), 201


@bp.route('/penalties/<int:penalty_id>/cancel', methods=['POST'])
@role_required('Payroll_Admin')
def cancel_penalty(penalty_id):
    try:
        penalty = service.cancel_penalty(penalty_id)
        log_admin_action(action='CANCEL_PENALTY', details=f"Penalty ID: {penalty_id}.")
        db.session.commit()
    except PayrollError:
        db.session.rollback()
        raise
    return jsonify(penalty_to_dict(penalty))
