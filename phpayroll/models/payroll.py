# phpayroll/models/payroll.py

from datetime import datetime, time

from sqlalchemy import case, event, select, func

from phpayroll import db


class ShiftTemplate(db.Model):
    __tablename__ = 'shift_template'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    start_time = db.Column(db.Time, nullable=False, default=time(8, 0))
    end_time = db.Column(db.Time, nullable=False, default=time(17, 0))
    break_minutes = db.Column(db.Integer, nullable=False, default=60)
    break_start = db.Column(db.Time)
    break_end = db.Column(db.Time)
    is_overnight = db.Column(db.Boolean, nullable=False, default=False)

    def __repr__(self):
        return f'<ShiftTemplate {self.name} {self.start_time}-{self.end_time}>'


class LeaveRequest(db.Model):
    __tablename__ = 'leave_request'

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    leave_type = db.Column(db.String(50), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    is_paid = db.Column(db.Boolean, nullable=False, default=True)
    reason = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='Pending')
    requested_on = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    employee = db.relationship('Employee', back_populates='leave_requests')

    @property
    def is_approved(self):
        return self.status == 'Approved'

    def __repr__(self):
        return f'<LeaveRequest {self.id} {self.leave_type} {self.status}>'


class AttendanceDay(db.Model):
    __tablename__ = 'attendance_day'

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    work_date = db.Column(db.Date, nullable=False, index=True)
    clock_in = db.Column(db.DateTime)
    clock_out = db.Column(db.DateTime)
    shift_template_id = db.Column(db.Integer, db.ForeignKey('shift_template.id'))
    break_minutes_override = db.Column(db.Integer)
    day_type = db.Column(db.String(20), nullable=False, default='WORKDAY')

    # Approvals
    early_in_approved = db.Column(db.Boolean, nullable=False, default=False)
    late_out_approved = db.Column(db.Boolean, nullable=False, default=False)
    late_in_approved = db.Column(db.Boolean, nullable=False, default=False)
    early_out_approved = db.Column(db.Boolean, nullable=False, default=False)

    leave_request_id = db.Column(db.Integer, db.ForeignKey('leave_request.id'))
    leave_hours = db.Column(db.Numeric(5, 2))
    daily_rate_override = db.Column(db.Numeric(12, 4))
    source = db.Column(db.String(50), nullable=False, default='Manual')

    employee = db.relationship('Employee', back_populates='attendance_days')
    shift_template = db.relationship('ShiftTemplate')
    leave_request = db.relationship('LeaveRequest')

    __table_args__ = (db.UniqueConstraint('employee_id', 'work_date', name='_employee_work_date_uc'),)

    def __repr__(self):
        return f'<AttendanceDay {self.work_date} for employee {self.employee_id}>'


class Holiday(db.Model):
    __tablename__ = 'holiday'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    date = db.Column(db.Date, nullable=False, unique=True)
    day_type = db.Column(db.String(20), nullable=False, default='REGULAR_HOLIDAY')
    multiplier = db.Column(db.Numeric(4, 2))
    rest_day_multiplier = db.Column(db.Numeric(4, 2))

    def __repr__(self):
        return f'<Holiday {self.name} on {self.date}>'


class PayrollRun(db.Model):
    __tablename__ = 'payroll_run'

    id = db.Column(db.Integer, primary_key=True)
    pay_period_start = db.Column(db.Date, nullable=False)
    pay_period_end = db.Column(db.Date, nullable=False)
    pay_date = db.Column(db.Date, nullable=False)
    pay_frequency = db.Column(db.String(20), nullable=False, default='SEMI_MONTHLY')
    status = db.Column(db.String(20), nullable=False, default='DRAFT')
    ruleset_id = db.Column(db.String(40))
    ruleset_version = db.Column(db.Integer)

    total_gross_pay = db.Column(db.Numeric(14, 2), default=0)
    total_deductions = db.Column(db.Numeric(14, 2), default=0)
    total_net_pay = db.Column(db.Numeric(14, 2), default=0)
    employee_count = db.Column(db.Integer, default=0)
    payslip_count = db.Column(db.Integer, default=0)
    last_error = db.Column(db.Text)

    created_by_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    computed_at = db.Column(db.DateTime)
    approved_by_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    approved_at = db.Column(db.DateTime)
    released_at = db.Column(db.DateTime)

    payslips = db.relationship('Payslip', back_populates='payroll_run', lazy='dynamic')
    adjustments = db.relationship('ManualAdjustment', back_populates='payroll_run', lazy='dynamic',
                                  cascade='all, delete-orphan')

    def __repr__(self):
        return f'<PayrollRun {self.pay_period_start} {self.status}>'


class Payslip(db.Model):
    __tablename__ = 'payslip'

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    payroll_run_id = db.Column(db.Integer, db.ForeignKey('payroll_run.id'), nullable=False)
    payslip_number = db.Column(db.String(40), unique=True, nullable=False)

    gross_pay = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_earnings = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_deductions = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_pay = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    taxable_income = db.Column(db.Numeric(12, 2), default=0)
    basic_pay = db.Column(db.Numeric(12, 2), default=0)
    late_ut_deduction = db.Column(db.Numeric(12, 2), default=0)
    work_days = db.Column(db.Numeric(6, 2), default=0)

    sss_ee = db.Column(db.Numeric(10, 2), default=0)
    sss_er = db.Column(db.Numeric(10, 2), default=0)
    philhealth_ee = db.Column(db.Numeric(10, 2), default=0)
    philhealth_er = db.Column(db.Numeric(10, 2), default=0)
    pagibig_ee = db.Column(db.Numeric(10, 2), default=0)
    pagibig_er = db.Column(db.Numeric(10, 2), default=0)
    withholding_tax = db.Column(db.Numeric(10, 2), default=0)

    ytd_gross_pay = db.Column(db.Numeric(14, 2), default=0)
    ytd_taxable_income = db.Column(db.Numeric(14, 2), default=0)
    ytd_tax_withheld = db.Column(db.Numeric(14, 2), default=0)

    pay_profile_snapshot = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    employee = db.relationship('Employee', back_populates='payslips')
    payroll_run = db.relationship('PayrollRun', back_populates='payslips')
    lines = db.relationship('PayslipLine', back_populates='payslip', cascade='all, delete-orphan',
                            order_by='[PayslipLine.sort_order, PayslipLine.id]')

    def __repr__(self):
        return f'<Payslip {self.payslip_number}>'


class PayslipLine(db.Model):
    __tablename__ = 'payslip_line'

    id = db.Column(db.Integer, primary_key=True)
    payslip_id = db.Column(db.Integer, db.ForeignKey('payslip.id'), nullable=False)
    category = db.Column(db.String(30), nullable=False)
    description = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Numeric(12, 4))
    rate = db.Column(db.Numeric(12, 6))
    multiplier = db.Column(db.Numeric(6, 4))
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False)
    rule_code = db.Column(db.String(40))
    rule_description = db.Column(db.String(200))

    # Traceability
    attendance_day_ids = db.Column(db.JSON)
    manual_adjustment_id = db.Column(db.Integer, db.ForeignKey('manual_adjustment.id'))
    penalty_installment_id = db.Column(db.Integer, db.ForeignKey('penalty_installment.id'))

    payslip = db.relationship('Payslip', back_populates='lines')

    def __repr__(self):
        return f'<PayslipLine {self.category} {self.amount}>'


class ManualAdjustment(db.Model):
    __tablename__ = 'manual_adjustment'

    id = db.Column(db.Integer, primary_key=True)
    payroll_run_id = db.Column(db.Integer, db.ForeignKey('payroll_run.id'), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    adjustment_type = db.Column(db.String(10), nullable=False)
    category = db.Column(db.String(30), nullable=False)
    description = db.Column(db.String(200), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    remarks = db.Column(db.Text)
    created_by_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    payroll_run = db.relationship('PayrollRun', back_populates='adjustments')
    employee = db.relationship('Employee')

    def __repr__(self):
        return f'<ManualAdjustment {self.adjustment_type} {self.amount}>'


class Penalty(db.Model):
    __tablename__ = 'penalty'

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    description = db.Column(db.String(200), nullable=False)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    installment_count = db.Column(db.Integer, nullable=False, default=1)
    effective_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='ACTIVE')
    total_deducted = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    remarks = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    cancelled_at = db.Column(db.DateTime)

    employee = db.relationship('Employee', back_populates='penalties')
    installments = db.relationship('PenaltyInstallment', back_populates='penalty',
                                   cascade='all, delete-orphan',
                                   order_by='PenaltyInstallment.installment_number')

    def __repr__(self):
        return f'<Penalty {self.description} {self.total_amount}>'


class PenaltyInstallment(db.Model):
    __tablename__ = 'penalty_installment'

    id = db.Column(db.Integer, primary_key=True)
    penalty_id = db.Column(db.Integer, db.ForeignKey('penalty.id'), nullable=False)
    installment_number = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    is_deducted = db.Column(db.Boolean, nullable=False, default=False)
    deducted_at = db.Column(db.DateTime)
    payroll_run_id = db.Column(db.Integer, db.ForeignKey('payroll_run.id'))

    penalty = db.relationship('Penalty', back_populates='installments')

    __table_args__ = (db.UniqueConstraint('penalty_id', 'installment_number',
                                          name='_penalty_installment_uc'),)

    def __repr__(self):
        return f'<PenaltyInstallment {self.installment_number} of penalty {self.penalty_id}>'


# ==========================================
# DATABASE TRIGGERS (ORM EVENTS)
# ==========================================

# 1. TRIGGER: Auto-Update Payroll Run Totals
def update_payroll_run_totals(mapper, connection, target):
    run_id = target.payroll_run_id
    payroll_run_table = PayrollRun.__table__
    payslip_table = Payslip.__table__

    totals = connection.execute(
        select(
            func.sum(payslip_table.c.gross_pay),
            func.sum(payslip_table.c.total_deductions),
            func.sum(payslip_table.c.net_pay),
            func.count(payslip_table.c.id),
        ).where(payslip_table.c.payroll_run_id == run_id)
    ).first()

    connection.execute(
        payroll_run_table.update()
        .where(payroll_run_table.c.id == run_id)
        .values(
            total_gross_pay=totals[0] or 0,
            total_deductions=totals[1] or 0,
            total_net_pay=totals[2] or 0,
            payslip_count=totals[3] or 0,
        )
    )


event.listen(Payslip, 'after_insert', update_payroll_run_totals)
event.listen(Payslip, 'after_update', update_payroll_run_totals)
event.listen(Payslip, 'after_delete', update_payroll_run_totals)


# 2. TRIGGER: Penalty Progress On Installment Deduction
@event.listens_for(PenaltyInstallment, 'after_update')
def update_penalty_progress(mapper, connection, target):
    installment_table = PenaltyInstallment.__table__
    penalty_table = Penalty.__table__

    deducted, remaining = connection.execute(
        select(
            func.coalesce(func.sum(case(
                (installment_table.c.is_deducted.is_(True), installment_table.c.amount), else_=0)), 0),
            func.coalesce(func.sum(case(
                (installment_table.c.is_deducted.is_(False), 1), else_=0)), 0),
        ).where(installment_table.c.penalty_id == target.penalty_id)
    ).first()

    values = {'total_deducted': deducted}
    if remaining == 0:
        values['status'] = 'COMPLETED'
    connection.execute(
        penalty_table.update()
        .where(penalty_table.c.id == target.penalty_id)
        .where(penalty_table.c.status == 'ACTIVE')
        .values(**values)
    )
