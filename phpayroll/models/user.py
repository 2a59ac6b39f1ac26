# phpayroll/models/user.py

from datetime import datetime
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from phpayroll import db


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), index=True, unique=True)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(20), default='Employee')
    full_name = db.Column(db.String(128))

    employee = db.relationship('Employee', back_populates='user', uselist=False)
    audit_logs = db.relationship('AuditLog', backref='user', lazy='dynamic')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.username}>'


class Employee(db.Model):
    __tablename__ = 'employee'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True)
    employee_id_number = db.Column(db.String(20), index=True, unique=True, nullable=False)
    first_name = db.Column(db.String(64), nullable=False)
    last_name = db.Column(db.String(64), nullable=False)
    position = db.Column(db.String(64))
    date_hired = db.Column(db.Date)
    status = db.Column(db.String(20), default='Active')

    # Regularization drives statutory eligibility
    employment_type = db.Column(db.String(20), nullable=False, default='REGULAR')
    regularization_date = db.Column(db.Date)

    # Tax basis and declared wage for government reporting
    tax_on_full_earnings = db.Column(db.Boolean, nullable=False, default=False)
    declared_wage_type = db.Column(db.String(10))
    declared_wage_override = db.Column(db.Numeric(12, 4))

    tin = db.Column(db.String(15))
    sss_num = db.Column(db.String(15))
    philhealth_num = db.Column(db.String(15))
    pagibig_num = db.Column(db.String(15))

    user = db.relationship('User', back_populates='employee')
    wage_profile = db.relationship('WageProfile', back_populates='employee', uselist=False,
                                   cascade='all, delete-orphan')
    payslips = db.relationship('Payslip', back_populates='employee', lazy='dynamic')
    attendance_days = db.relationship('AttendanceDay', back_populates='employee', lazy='dynamic')
    leave_requests = db.relationship('LeaveRequest', back_populates='employee', lazy='dynamic')
    penalties = db.relationship('Penalty', back_populates='employee', lazy='dynamic')

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'

    def __repr__(self):
        return f'<Employee {self.employee_id_number}>'


class WageProfile(db.Model):
    __tablename__ = 'wage_profile'

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), unique=True, nullable=False)
    wage_type = db.Column(db.String(10), nullable=False, default='MONTHLY')
    base_rate = db.Column(db.Numeric(12, 4), nullable=False)
    standard_work_days_per_month = db.Column(db.Integer, nullable=False, default=26)
    standard_hours_per_day = db.Column(db.Integer, nullable=False, default=8)
    shift_template_id = db.Column(db.Integer, db.ForeignKey('shift_template.id'))

    is_benefits_eligible = db.Column(db.Boolean, nullable=False, default=True)
    is_ot_eligible = db.Column(db.Boolean, nullable=False, default=True)
    is_nd_eligible = db.Column(db.Boolean, nullable=False, default=True)

    # Monthly allowance amounts
    rice_allowance = db.Column(db.Numeric(10, 2), default=Decimal('0.00'))
    clothing_allowance = db.Column(db.Numeric(10, 2), default=Decimal('0.00'))
    laundry_allowance = db.Column(db.Numeric(10, 2), default=Decimal('0.00'))
    medical_allowance = db.Column(db.Numeric(10, 2), default=Decimal('0.00'))
    transportation_allowance = db.Column(db.Numeric(10, 2), default=Decimal('0.00'))
    meal_allowance = db.Column(db.Numeric(10, 2), default=Decimal('0.00'))
    communication_allowance = db.Column(db.Numeric(10, 2), default=Decimal('0.00'))

    employee = db.relationship('Employee', back_populates='wage_profile')
    shift_template = db.relationship('ShiftTemplate')

    def __repr__(self):
        return f'<WageProfile {self.wage_type} {self.base_rate} for employee {self.employee_id}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_log'

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    action = db.Column(db.String(100), nullable=False)
    details = db.Column(db.Text, nullable=True)

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.user_id} on {self.timestamp}>"
