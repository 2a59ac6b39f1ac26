# tests/conftest.py

"""
Pytest fixtures and factories for payroll tests.

Engine tests build frozen inputs directly; service and route tests run
against an in-memory SQLite database created per test.
"""

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from phpayroll import create_app, db as _db
from phpayroll.engine.statutory import PH_STANDARD_2026
from phpayroll.engine.types import (
    Allowances, ApprovalFlags, AttendanceDayInput, DayType, EmployeePayrollInput,
    EmploymentType, HolidayInfo, PayFrequency, PayPeriod, PayProfile, Regularization,
    WageType,
)
from phpayroll.models.payroll import ShiftTemplate
from phpayroll.models.user import Employee, User, WageProfile

ADMIN_USERNAME = 'payroll.admin'
ADMIN_PASSWORD = 'secret-pass'


# --- Application fixtures ---

@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_user(db):
    user = User(username=ADMIN_USERNAME, role='Payroll_Admin', full_name='Payroll Admin')
    user.set_password(ADMIN_PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_client(client, admin_user):
    response = client.post('/auth/signin', json={
        'username': ADMIN_USERNAME, 'password': ADMIN_PASSWORD,
    })
    assert response.status_code == 200
    return client


@pytest.fixture
def day_shift(db):
    shift = ShiftTemplate(name='Day Shift', start_time=time(8, 0), end_time=time(17, 0),
                          break_minutes=60)
    db.session.add(shift)
    db.session.commit()
    return shift


@pytest.fixture
def employee_factory(db, day_shift):
    """Creates an active employee with a wage profile on the day shift."""
    counter = {'n': 0}

    def create_employee(wage_type='MONTHLY', base_rate=Decimal('26000'), with_profile=True,
                        employment_type='REGULAR', **kwargs):
        counter['n'] += 1
        employee = Employee(
            employee_id_number=kwargs.pop('employee_id_number', f'EMP{counter["n"]:03d}'),
            first_name=kwargs.pop('first_name', 'Juan'),
            last_name=kwargs.pop('last_name', f'Dela Cruz {counter["n"]}'),
            date_hired=date(2025, 6, 1),
            status='Active',
            employment_type=employment_type,
            **kwargs
        )
        if with_profile:
            employee.wage_profile = WageProfile(
                wage_type=wage_type,
                base_rate=Decimal(base_rate),
                shift_template=day_shift,
            )
        db.session.add(employee)
        db.session.commit()
        return employee

    return create_employee


# --- Engine input factories ---

@pytest.fixture
def ruleset():
    return PH_STANDARD_2026


@pytest.fixture
def profile_factory():
    def create_profile(wage_type=WageType.MONTHLY, base_rate='26000', employee_id=1, **kwargs):
        return PayProfile(
            employee_id=employee_id,
            wage_type=WageType(wage_type),
            base_rate=Decimal(base_rate),
            pay_frequency=kwargs.pop('pay_frequency', PayFrequency.SEMI_MONTHLY),
            allowances=kwargs.pop('allowances', Allowances()),
            **kwargs
        )
    return create_profile


@pytest.fixture
def day_factory():
    """Attendance day on the 08:00-17:00 shift; clock times given as (h, m)."""
    def create_day(work_date, clock_in=(8, 0), clock_out=(17, 0), day_id=None, **kwargs):
        def at(value):
            if value is None:
                return None
            return datetime.combine(work_date, time(*value))
        return AttendanceDayInput(
            id=day_id,
            date=work_date,
            clock_in=at(clock_in),
            clock_out=at(clock_out),
            sched_start=kwargs.pop('sched_start', time(8, 0)),
            sched_end=kwargs.pop('sched_end', time(17, 0)),
            approvals=kwargs.pop('approvals', ApprovalFlags()),
            day_type=kwargs.pop('day_type', DayType.WORKDAY),
            **kwargs
        )
    return create_day


@pytest.fixture
def employee_input_factory(profile_factory):
    def create_input(employee_id=1, profile=None, attendance=(), **kwargs):
        if profile is None and not kwargs.pop('without_profile', False):
            profile = profile_factory(employee_id=employee_id)
        return EmployeePayrollInput(
            employee_id=employee_id,
            employee_number=f'EMP{employee_id:03d}',
            profile=profile,
            attendance=tuple(attendance),
            regularization=kwargs.pop('regularization', Regularization(EmploymentType.REGULAR)),
            **kwargs
        )
    return create_input


@pytest.fixture
def pay_period():
    """First half of January 2026."""
    return PayPeriod(
        start=date(2026, 1, 1),
        end=date(2026, 1, 15),
        pay_frequency=PayFrequency.SEMI_MONTHLY,
        pay_date=date(2026, 1, 15),
    )


@pytest.fixture
def new_year_period(pay_period):
    """The same period with New Year's Day on the calendar."""
    return PayPeriod(
        start=pay_period.start,
        end=pay_period.end,
        pay_frequency=pay_period.pay_frequency,
        pay_date=pay_period.pay_date,
        calendar_events={
            '2026-01-01': HolidayInfo(id=1, name="New Year's Day", day_type=DayType.REGULAR_HOLIDAY),
        },
    )
