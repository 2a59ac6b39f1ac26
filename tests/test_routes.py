# tests/test_routes.py

from datetime import date, datetime

import pytest

from phpayroll.models.payroll import AttendanceDay, Holiday
from phpayroll.models.user import AuditLog, User

RUN_PAYLOAD = {
    'pay_period_start': '2026-01-01',
    'pay_period_end': '2026-01-15',
    'pay_date': '2026-01-15',
}


@pytest.fixture
def computed_run(admin_client, employee_factory):
    employee_factory()
    run_id = admin_client.post('/payroll/runs', json=RUN_PAYLOAD).get_json()['id']
    response = admin_client.post(f'/payroll/runs/{run_id}/compute')
    assert response.status_code == 200
    return run_id


class TestAuth:

    def test_requires_sign_in(self, client):
        response = client.post('/payroll/runs', json=RUN_PAYLOAD)

        assert response.status_code == 401

    def test_wrong_password(self, client, admin_user):
        response = client.post('/auth/signin', json={'username': 'payroll.admin', 'password': 'nope'})

        assert response.status_code == 401

    def test_missing_fields(self, client):
        response = client.post('/auth/signin', json={'username': 'payroll.admin'})

        assert response.status_code == 400
        assert 'password' in response.get_json()['fields']

    def test_other_roles_are_refused(self, client, db):
        user = User(username='clerk', role='Employee')
        user.set_password('clerk-pass')
        db.session.add(user)
        db.session.commit()
        client.post('/auth/signin', json={'username': 'clerk', 'password': 'clerk-pass'})

        response = client.post('/payroll/runs', json=RUN_PAYLOAD)

        assert response.status_code == 403

    def test_sign_out(self, admin_client):
        response = admin_client.post('/auth/signout')

        assert response.get_json() == {'signed_out': 'payroll.admin'}
        assert admin_client.get('/payroll/runs/1').status_code == 401


class TestRunEndpoints:

    def test_create_run(self, admin_client):
        response = admin_client.post('/payroll/runs', json=RUN_PAYLOAD)

        assert response.status_code == 201
        data = response.get_json()
        assert data['status'] == 'DRAFT'
        assert data['pay_frequency'] == 'SEMI_MONTHLY'
        assert AuditLog.query.filter_by(action='CREATE_PAYROLL_RUN').count() == 1

    def test_create_run_rejects_reversed_period(self, admin_client):
        payload = dict(RUN_PAYLOAD, pay_period_end='2025-12-31')

        response = admin_client.post('/payroll/runs', json=payload)

        assert response.status_code == 422
        assert AuditLog.query.count() == 0

    def test_create_run_rejects_bad_date(self, admin_client):
        response = admin_client.post('/payroll/runs', json=dict(RUN_PAYLOAD, pay_date='15/01/2026'))

        assert response.status_code == 400
        assert 'pay_date' in response.get_json()['fields']

    def test_compute_and_view(self, admin_client, computed_run):
        data = admin_client.get(f'/payroll/runs/{computed_run}').get_json()

        assert data['status'] == 'REVIEW'
        assert data['total_net_pay'] == '11698.75'
        assert data['payslips'][0]['payslip_number'] == f'EMP001-2026-01-{computed_run:03d}'

    def test_view_payslip(self, admin_client, computed_run):
        payslip_id = admin_client.get(f'/payroll/runs/{computed_run}').get_json()['payslips'][0]['id']

        data = admin_client.get(f'/payroll/payslips/{payslip_id}').get_json()

        categories = [line['category'] for line in data['lines']]
        assert categories[0] == 'BASIC_PAY'
        assert 'TAX_WITHHOLDING' in categories
        assert data['withholding_tax'] == '226.25'

    def test_compute_rejects_bad_employee_ids(self, admin_client, computed_run):
        response = admin_client.post(f'/payroll/runs/{computed_run}/compute',
                                     json={'employee_ids': 'all'})

        assert response.status_code == 422

    def test_compute_reports_employee_errors(self, admin_client, employee_factory, computed_run):
        broken = employee_factory(with_profile=False)

        data = admin_client.post(f'/payroll/runs/{computed_run}/compute').get_json()

        assert data['status'] == 'REVIEW'
        assert data['errors'] == [{'employee_id': broken.id, 'message': 'Missing wage profile'}]

    def test_full_lifecycle(self, admin_client, computed_run):
        approve = admin_client.post(f'/payroll/runs/{computed_run}/approve')
        release = admin_client.post(f'/payroll/runs/{computed_run}/release')
        cancel = admin_client.post(f'/payroll/runs/{computed_run}/cancel')

        assert approve.get_json()['status'] == 'APPROVED'
        assert release.get_json()['status'] == 'RELEASED'
        assert cancel.status_code == 409
        actions = [log.action for log in AuditLog.query.order_by(AuditLog.id)]
        assert actions == ['CREATE_PAYROLL_RUN', 'COMPUTE_PAYROLL_RUN',
                           'APPROVE_PAYROLL_RUN', 'RELEASE_PAYROLL_RUN']

    def test_release_requires_approval(self, admin_client, computed_run):
        response = admin_client.post(f'/payroll/runs/{computed_run}/release')

        assert response.status_code == 409
        assert 'REVIEW' in response.get_json()['error']

    def test_missing_run(self, admin_client):
        assert admin_client.get('/payroll/runs/42').status_code == 404
        assert admin_client.get('/payroll/payslips/42').status_code == 404


class TestAdjustmentAndPenaltyEndpoints:

    def test_add_and_delete_adjustment(self, admin_client, computed_run):
        response = admin_client.post(f'/payroll/runs/{computed_run}/adjustments', json={
            'employee_id': 1,
            'adjustment_type': 'EARNING',
            'category': 'BONUS',
            'description': 'Performance bonus',
            'amount': '1500.00',
        })

        assert response.status_code == 201
        adjustment = response.get_json()
        assert adjustment['amount'] == '1500.00'

        recomputed = admin_client.post(f'/payroll/runs/{computed_run}/compute').get_json()
        assert recomputed['total_gross_pay'] == '14500.00'

        deleted = admin_client.delete(f'/payroll/adjustments/{adjustment["id"]}')
        assert deleted.get_json() == {'deleted': adjustment['id']}

    def test_adjustment_validation(self, admin_client, computed_run):
        response = admin_client.post(f'/payroll/runs/{computed_run}/adjustments', json={
            'employee_id': 1,
            'adjustment_type': 'BONUS',
            'category': 'BONUS',
            'description': 'Bonus',
            'amount': '-5',
        })

        assert response.status_code == 400
        fields = response.get_json()['fields']
        assert 'adjustment_type' in fields
        assert 'amount' in fields

    def test_create_and_cancel_penalty(self, admin_client, employee_factory):
        employee = employee_factory()

        response = admin_client.post('/payroll/penalties', json={
            'employee_id': employee.id,
            'description': 'Damaged uniform',
            'total_amount': '1000',
            'installment_count': 3,
            'effective_date': '2026-01-01',
        })

        assert response.status_code == 201
        penalty = response.get_json()
        assert [i['amount'] for i in penalty['installments']] == ['333.33', '333.33', '333.34']

        cancelled = admin_client.post(f'/payroll/penalties/{penalty["id"]}/cancel')
        assert cancelled.get_json()['status'] == 'CANCELLED'
        assert admin_client.post(f'/payroll/penalties/{penalty["id"]}/cancel').status_code == 409

    def test_penalty_for_unknown_employee(self, admin_client):
        response = admin_client.post('/payroll/penalties', json={
            'employee_id': 99,
            'description': 'Lost badge',
            'total_amount': '200',
            'installment_count': 1,
            'effective_date': '2026-01-01',
        })

        assert response.status_code == 404


class TestAttendanceEndpoints:

    def test_day_metrics(self, admin_client, db, employee_factory):
        employee = employee_factory()
        day = AttendanceDay(employee_id=employee.id, work_date=date(2026, 1, 5),
                            clock_in=datetime(2026, 1, 5, 8, 15),
                            clock_out=datetime(2026, 1, 5, 17, 0))
        db.session.add(day)
        db.session.commit()

        data = admin_client.get(f'/attendance/days/{day.id}/metrics').get_json()

        assert data['resolved_day_type'] == 'WORKDAY'
        assert data['metrics']['late_minutes'] == 15
        assert data['metrics']['undertime_minutes'] == 0

    def test_holiday_is_resolved_from_calendar(self, admin_client, db, employee_factory):
        employee = employee_factory()
        db.session.add(Holiday(name="New Year's Day", date=date(2026, 1, 1),
                               day_type='REGULAR_HOLIDAY'))
        day = AttendanceDay(employee_id=employee.id, work_date=date(2026, 1, 1))
        db.session.add(day)
        db.session.commit()

        data = admin_client.get(f'/attendance/days/{day.id}/metrics').get_json()

        assert data['resolved_day_type'] == 'REGULAR_HOLIDAY'
        assert data['holiday_name'] == "New Year's Day"
        assert data['metrics']['worked_minutes'] == 0

    def test_missing_day(self, admin_client):
        assert admin_client.get('/attendance/days/7/metrics').status_code == 404
