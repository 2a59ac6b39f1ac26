# tests/test_service.py

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from phpayroll.engine.exceptions import PayrollInputError, PayrollNotFound, PayrollStateError
from phpayroll.models.payroll import AttendanceDay, Holiday, PenaltyInstallment, Payslip, PayslipLine
from phpayroll.payroll import service
from phpayroll.payroll.loader import load_employee_inputs


@pytest.fixture
def run_factory(db):
    def create_run(start=date(2026, 1, 1), end=date(2026, 1, 15), pay_date=None):
        run = service.create_payroll_run(start, end, pay_date or end)
        db.session.commit()
        return run
    return create_run


def release(db, run):
    service.approve_payroll_run(run)
    service.release_payroll_run(run)
    db.session.commit()


class TestCreateRun:

    def test_new_run_is_draft_with_ruleset(self, run_factory):
        run = run_factory()

        assert run.status == 'DRAFT'
        assert run.ruleset_id == 'ph-standard-2026'
        assert run.pay_frequency == 'SEMI_MONTHLY'

    def test_end_before_start_rejected(self, app):
        with pytest.raises(PayrollInputError):
            service.create_payroll_run(date(2026, 1, 15), date(2026, 1, 1), date(2026, 1, 15))

    def test_missing_run(self, app):
        with pytest.raises(PayrollNotFound):
            service.get_payroll_run(999)


class TestLoader:

    def test_builds_inputs_from_stored_rows(self, db, run_factory, employee_factory):
        employee = employee_factory(wage_type='DAILY', base_rate=Decimal('800'))
        db.session.add(AttendanceDay(employee_id=employee.id, work_date=date(2026, 1, 5),
                                     clock_in=datetime(2026, 1, 5, 8, 0),
                                     clock_out=datetime(2026, 1, 5, 17, 0)))
        db.session.add(Holiday(name="New Year's Day", date=date(2026, 1, 1), day_type='REGULAR_HOLIDAY'))
        db.session.commit()
        run = run_factory()

        pay_period, inputs = load_employee_inputs(run)

        assert '2026-01-01' in pay_period.calendar_events
        assert len(inputs) == 1
        day = inputs[0].attendance[0]
        assert day.sched_start == time(8, 0)
        assert day.break_minutes == 60
        assert inputs[0].profile.base_rate == Decimal('800')

    def test_employee_selection(self, run_factory, employee_factory):
        first = employee_factory()
        employee_factory()
        run = run_factory()

        _, inputs = load_employee_inputs(run, [first.id])

        assert [i.employee_id for i in inputs] == [first.id]

    def test_pay_period_uses_configured_timezone(self, app, run_factory, employee_factory):
        employee_factory()
        app.config['TIMEZONE'] = 'Asia/Singapore'
        run = run_factory()

        pay_period, _ = load_employee_inputs(run)

        assert pay_period.tz.zone == 'Asia/Singapore'


class TestComputeRun:

    def test_compute_saves_payslips_and_moves_to_review(self, db, run_factory, employee_factory):
        employee = employee_factory()
        run = run_factory()

        result = service.compute_payroll_run(run)

        assert result.payslip_count == 1
        assert run.status == 'REVIEW'
        assert run.computed_at is not None
        payslip = run.payslips.one()
        assert payslip.payslip_number == f'{employee.employee_id_number}-2026-01-{run.id:03d}'
        assert payslip.net_pay == Decimal('11698.75')
        assert payslip.basic_pay == Decimal('13000.00')
        assert payslip.pay_profile_snapshot['wage_type'] == 'MONTHLY'
        assert [line.sort_order for line in payslip.lines] == sorted(l.sort_order for l in payslip.lines)
        assert run.total_net_pay == Decimal('11698.75')
        assert run.payslip_count == 1

    def test_recompute_replaces_payslips(self, db, run_factory, employee_factory):
        employee_factory()
        employee_factory(base_rate=Decimal('30000'))
        run = run_factory()

        service.compute_payroll_run(run)
        first = sorted((p.payslip_number, p.net_pay) for p in run.payslips)
        service.compute_payroll_run(run)
        second = sorted((p.payslip_number, p.net_pay) for p in run.payslips)

        assert first == second
        assert Payslip.query.count() == 2
        assert PayslipLine.query.count() == sum(len(p.lines) for p in run.payslips)

    def test_partial_recompute_keeps_other_payslips(self, db, run_factory, employee_factory):
        first = employee_factory()
        second = employee_factory()
        run = run_factory()
        service.compute_payroll_run(run)
        untouched_id = run.payslips.filter_by(employee_id=first.id).one().id

        service.compute_payroll_run(run, employee_ids=[second.id])

        assert run.payslips.count() == 2
        assert run.payslips.filter_by(employee_id=first.id).one().id == untouched_id
        assert run.employee_count == 2

    def test_employee_errors_do_not_fail_the_run(self, run_factory, employee_factory):
        employee_factory()
        broken = employee_factory(with_profile=False)
        run = run_factory()

        result = service.compute_payroll_run(run)

        assert run.status == 'REVIEW'
        assert result.payslip_count == 1
        assert result.errors[0].employee_id == broken.id
        assert 'wage profile' in run.last_error

    def test_failure_returns_run_to_draft(self, run_factory, employee_factory, monkeypatch):
        employee_factory()
        run = run_factory()

        def boom(*args, **kwargs):
            raise RuntimeError('database went away')
        monkeypatch.setattr(service, 'load_employee_inputs', boom)

        with pytest.raises(RuntimeError):
            service.compute_payroll_run(run)

        assert run.status == 'DRAFT'
        assert run.last_error == 'database went away'

    def test_approved_run_cannot_be_recomputed(self, db, run_factory, employee_factory):
        employee_factory()
        run = run_factory()
        service.compute_payroll_run(run)
        service.approve_payroll_run(run)
        db.session.commit()

        with pytest.raises(PayrollStateError):
            service.compute_payroll_run(run)


class TestLifecycle:

    def test_approve_requires_payslips(self, run_factory):
        run = run_factory()

        with pytest.raises(PayrollStateError):
            service.approve_payroll_run(run)

    def test_release_then_cancel_is_rejected(self, db, run_factory, employee_factory):
        employee_factory()
        run = run_factory()
        service.compute_payroll_run(run)
        release(db, run)

        assert run.status == 'RELEASED'
        assert run.released_at is not None
        with pytest.raises(PayrollStateError):
            service.cancel_payroll_run(run)

    def test_cancel_draft(self, run_factory):
        run = run_factory()

        service.cancel_payroll_run(run)

        assert run.status == 'CANCELLED'

    def test_released_runs_feed_next_ytd(self, db, run_factory, employee_factory):
        employee_factory()
        january_a = run_factory()
        service.compute_payroll_run(january_a)
        release(db, january_a)

        january_b = run_factory(date(2026, 1, 16), date(2026, 1, 31))
        service.compute_payroll_run(january_b)
        payslip = january_b.payslips.one()

        assert payslip.withholding_tax == Decimal('226.25')
        assert payslip.ytd_gross_pay == Decimal('26000.00')
        assert payslip.ytd_taxable_income == Decimal('23850.00')
        assert payslip.ytd_tax_withheld == Decimal('452.50')

    def test_released_allowances_above_de_minimis_feed_full_basis_ytd(self, db, run_factory,
                                                                      employee_factory):
        employee = employee_factory(tax_on_full_earnings=True)
        employee.wage_profile.transportation_allowance = Decimal('2000')
        db.session.commit()
        january_a = run_factory()
        service.compute_payroll_run(january_a)
        assert january_a.payslips.one().taxable_income == Decimal('12925.00')
        release(db, january_a)

        january_b = run_factory(date(2026, 1, 16), date(2026, 1, 31))
        service.compute_payroll_run(january_b)
        payslip = january_b.payslips.one()

        assert payslip.gross_pay == Decimal('13000.00')
        assert payslip.ytd_taxable_income == Decimal('25850.00')


class TestAdjustments:

    def test_adjustment_flows_into_payslip(self, db, run_factory, employee_factory):
        employee = employee_factory()
        run = run_factory()
        adjustment = service.add_manual_adjustment(
            run, employee.id, 'EARNING', 'BONUS', 'Signing bonus', Decimal('500'))
        db.session.commit()

        service.compute_payroll_run(run)
        line = PayslipLine.query.filter_by(manual_adjustment_id=adjustment.id).one()

        assert line.category == 'ADJUSTMENT_ADD'
        assert line.amount == Decimal('500.00')

    def test_delete_clears_line_reference(self, db, run_factory, employee_factory):
        employee = employee_factory()
        run = run_factory()
        adjustment = service.add_manual_adjustment(
            run, employee.id, 'DEDUCTION', 'LOAN', 'Cash advance', Decimal('250'))
        db.session.commit()
        service.compute_payroll_run(run)

        service.delete_manual_adjustment(adjustment.id)
        db.session.commit()

        assert PayslipLine.query.filter(PayslipLine.manual_adjustment_id.isnot(None)).count() == 0
        assert PayslipLine.query.filter_by(category='ADJUSTMENT_DEDUCT').count() == 1

    def test_locked_run_rejects_adjustments(self, db, run_factory, employee_factory):
        employee = employee_factory()
        run = run_factory()
        service.compute_payroll_run(run)
        service.approve_payroll_run(run)

        with pytest.raises(PayrollStateError):
            service.add_manual_adjustment(run, employee.id, 'EARNING', 'BONUS', 'Late bonus', 100)

    def test_unknown_employee(self, run_factory):
        run = run_factory()

        with pytest.raises(PayrollNotFound):
            service.add_manual_adjustment(run, 404, 'EARNING', 'BONUS', 'Bonus', 100)


class TestPenalties:

    def test_release_consumes_installment_and_completes_penalty(self, db, run_factory,
                                                                employee_factory):
        employee = employee_factory()
        penalty = service.create_penalty(employee.id, 'Lost ID card', Decimal('300'), 1,
                                         date(2026, 1, 1))
        db.session.commit()
        run = run_factory()
        service.compute_payroll_run(run)

        line = PayslipLine.query.filter_by(category='PENALTY_DEDUCTION').one()
        assert line.description == 'Lost ID card (1/1)'

        release(db, run)

        installment = db.session.get(PenaltyInstallment, line.penalty_installment_id)
        assert installment.is_deducted
        assert installment.payroll_run_id == run.id
        assert penalty.status == 'COMPLETED'
        assert penalty.total_deducted == Decimal('300.00')

    def test_multi_installment_penalty_stays_active(self, db, run_factory, employee_factory):
        employee = employee_factory()
        penalty = service.create_penalty(employee.id, 'Damaged laptop', Decimal('1000'), 3,
                                         date(2026, 1, 1))
        db.session.commit()
        run = run_factory()
        service.compute_payroll_run(run)
        release(db, run)

        assert [i.amount for i in penalty.installments] == [
            Decimal('333.33'), Decimal('333.33'), Decimal('333.34')]
        assert penalty.status == 'ACTIVE'
        assert penalty.total_deducted == Decimal('333.33')

    def test_cancel_penalty(self, db, employee_factory):
        employee = employee_factory()
        penalty = service.create_penalty(employee.id, 'Tardiness', Decimal('100'), 2, date(2026, 1, 1))

        service.cancel_penalty(penalty.id)

        assert penalty.status == 'CANCELLED'
        with pytest.raises(PayrollStateError):
            service.cancel_penalty(penalty.id)

    def test_two_open_runs_take_different_installments(self, db, run_factory, employee_factory):
        employee = employee_factory()
        penalty = service.create_penalty(employee.id, 'Broken headset', Decimal('900'), 3,
                                         date(2026, 1, 1))
        db.session.commit()
        first = run_factory()
        second = run_factory(date(2026, 1, 16), date(2026, 1, 31))

        service.compute_payroll_run(first)
        service.compute_payroll_run(second)
        claimed = [
            line.penalty_installment_id
            for run in (first, second)
            for line in run.payslips.one().lines
            if line.penalty_installment_id is not None
        ]

        assert len(claimed) == 2
        assert len(set(claimed)) == 2

        release(db, first)
        release(db, second)

        assert [i.is_deducted for i in penalty.installments] == [True, True, False]
        assert penalty.total_deducted == Decimal('600.00')
        assert penalty.status == 'ACTIVE'

    def test_recompute_keeps_its_own_installment(self, db, run_factory, employee_factory):
        employee = employee_factory()
        penalty = service.create_penalty(employee.id, 'Broken headset', Decimal('900'), 3,
                                         date(2026, 1, 1))
        db.session.commit()
        run = run_factory()

        service.compute_payroll_run(run)
        service.compute_payroll_run(run)
        line = PayslipLine.query.filter_by(category='PENALTY_DEDUCTION').one()

        assert line.penalty_installment_id == penalty.installments[0].id

    def test_cancelled_run_frees_its_installment(self, db, run_factory, employee_factory):
        employee = employee_factory()
        penalty = service.create_penalty(employee.id, 'Broken headset', Decimal('900'), 3,
                                         date(2026, 1, 1))
        db.session.commit()
        first = run_factory()
        service.compute_payroll_run(first)
        service.cancel_payroll_run(first)
        db.session.commit()

        second = run_factory(date(2026, 1, 16), date(2026, 1, 31))
        service.compute_payroll_run(second)
        claimed = [l.penalty_installment_id for l in second.payslips.one().lines
                   if l.penalty_installment_id is not None]

        assert claimed == [penalty.installments[0].id]
