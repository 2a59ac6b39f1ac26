# phpayroll/engine/ytd.py
"""
Year-to-date accumulator.

Stored YTD figures can go stale when an employee's tax basis or declared
wage changes mid-year. Instead of trusting them, replay the year's released
payslips and recompute taxable income under the employee's current policy.
Gross pay and tax withheld are taken as stored.
"""

from datetime import date

from .types import RunStatus, Ytd, ZERO
from .wages import money, override_monthly_equivalent


def _period_taxable(payslip, tax_on_full_earnings, override_per_period):
    # No contributions means the employee was not yet eligible; nothing was taxed
    if payslip.statutory_ee <= ZERO:
        return ZERO
    if tax_on_full_earnings:
        basis = payslip.gross_pay + payslip.taxable_allowances
    elif override_per_period is not None:
        basis = override_per_period
    else:
        basis = payslip.basic_pay - payslip.late_ut_deduction
    return max(ZERO, basis - payslip.statutory_ee)


def compute_employee_ytd(past_payslips, tax_on_full_earnings, statutory_override,
                         periods_per_month, period_start):
    """
    Replays RELEASED payslips from January 1 of period_start's year up to,
    but not including, period_start, oldest first.
    """
    year_start = date(period_start.year, 1, 1)
    released = sorted(
        (p for p in past_payslips
         if RunStatus(p.status) == RunStatus.RELEASED
         and year_start <= p.period_start < period_start),
        key=lambda p: p.period_start,
    )

    override_per_period = None
    if statutory_override is not None:
        override_per_period = override_monthly_equivalent(statutory_override) / periods_per_month

    gross = taxable = withheld = ZERO
    for payslip in released:
        gross += payslip.gross_pay
        withheld += payslip.tax_withheld
        taxable += _period_taxable(payslip, tax_on_full_earnings, override_per_period)

    return Ytd(gross_pay=money(gross), taxable_income=money(taxable), tax_withheld=money(withheld))
