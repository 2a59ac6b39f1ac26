# phpayroll/engine/statutory.py
"""
Statutory table store: SSS, PhilHealth, Pag-IBIG and BIR withholding tables
plus the lookups that read them.

Tables are versioned constants bundled into a RulesetInput. Nothing in the
compute engine reads the module-level tables directly; callers pick a
ruleset with get_ruleset() and pass it in.
"""

from decimal import Decimal, ROUND_HALF_UP

from .exceptions import RulesetNotFound
from .types import (
    EmploymentType, PagIbigTable, PhilHealthTable, RulesetInput, SssBracket,
    TaxBracket, ZERO,
)

CENT = Decimal('0.01')


def _money(value):
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# --- SSS CONTRIBUTION TABLE (2026) ---
# Monthly salary credit from 5,000 to 35,000 in 500 steps. Regular SS tops out
# at the 20,000 credit; the excess goes to the Mandatory Provident Fund.

def _sss_2026_brackets():
    brackets = []
    step = Decimal('500')
    lower = Decimal('5250')
    brackets.append(SssBracket(
        min_salary=ZERO, max_salary=Decimal('5249.99'),
        regular_ee=Decimal('250'), regular_er=Decimal('500'), ec_er=Decimal('10'),
    ))
    regular_ee = Decimal('250')
    mpf_ee = ZERO
    while lower < Decimal('34750'):
        if regular_ee < Decimal('1000'):
            regular_ee += Decimal('25')
        else:
            mpf_ee += Decimal('25')
        brackets.append(SssBracket(
            min_salary=lower,
            max_salary=lower + step - CENT,
            regular_ee=regular_ee,
            regular_er=regular_ee * 2,
            ec_er=Decimal('30') if lower >= Decimal('14750') else Decimal('10'),
            mpf_ee=mpf_ee,
            mpf_er=mpf_ee * 2,
        ))
        lower += step
    brackets.append(SssBracket(
        min_salary=Decimal('34750'), max_salary=None,
        regular_ee=Decimal('1000'), regular_er=Decimal('2000'), ec_er=Decimal('30'),
        mpf_ee=Decimal('750'), mpf_er=Decimal('1500'),
    ))
    return tuple(brackets)


SSS_TABLE_2026 = _sss_2026_brackets()

# --- PHILHEALTH CONTRIBUTION TABLE (2026) ---
PHILHEALTH_TABLE_2026 = PhilHealthTable(
    premium_rate=Decimal('0.05'),
    min_base=Decimal('10000.00'),
    max_base=Decimal('100000.00'),
    ee_share=Decimal('0.5'),
)

# --- PAG-IBIG (HDMF) CONTRIBUTION (2026) ---
PAGIBIG_TABLE_2026 = PagIbigTable(
    ee_rate=Decimal('0.02'),
    er_rate=Decimal('0.02'),
    max_base=Decimal('10000.00'),
)

# --- WITHHOLDING TAX (TRAIN, annual) ---
# min_income is the threshold the excess is measured from.
TAX_TABLE_2026 = (
    TaxBracket(Decimal('0'), Decimal('250000'), Decimal('0'), Decimal('0')),
    TaxBracket(Decimal('250000'), Decimal('400000'), Decimal('0'), Decimal('0.15')),
    TaxBracket(Decimal('400000'), Decimal('800000'), Decimal('22500'), Decimal('0.20')),
    TaxBracket(Decimal('800000'), Decimal('2000000'), Decimal('102500'), Decimal('0.25')),
    TaxBracket(Decimal('2000000'), Decimal('8000000'), Decimal('402500'), Decimal('0.30')),
    TaxBracket(Decimal('8000000'), None, Decimal('2202500'), Decimal('0.35')),
)


# --- DE MINIMIS BENEFITS ---
# Monthly ceilings of the tax-exempt allowances (clothing is 6,000 a year).
# Any other allowance, and anything above a ceiling, is taxable.
DE_MINIMIS_MONTHLY_LIMITS = {
    'rice': Decimal('2000'),
    'clothing': Decimal('500'),
    'laundry': Decimal('300'),
    'medical': Decimal('250'),
}


PH_STANDARD_2026 = RulesetInput(
    id='ph-standard-2026',
    version=1,
    sss_table=SSS_TABLE_2026,
    philhealth_table=PHILHEALTH_TABLE_2026,
    pagibig_table=PAGIBIG_TABLE_2026,
    tax_table=TAX_TABLE_2026,
)

RULESETS = {
    PH_STANDARD_2026.id: PH_STANDARD_2026,
}


def get_ruleset(ruleset_id):
    try:
        return RULESETS[ruleset_id]
    except KeyError:
        raise RulesetNotFound(f'Unknown statutory ruleset: {ruleset_id}') from None


# --- LOOKUPS ---

def find_sss_bracket(brackets, salary):
    """Returns the bracket whose upper bound covers salary (the last one is open)."""
    for bracket in brackets:
        if bracket.max_salary is None or salary <= bracket.max_salary:
            return bracket
    return brackets[-1]


def calculate_sss(brackets, salary):
    """Monthly (employee, employer) SSS shares for a monthly salary credit."""
    bracket = find_sss_bracket(brackets, salary)
    ee = bracket.regular_ee + bracket.mpf_ee
    er = bracket.regular_er + bracket.ec_er + bracket.mpf_er
    return ee, er


def calculate_philhealth(table, salary):
    """Monthly (employee, employer) PhilHealth shares."""
    base = min(max(salary, table.min_base), table.max_base)
    total_premium = base * table.premium_rate
    ee = total_premium * table.ee_share
    return ee, total_premium - ee


def calculate_pagibig(table, salary):
    """Monthly (employee, employer) Pag-IBIG shares."""
    base = min(salary, table.max_base)
    return base * table.ee_rate, base * table.er_rate


def find_tax_bracket(brackets, annual_income):
    for bracket in brackets:
        if bracket.max_income is None or annual_income <= bracket.max_income:
            return bracket
    return brackets[-1]


def calculate_annual_tax(brackets, annual_income):
    if annual_income <= ZERO:
        return ZERO
    bracket = find_tax_bracket(brackets, annual_income)
    excess = annual_income - bracket.min_income
    return bracket.base_tax + max(ZERO, excess) * bracket.rate


def calculate_withholding_tax(brackets, current_taxable, ytd_taxable, ytd_withheld,
                              period_number, total_periods):
    """
    Cumulative withholding: annualize taxable income received so far, take the
    tax due on it pro rata to this period, and withhold whatever the year's
    earlier payslips have not already covered.
    """
    cumulative_taxable = ytd_taxable + current_taxable
    if cumulative_taxable <= ZERO or period_number < 1:
        return ZERO
    projected_annual = cumulative_taxable / period_number * total_periods
    annual_tax = calculate_annual_tax(brackets, projected_annual)
    tax_due_to_date = annual_tax / total_periods * period_number
    return _money(max(ZERO, tax_due_to_date - ytd_withheld))


def taxable_allowances(period_amounts, periods_per_month):
    """Taxable part of one period's allowances, given as {name: amount}."""
    taxable = ZERO
    for name, amount in period_amounts.items():
        limit = DE_MINIMIS_MONTHLY_LIMITS.get(name)
        if limit is None:
            taxable += amount
        else:
            taxable += max(ZERO, amount - limit / periods_per_month)
    return _money(taxable)


def is_statutory_eligible(profile, regularization, period_end):
    """
    Government contributions apply to benefits-eligible employees who are
    regular, or whose regularization takes effect within the period.
    """
    if not profile.is_benefits_eligible:
        return False
    if regularization.employment_type == EmploymentType.REGULAR:
        return True
    return (regularization.regularization_date is not None
            and regularization.regularization_date <= period_end)
