# phpayroll/engine/penalties.py
"""Penalty installment schedules and per-run installment selection."""

from decimal import Decimal, ROUND_DOWN

from .exceptions import PayrollInputError
from .types import PenaltyDeduction, PenaltyStatus
from .wages import CENT, money, to_decimal


def build_installment_schedule(total_amount, installment_count):
    """
    Splits total_amount into installment_count amounts. Every installment but
    the last is the total divided evenly and rounded down to the centavo; the
    last absorbs the remainder so the schedule always sums to the total.
    """
    total = to_decimal(total_amount)
    if installment_count < 1:
        raise PayrollInputError('A penalty needs at least one installment')
    if total <= 0:
        raise PayrollInputError('Penalty amount must be positive')

    base = (total / installment_count).quantize(CENT, rounding=ROUND_DOWN)
    last = money(total - base * (installment_count - 1))
    return [base] * (installment_count - 1) + [last]


def select_penalty_deductions(penalties, period_end, claimed_installment_ids=()):
    """
    Picks the next un-deducted installment of every ACTIVE penalty already in
    effect by period_end. penalties are objects with id, status, description,
    effective_date, installment_count and installments (each with id,
    installment_number, amount, is_deducted). Installments in
    claimed_installment_ids already sit on another open run and are skipped.
    """
    claimed = set(claimed_installment_ids)
    eligible = [
        p for p in penalties
        if PenaltyStatus(p.status) == PenaltyStatus.ACTIVE
        and (p.effective_date is None or p.effective_date <= period_end)
    ]
    eligible.sort(key=lambda p: (p.effective_date or period_end, p.id))

    deductions = []
    for penalty in eligible:
        pending = sorted(
            (i for i in penalty.installments if not i.is_deducted and i.id not in claimed),
            key=lambda i: i.installment_number,
        )
        if not pending:
            continue
        installment = pending[0]
        deductions.append(PenaltyDeduction(
            penalty_id=penalty.id,
            installment_id=installment.id,
            installment_number=installment.installment_number,
            installment_count=penalty.installment_count,
            description=penalty.description,
            amount=Decimal(installment.amount),
        ))
    return deductions
