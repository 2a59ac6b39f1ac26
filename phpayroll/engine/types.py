# phpayroll/engine/types.py
"""
Value types passed between the loader, the compute engine and the service.

Everything here is an immutable snapshot: the engine never mutates its
inputs, and a payslip keeps the exact profile it was computed from.
"""

import enum
from dataclasses import dataclass, field, fields
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional, Tuple, Union

ZERO = Decimal('0')


class WageType(str, enum.Enum):
    MONTHLY = 'MONTHLY'
    DAILY = 'DAILY'
    HOURLY = 'HOURLY'


class PayFrequency(str, enum.Enum):
    MONTHLY = 'MONTHLY'
    SEMI_MONTHLY = 'SEMI_MONTHLY'
    BI_WEEKLY = 'BI_WEEKLY'
    WEEKLY = 'WEEKLY'


class DayType(str, enum.Enum):
    WORKDAY = 'WORKDAY'
    REST_DAY = 'REST_DAY'
    REGULAR_HOLIDAY = 'REGULAR_HOLIDAY'
    SPECIAL_HOLIDAY = 'SPECIAL_HOLIDAY'
    SPECIAL_WORKING = 'SPECIAL_WORKING'

    @property
    def is_holiday(self):
        return self in (DayType.REGULAR_HOLIDAY, DayType.SPECIAL_HOLIDAY)

    @property
    def is_workday(self):
        return self in (DayType.WORKDAY, DayType.SPECIAL_WORKING)


class EmploymentType(str, enum.Enum):
    REGULAR = 'REGULAR'
    PROBATIONARY = 'PROBATIONARY'
    CONTRACTUAL = 'CONTRACTUAL'
    PROJECT = 'PROJECT'


class AdjustmentType(str, enum.Enum):
    EARNING = 'EARNING'
    DEDUCTION = 'DEDUCTION'


class RunStatus(str, enum.Enum):
    DRAFT = 'DRAFT'
    COMPUTING = 'COMPUTING'
    REVIEW = 'REVIEW'
    APPROVED = 'APPROVED'
    RELEASED = 'RELEASED'
    CANCELLED = 'CANCELLED'


class PenaltyStatus(str, enum.Enum):
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


# --- Payslip line categories ---

class LineKind(str, enum.Enum):
    EARNING = 'EARNING'      # counted in gross pay
    ADDITION = 'ADDITION'    # added to net only, never taxed
    DEDUCTION = 'DEDUCTION'
    EMPLOYER = 'EMPLOYER'    # employer share, informational


class LineCategory(str, enum.Enum):
    """Every line the engine can emit, tagged with how it affects totals."""

    def __new__(cls, value, kind):
        member = str.__new__(cls, value)
        member._value_ = value
        member.kind = kind
        return member

    BASIC_PAY = ('BASIC_PAY', LineKind.EARNING)
    HOLIDAY_PAY = ('HOLIDAY_PAY', LineKind.EARNING)
    REST_DAY_PAY = ('REST_DAY_PAY', LineKind.EARNING)
    OVERTIME_REGULAR = ('OVERTIME_REGULAR', LineKind.EARNING)
    OVERTIME_REST_DAY = ('OVERTIME_REST_DAY', LineKind.EARNING)
    OVERTIME_HOLIDAY = ('OVERTIME_HOLIDAY', LineKind.EARNING)
    NIGHT_DIFFERENTIAL = ('NIGHT_DIFFERENTIAL', LineKind.EARNING)
    ADJUSTMENT_ADD = ('ADJUSTMENT_ADD', LineKind.EARNING)
    ALLOWANCE = ('ALLOWANCE', LineKind.ADDITION)
    REIMBURSEMENT = ('REIMBURSEMENT', LineKind.ADDITION)
    LATE_UT_DEDUCTION = ('LATE_UT_DEDUCTION', LineKind.DEDUCTION)
    ABSENT_DEDUCTION = ('ABSENT_DEDUCTION', LineKind.DEDUCTION)
    SSS_EE = ('SSS_EE', LineKind.DEDUCTION)
    PHILHEALTH_EE = ('PHILHEALTH_EE', LineKind.DEDUCTION)
    PAGIBIG_EE = ('PAGIBIG_EE', LineKind.DEDUCTION)
    TAX_WITHHOLDING = ('TAX_WITHHOLDING', LineKind.DEDUCTION)
    PENALTY_DEDUCTION = ('PENALTY_DEDUCTION', LineKind.DEDUCTION)
    ADJUSTMENT_DEDUCT = ('ADJUSTMENT_DEDUCT', LineKind.DEDUCTION)
    SSS_ER = ('SSS_ER', LineKind.EMPLOYER)
    PHILHEALTH_ER = ('PHILHEALTH_ER', LineKind.EMPLOYER)
    PAGIBIG_ER = ('PAGIBIG_ER', LineKind.EMPLOYER)


@dataclass(frozen=True)
class AttendanceSource:
    attendance_day_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class AdjustmentSource:
    manual_adjustment_id: int


@dataclass(frozen=True)
class InstallmentSource:
    penalty_id: int
    penalty_installment_id: int


LineSource = Union[AttendanceSource, AdjustmentSource, InstallmentSource, None]


@dataclass(frozen=True)
class PayslipLine:
    category: LineCategory
    description: str
    amount: Decimal
    sort_order: int
    quantity: Optional[Decimal] = None
    rate: Optional[Decimal] = None
    multiplier: Optional[Decimal] = None
    rule_code: Optional[str] = None
    rule_description: Optional[str] = None
    source: LineSource = None

    @property
    def kind(self):
        return self.category.kind


# --- Attendance ---

@dataclass(frozen=True)
class ApprovalFlags:
    early_in: bool = False
    late_out: bool = False
    late_in: bool = False
    early_out: bool = False


@dataclass(frozen=True)
class DayMetrics:
    late_minutes: int = 0
    undertime_minutes: int = 0
    ot_early_in_minutes: int = 0
    ot_late_out_minutes: int = 0
    ot_break_minutes: int = 0
    worked_minutes: int = 0
    night_diff_minutes: int = 0


@dataclass(frozen=True)
class AttendanceDayInput:
    id: Optional[int]
    date: date
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    sched_start: Optional[time] = None
    sched_end: Optional[time] = None
    break_minutes: int = 60
    break_minutes_override: Optional[int] = None
    break_start: Optional[time] = None
    break_end: Optional[time] = None
    is_overnight: bool = False
    approvals: ApprovalFlags = ApprovalFlags()
    day_type: DayType = DayType.WORKDAY
    is_on_leave: bool = False
    leave_is_paid: bool = False
    leave_hours: Optional[Decimal] = None
    daily_rate_override: Optional[Decimal] = None


@dataclass(frozen=True)
class PreparedDay:
    """An attendance day after day-type resolution and metric computation."""
    source: AttendanceDayInput
    resolution: 'DayTypeResolution'
    stored_day_type: DayType
    effective_day_type: DayType
    metrics: DayMetrics
    multiplier: Decimal
    scheduled_minutes: int
    absent_minutes: int = 0
    overtime_rest_day_minutes: int = 0
    overtime_holiday_minutes: int = 0

    @property
    def worked_minutes(self):
        return self.metrics.worked_minutes

    @property
    def approved_ot_minutes(self):
        return (self.metrics.ot_early_in_minutes + self.metrics.ot_late_out_minutes
                + self.metrics.ot_break_minutes)

    @property
    def is_paid_leave(self):
        return self.source.is_on_leave and self.source.leave_is_paid


@dataclass(frozen=True)
class HolidayInfo:
    id: Optional[int]
    name: str
    day_type: DayType
    multiplier: Optional[Decimal] = None
    rest_day_multiplier: Optional[Decimal] = None


@dataclass(frozen=True)
class DayTypeResolution:
    day_type: DayType
    holiday_id: Optional[int] = None
    holiday_name: Optional[str] = None
    multiplier: Decimal = Decimal('1.0')
    rest_day_multiplier: Optional[Decimal] = None

    @property
    def is_holiday(self):
        return self.day_type.is_holiday


# --- Statutory tables ---

@dataclass(frozen=True)
class SssBracket:
    min_salary: Decimal
    max_salary: Optional[Decimal]
    regular_ee: Decimal
    regular_er: Decimal
    ec_er: Decimal
    mpf_ee: Decimal = ZERO
    mpf_er: Decimal = ZERO


@dataclass(frozen=True)
class PhilHealthTable:
    premium_rate: Decimal
    min_base: Decimal
    max_base: Decimal
    ee_share: Decimal


@dataclass(frozen=True)
class PagIbigTable:
    ee_rate: Decimal
    er_rate: Decimal
    max_base: Decimal


@dataclass(frozen=True)
class TaxBracket:
    min_income: Decimal
    max_income: Optional[Decimal]
    base_tax: Decimal
    rate: Decimal


@dataclass(frozen=True)
class RulesetInput:
    id: str
    version: int
    sss_table: Tuple[SssBracket, ...]
    philhealth_table: PhilHealthTable
    pagibig_table: PagIbigTable
    tax_table: Tuple[TaxBracket, ...]
    rest_day_multiplier: Decimal = Decimal('1.3')
    overtime_multiplier: Decimal = Decimal('1.25')
    night_diff_rate: Decimal = Decimal('0.10')
    premium_day_overtime_multiplier: Decimal = Decimal('1.3')
    salary_credit_days: int = 26


# --- Employee inputs ---

@dataclass(frozen=True)
class Allowances:
    rice: Decimal = ZERO
    clothing: Decimal = ZERO
    laundry: Decimal = ZERO
    medical: Decimal = ZERO
    transportation: Decimal = ZERO
    meal: Decimal = ZERO
    communication: Decimal = ZERO

    def items(self):
        return [(f.name, getattr(self, f.name)) for f in fields(self)]


@dataclass(frozen=True)
class PayProfile:
    employee_id: int
    wage_type: WageType
    base_rate: Decimal
    pay_frequency: PayFrequency = PayFrequency.SEMI_MONTHLY
    standard_work_days_per_month: int = 26
    standard_hours_per_day: int = 8
    is_benefits_eligible: bool = True
    is_ot_eligible: bool = True
    is_nd_eligible: bool = True
    allowances: Allowances = Allowances()

    def snapshot(self):
        """Plain dict stored with the payslip for audit."""
        return {
            'employee_id': self.employee_id,
            'wage_type': self.wage_type.value,
            'base_rate': str(self.base_rate),
            'pay_frequency': self.pay_frequency.value,
            'standard_work_days_per_month': self.standard_work_days_per_month,
            'standard_hours_per_day': self.standard_hours_per_day,
            'is_benefits_eligible': self.is_benefits_eligible,
            'is_ot_eligible': self.is_ot_eligible,
            'is_nd_eligible': self.is_nd_eligible,
            'allowances': {name: str(amount) for name, amount in self.allowances.items()},
        }


@dataclass(frozen=True)
class StatutoryOverride:
    wage_type: WageType
    base_rate: Decimal


@dataclass(frozen=True)
class Regularization:
    employment_type: EmploymentType = EmploymentType.REGULAR
    regularization_date: Optional[date] = None


@dataclass(frozen=True)
class ManualAdjustment:
    id: int
    adjustment_type: AdjustmentType
    category: str
    description: str
    amount: Decimal
    remarks: Optional[str] = None


@dataclass(frozen=True)
class PenaltyDeduction:
    penalty_id: int
    installment_id: int
    installment_number: int
    installment_count: int
    description: str
    amount: Decimal


@dataclass(frozen=True)
class Ytd:
    gross_pay: Decimal = ZERO
    taxable_income: Decimal = ZERO
    tax_withheld: Decimal = ZERO


@dataclass(frozen=True)
class PastPayslip:
    """The parts of a stored payslip the YTD accumulator replays."""
    period_start: date
    status: RunStatus
    gross_pay: Decimal = ZERO
    tax_withheld: Decimal = ZERO
    sss_ee: Decimal = ZERO
    philhealth_ee: Decimal = ZERO
    pagibig_ee: Decimal = ZERO
    basic_pay: Decimal = ZERO
    late_ut_deduction: Decimal = ZERO
    taxable_allowances: Decimal = ZERO

    @property
    def statutory_ee(self):
        return self.sss_ee + self.philhealth_ee + self.pagibig_ee


@dataclass(frozen=True)
class PayPeriod:
    start: date
    end: date
    pay_frequency: PayFrequency = PayFrequency.SEMI_MONTHLY
    pay_date: Optional[date] = None
    calendar_events: dict = field(default_factory=dict)
    rest_days: frozenset = frozenset({5, 6})
    tz: Any = None


@dataclass(frozen=True)
class EmployeePayrollInput:
    employee_id: int
    profile: Optional[PayProfile]
    attendance: Tuple[AttendanceDayInput, ...] = ()
    regularization: Regularization = Regularization()
    adjustments: Tuple[ManualAdjustment, ...] = ()
    penalties: Tuple[PenaltyDeduction, ...] = ()
    previous_ytd: Ytd = Ytd()
    statutory_override: Optional[StatutoryOverride] = None
    tax_on_full_earnings: bool = False
    employee_number: Optional[str] = None


# --- Outputs ---

@dataclass(frozen=True)
class PayslipTotals:
    gross_pay: Decimal = ZERO
    total_earnings: Decimal = ZERO
    total_deductions: Decimal = ZERO
    net_pay: Decimal = ZERO
    taxable_income: Decimal = ZERO
    sss_ee: Decimal = ZERO
    sss_er: Decimal = ZERO
    philhealth_ee: Decimal = ZERO
    philhealth_er: Decimal = ZERO
    pagibig_ee: Decimal = ZERO
    pagibig_er: Decimal = ZERO
    withholding_tax: Decimal = ZERO

    def __add__(self, other):
        return PayslipTotals(**{
            f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)
        })


@dataclass(frozen=True)
class ComputedPayslip:
    employee_id: int
    lines: Tuple[PayslipLine, ...]
    totals: PayslipTotals
    ytd: Ytd
    pay_profile_snapshot: dict
    employee_number: Optional[str] = None
    work_days: Decimal = ZERO


@dataclass(frozen=True)
class EmployeeError:
    employee_id: int
    message: str


@dataclass(frozen=True)
class PayrollResult:
    payslips: Tuple[ComputedPayslip, ...]
    totals: PayslipTotals
    employee_count: int
    payslip_count: int
    errors: Tuple[EmployeeError, ...] = ()
