# phpayroll/models/__init__.py

from .user import User, Employee, WageProfile, AuditLog
from .payroll import (
    ShiftTemplate, LeaveRequest, AttendanceDay, Holiday, PayrollRun, Payslip, PayslipLine,
    ManualAdjustment, Penalty, PenaltyInstallment,
)
