# run.py

import os
from phpayroll import create_app, db
from phpayroll.models.user import User, Employee, WageProfile, AuditLog
from phpayroll.models.payroll import (
    AttendanceDay, Holiday, ManualAdjustment, PayrollRun, Payslip, Penalty, ShiftTemplate,
)


app = create_app(os.environ.get('FLASK_ENV', 'default'))

@app.shell_context_processor
def make_shell_context():
    """Adds database instance and models to the Flask shell."""
    return dict(db=db, User=User, Employee=Employee, WageProfile=WageProfile, AuditLog=AuditLog,
                ShiftTemplate=ShiftTemplate, AttendanceDay=AttendanceDay, Holiday=Holiday,
                PayrollRun=PayrollRun, Payslip=Payslip, ManualAdjustment=ManualAdjustment,
                Penalty=Penalty)

if __name__ == '__main__':
    app.run()
