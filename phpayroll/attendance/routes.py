# phpayroll/attendance/routes.py

from dataclasses import asdict

import pytz
from flask import current_app, jsonify

from phpayroll import db
from phpayroll.attendance import bp
from phpayroll.auth.decorators import role_required
from phpayroll.engine.attendance import metrics_for_day
from phpayroll.engine.day_types import resolve_day_type
from phpayroll.engine.exceptions import PayrollNotFound
from phpayroll.models.payroll import AttendanceDay
from phpayroll.payroll.loader import build_attendance_input, load_calendar_events


@bp.route('/days/<int:day_id>/metrics', methods=['GET'])
@role_required('Payroll_Admin')
def day_metrics(day_id):
    """Late, undertime, overtime, worked and night-differential minutes for one day."""
    day = db.session.get(AttendanceDay, day_id)
    if day is None:
        raise PayrollNotFound(f'Attendance day {day_id} not found')

    tz = pytz.timezone(current_app.config['TIMEZONE'])
    wage_profile = day.employee.wage_profile
    default_shift = wage_profile.shift_template if wage_profile else None
    day_input = build_attendance_input(day, default_shift)

    resolution = resolve_day_type(
        day.work_date,
        frozenset(current_app.config['DEFAULT_REST_DAYS']),
        load_calendar_events(day.work_date, day.work_date, tz),
        tz=tz,
    )
    return jsonify({
        'id': day.id,
        'employee_id': day.employee_id,
        'work_date': day.work_date.isoformat(),
        'day_type': day.day_type,
        'resolved_day_type': resolution.day_type.value,
        'holiday_name': resolution.holiday_name,
        'metrics': asdict(metrics_for_day(day_input, tz=tz)),
    })
