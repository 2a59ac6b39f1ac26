# phpayroll/engine/attendance.py
"""
Attendance metrics: turns one employee-day of clock times and a shift
schedule into late, undertime, overtime, worked and night-differential
minutes.

Clock times are wall-clock Manila time. Timezone-aware datetimes are
converted first; naive ones are taken as already local.
"""

from datetime import datetime, time, timedelta

import pytz

from .types import ApprovalFlags, DayMetrics

MANILA = pytz.timezone('Asia/Manila')

DEFAULT_BREAK_MINUTES = 60
DEFAULT_WORK_MINUTES = 480
HALF_DAY_MINUTES = 300  # no break is assumed at or below this

ND_START = time(22, 0)
ND_END = time(6, 0)


# --- HELPERS ---

def to_local(value, tz=MANILA):
    """Aware datetimes become naive local wall-clock time."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(tz).replace(tzinfo=None)


def whole_minutes(delta):
    """Non-negative minutes in a timedelta, seconds rounded half up."""
    seconds = int(delta.total_seconds())
    if seconds <= 0:
        return 0
    minutes, remainder = divmod(seconds, 60)
    return minutes + (1 if remainder >= 30 else 0)


def overlap_minutes(start_a, end_a, start_b, end_b):
    return whole_minutes(min(end_a, end_b) - max(start_a, start_b))


def schedule_window(work_date, sched_start, sched_end, is_overnight=False):
    """Scheduled start and end instants; overnight shifts end the next day."""
    start = datetime.combine(work_date, sched_start)
    end = datetime.combine(work_date, sched_end)
    if sched_end.hour < sched_start.hour or is_overnight:
        end += timedelta(days=1)
    return start, end


def _break_window(start, break_start, break_end):
    if break_start is None or break_end is None:
        return None
    window_start = datetime.combine(start.date(), break_start)
    if window_start < start:
        window_start += timedelta(days=1)
    window_end = datetime.combine(window_start.date(), break_end)
    if window_end <= window_start:
        window_end += timedelta(days=1)
    return window_start, window_end


def scheduled_work_minutes(work_date, sched_start, sched_end, break_minutes,
                           is_overnight=False):
    """Minutes a full day on this schedule is worth after the break."""
    if sched_start is None or sched_end is None:
        return DEFAULT_WORK_MINUTES
    start, end = schedule_window(work_date, sched_start, sched_end, is_overnight)
    span = whole_minutes(end - start)
    if span > HALF_DAY_MINUTES:
        span -= break_minutes
    return max(0, span)


def night_diff_minutes(window_start, window_end):
    """Minutes of [window_start, window_end] inside any 22:00-06:00 band."""
    total = 0
    day = window_start.date() - timedelta(days=1)
    while datetime.combine(day, ND_START) < window_end:
        band_start = datetime.combine(day, ND_START)
        band_end = datetime.combine(day + timedelta(days=1), ND_END)
        total += overlap_minutes(window_start, window_end, band_start, band_end)
        day += timedelta(days=1)
    return total


def _canonical_minutes(clock_in, clock_out, start, end, approvals, break_window,
                       break_adjustment):
    """
    Late, undertime, early-in OT, late-out OT and break OT against the
    schedule. Time lost inside the break window is never counted as late
    or undertime. A shortened break (break_adjustment) first absorbs
    undertime and late; what remains is break overtime.
    """
    late = ot_early_in = raw_undertime = ot_late_out = 0

    if clock_in > start:
        late = whole_minutes(clock_in - start)
        if break_window:
            late -= overlap_minutes(start, clock_in, *break_window)
    elif clock_in < start and approvals.early_in:
        ot_early_in = whole_minutes(start - clock_in)

    if clock_out < end:
        raw_undertime = whole_minutes(end - clock_out)
        if break_window:
            raw_undertime -= overlap_minutes(clock_out, end, *break_window)
    elif clock_out > end and approvals.late_out:
        ot_late_out = whole_minutes(clock_out - end)

    late = max(0, late)
    raw_undertime = max(0, raw_undertime)
    undertime = max(0, raw_undertime - break_adjustment)
    ot_break = max(0, break_adjustment - raw_undertime - late)
    return late, undertime, ot_early_in, ot_late_out, ot_break


# --- CORE LOGIC: DAILY METRICS ---

def compute_day_metrics(clock_in, clock_out, sched_start, sched_end, break_minutes,
                        approvals, is_overnight, date, shift_break_minutes=None,
                        break_start=None, break_end=None, tz=MANILA):
    """
    Derives all minute counts for one attendance day.

    break_minutes is the break actually applied (an override if one was
    set); shift_break_minutes is the shift template's break. When the
    applied break is shorter, the difference reduces undertime.
    """
    if clock_in is None or clock_out is None:
        return DayMetrics()

    approvals = approvals or ApprovalFlags()
    if break_minutes is None:
        break_minutes = DEFAULT_BREAK_MINUTES
    clock_in = to_local(clock_in, tz)
    clock_out = to_local(clock_out, tz)
    # Overnight punches recorded against the shift date wrap to the next day
    if clock_out < clock_in:
        clock_out += timedelta(days=1)

    late = undertime = ot_early_in = ot_late_out = ot_break = 0
    if sched_start is not None and sched_end is not None:
        start, end = schedule_window(date, sched_start, sched_end, is_overnight)
        if shift_break_minutes is None:
            shift_break_minutes = break_minutes
        break_adjustment = max(0, shift_break_minutes - break_minutes)
        late, undertime, ot_early_in, ot_late_out, ot_break = _canonical_minutes(
            clock_in, clock_out, start, end, approvals,
            _break_window(start, break_start, break_end), break_adjustment,
        )
        effective_in = clock_in if approvals.early_in else max(clock_in, start)
        effective_out = clock_out if approvals.late_out else min(clock_out, end)
    else:
        effective_in, effective_out = clock_in, clock_out

    if approvals.late_in:
        late = 0
    if approvals.early_out:
        undertime = 0

    gross = whole_minutes(effective_out - effective_in)
    worked = gross - break_minutes if gross > HALF_DAY_MINUTES else gross
    worked = max(0, worked)
    if worked == 0:
        return DayMetrics()

    return DayMetrics(
        late_minutes=late,
        undertime_minutes=undertime,
        ot_early_in_minutes=ot_early_in,
        ot_late_out_minutes=ot_late_out,
        ot_break_minutes=ot_break,
        worked_minutes=worked,
        night_diff_minutes=night_diff_minutes(effective_in, effective_out),
    )


def metrics_for_day(day, tz=MANILA):
    """compute_day_metrics for an AttendanceDayInput, honouring its break override."""
    applied_break = day.break_minutes_override
    if applied_break is None:
        applied_break = day.break_minutes
    return compute_day_metrics(
        day.clock_in, day.clock_out, day.sched_start, day.sched_end,
        applied_break, day.approvals, day.is_overnight, day.date,
        shift_break_minutes=day.break_minutes,
        break_start=day.break_start, break_end=day.break_end, tz=tz,
    )
