# tests/test_attendance_metrics.py

from datetime import date, datetime, time, timedelta

import pytz

from phpayroll.engine.attendance import (
    compute_day_metrics, metrics_for_day, night_diff_minutes, scheduled_work_minutes,
    whole_minutes,
)
from phpayroll.engine.types import ApprovalFlags, DayMetrics

WORK_DATE = date(2026, 1, 5)


def at(hour, minute=0, day=WORK_DATE):
    return datetime.combine(day, time(hour, minute))


def metrics(clock_in, clock_out, approvals=None, break_minutes=60, **kwargs):
    return compute_day_metrics(
        clock_in, clock_out,
        kwargs.pop('sched_start', time(8, 0)), kwargs.pop('sched_end', time(17, 0)),
        break_minutes, approvals or ApprovalFlags(),
        kwargs.pop('is_overnight', False), WORK_DATE, **kwargs
    )


class TestWholeMinutes:

    def test_seconds_round_half_up(self):
        assert whole_minutes(timedelta(minutes=5, seconds=29)) == 5
        assert whole_minutes(timedelta(minutes=5, seconds=30)) == 6

    def test_negative_is_zero(self):
        assert whole_minutes(timedelta(minutes=-3)) == 0


class TestComputeDayMetrics:

    def test_early_arrival_and_approved_late_out(self):
        result = metrics(at(7, 50), at(19, 10), ApprovalFlags(early_in=False, late_out=True))

        assert result.late_minutes == 0
        assert result.undertime_minutes == 0
        assert result.ot_early_in_minutes == 0
        assert result.ot_late_out_minutes == 130
        assert result.worked_minutes == 610

    def test_unapproved_overtime_is_clamped_to_schedule(self):
        result = metrics(at(7, 30), at(18, 0))

        assert result.ot_early_in_minutes == 0
        assert result.ot_late_out_minutes == 0
        assert result.worked_minutes == 480

    def test_missing_clock_gives_all_zeros(self):
        assert metrics(None, at(17, 0)) == DayMetrics()
        assert metrics(at(8, 0), None) == DayMetrics()

    def test_late_and_undertime(self):
        result = metrics(at(8, 15), at(16, 30))

        assert result.late_minutes == 15
        assert result.undertime_minutes == 30
        assert result.worked_minutes == 435

    def test_late_in_and_early_out_approvals_excuse_deductions(self):
        result = metrics(at(8, 15), at(16, 30), ApprovalFlags(late_in=True, early_out=True))

        assert result.late_minutes == 0
        assert result.undertime_minutes == 0
        assert result.worked_minutes == 435

    def test_no_break_deducted_at_or_below_half_day(self):
        result = metrics(at(8, 0), at(12, 0))

        assert result.worked_minutes == 240
        assert result.undertime_minutes == 300

    def test_lateness_inside_break_window_not_counted(self):
        result = metrics(at(12, 30), at(17, 0), break_start=time(12, 0), break_end=time(13, 0))

        assert result.late_minutes == 240

    def test_day_shift_has_no_night_differential(self):
        result = metrics(at(9, 0), at(18, 0), sched_start=time(9, 0), sched_end=time(18, 0))

        assert result.night_diff_minutes == 0

    def test_overnight_shift(self):
        result = metrics(
            at(22, 0), at(7, 0, day=WORK_DATE + timedelta(days=1)),
            sched_start=time(22, 0), sched_end=time(7, 0),
        )

        assert result.worked_minutes == 480
        assert result.late_minutes == 0
        assert result.night_diff_minutes == 480

    def test_clock_out_before_clock_in_wraps_to_next_day(self):
        result = metrics(at(22, 0), at(7, 0), sched_start=time(22, 0), sched_end=time(7, 0))

        assert result.worked_minutes == 480

    def test_no_schedule_uses_raw_clock_window(self):
        result = compute_day_metrics(at(9, 0), at(19, 0), None, None, 60, None, False, WORK_DATE)

        assert result.worked_minutes == 540
        assert result.late_minutes == 0
        assert result.ot_late_out_minutes == 0

    def test_aware_times_are_read_in_manila(self):
        utc = pytz.utc
        clock_in = utc.localize(datetime(2026, 1, 5, 0, 0))   # 08:00 Manila
        clock_out = utc.localize(datetime(2026, 1, 5, 9, 0))  # 17:00 Manila

        result = metrics(clock_in, clock_out)

        assert result.late_minutes == 0
        assert result.worked_minutes == 480

    def test_worked_never_exceeds_clock_span(self):
        for start, end in [((7, 0), (20, 0)), ((8, 5), (16, 55)), ((10, 0), (13, 0))]:
            result = metrics(at(*start), at(*end), ApprovalFlags(early_in=True, late_out=True))
            span = whole_minutes(at(*end) - at(*start))
            assert 0 <= result.worked_minutes <= span


class TestBreakOverride:

    def test_shorter_break_covers_undertime(self, day_factory):
        day = day_factory(WORK_DATE, clock_out=(16, 30), break_minutes_override=30)

        result = metrics_for_day(day)

        assert result.undertime_minutes == 0
        assert result.ot_break_minutes == 0
        assert result.worked_minutes == 480

    def test_unused_break_adjustment_becomes_break_overtime(self, day_factory):
        day = day_factory(WORK_DATE, break_minutes_override=30)

        result = metrics_for_day(day)

        assert result.undertime_minutes == 0
        assert result.ot_break_minutes == 30
        assert result.worked_minutes == 510

    def test_without_override_shift_break_applies(self, day_factory):
        day = day_factory(WORK_DATE, clock_out=(16, 30))

        result = metrics_for_day(day)

        assert result.undertime_minutes == 30
        assert result.ot_break_minutes == 0


class TestScheduleHelpers:

    def test_scheduled_minutes_subtract_break(self):
        assert scheduled_work_minutes(WORK_DATE, time(8, 0), time(17, 0), 60) == 480

    def test_scheduled_minutes_default_without_schedule(self):
        assert scheduled_work_minutes(WORK_DATE, None, None, 60) == 480

    def test_night_diff_spans_two_bands(self):
        # 20:00 to 07:00 next day overlaps 22:00-06:00 once
        assert night_diff_minutes(at(20, 0), at(7, 0, day=WORK_DATE + timedelta(days=1))) == 480
        # 04:00 to 23:00 touches the early morning band and the evening band
        assert night_diff_minutes(at(4, 0), at(23, 0)) == 180
