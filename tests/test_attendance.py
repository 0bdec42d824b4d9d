"""Unit tests for attendance aggregation."""

import datetime as dt
import random

import pytest

from academic_engine.attendance import (
    aggregate_attendance,
    aggregate_by_student,
    aggregate_by_subject,
    calendar_day_status,
    calendar_summary,
)
from academic_engine.errors import InvalidInput
from academic_engine.models import AttendanceEvent, AttendanceStatus


def events_for(student, statuses, start=dt.date(2024, 1, 1), subject=None):
    return [
        AttendanceEvent(
            student_id=student,
            date=start + dt.timedelta(days=i),
            status=status,
            subject_id=subject,
        )
        for i, status in enumerate(statuses)
    ]


def test_aggregate_example():
    """15 present, 2 late, 3 absent out of 20 is 75.0%."""
    statuses = ['present'] * 15 + ['late'] * 2 + ['absent'] * 3
    summary = aggregate_attendance(events_for('s1', statuses))
    assert summary.student_id == 's1'
    assert summary.total == 20
    assert summary.present == 15
    assert summary.late == 2
    assert summary.absent == 3
    assert summary.excused == 0
    assert summary.percentage == 75.0


def test_late_not_counted_as_attended():
    """Late marks have their own bucket and do not raise the percentage."""
    summary = aggregate_attendance(events_for('s1', ['late', 'late', 'present', 'excused']))
    assert summary.late == 2
    assert summary.percentage == 25.0


def test_percentage_rounding():
    """Percentages are rounded half up to one decimal."""
    summary = aggregate_attendance(events_for('s1', ['present', 'present', 'absent']))
    assert summary.percentage == 66.7
    summary = aggregate_attendance(events_for('s1', ['present'] + ['absent'] * 7))
    assert summary.percentage == 12.5


def test_no_events():
    """No events gives zero counts and a null percentage."""
    summary = aggregate_attendance([], student_id='s1')
    assert summary.total == 0
    assert summary.percentage is None
    assert summary.student_id == 's1'


def test_counts_invariant():
    """Counts always add up to total and the percentage stays in range."""
    rng = random.Random(7)
    statuses = [s.value for s in AttendanceStatus]
    for _ in range(50):
        picked = [rng.choice(statuses) for _ in range(rng.randint(1, 40))]
        summary = aggregate_attendance(events_for('s1', picked))
        assert summary.present + summary.absent + summary.late + summary.excused == summary.total
        assert 0 <= summary.percentage <= 100


def test_dict_events_and_status_coercion():
    """Raw dicts are accepted; status is case-insensitive."""
    summary = aggregate_attendance([
        {'student_id': 's1', 'date': '2024-02-01', 'status': 'Present'},
        {'student_id': 's1', 'date': '2024-02-02', 'status': ' ABSENT '},
    ])
    assert summary.present == 1
    assert summary.absent == 1


def test_unknown_status_rejected():
    with pytest.raises(InvalidInput) as exc:
        aggregate_attendance([{'student_id': 's1', 'date': '2024-02-01', 'status': 'holiday'}])
    assert exc.value.field == 'status'


def test_duplicate_day_rejected():
    """One daily mark per student per day."""
    events = events_for('s1', ['present']) + events_for('s1', ['absent'])
    with pytest.raises(InvalidInput):
        aggregate_attendance(events)


def test_mixed_students_rejected():
    events = events_for('s1', ['present']) + events_for('s2', ['present'])
    with pytest.raises(InvalidInput):
        aggregate_attendance(events)
    with pytest.raises(InvalidInput):
        aggregate_attendance(events_for('s1', ['present']), student_id='s2')


def test_date_range_and_subject_filters():
    events = events_for('s1', ['present', 'absent', 'present', 'absent'])
    summary = aggregate_attendance(events, start=dt.date(2024, 1, 2), end=dt.date(2024, 1, 3))
    assert summary.total == 2
    assert summary.percentage == 50.0

    scoped = events_for('s1', ['present', 'present'], subject='math') + \
        events_for('s1', ['absent'], subject='sci')
    math = aggregate_attendance(scoped, subject_id='math')
    assert math.total == 2
    assert math.subject_id == 'math'
    assert math.percentage == 100.0


def test_subject_events_allow_same_day():
    """Subject-scoped marks may share a day."""
    events = events_for('s1', ['present'], subject='math') + events_for('s1', ['absent'], subject='sci')
    assert aggregate_attendance(events).total == 2


def test_aggregate_by_subject():
    events = (
        events_for('s1', ['present', 'late', 'absent'], subject='math')
        + events_for('s1', ['present', 'present'], subject='sci')
    )
    by_subject = aggregate_by_subject(events)
    assert list(by_subject) == ['math', 'sci']
    assert by_subject['math'].percentage == 33.3
    assert by_subject['math'].late == 1
    assert by_subject['sci'].percentage == 100.0
    assert by_subject['sci'].student_id == 's1'


def test_aggregate_by_student():
    events = events_for('s1', ['present', 'absent']) + events_for('s2', ['present'])
    summaries = aggregate_by_student(events)
    assert summaries['s1'].percentage == 50.0
    assert summaries['s2'].percentage == 100.0


def test_aggregation_idempotent():
    events = events_for('s1', ['present', 'late', 'absent', 'excused'])
    assert aggregate_attendance(events) == aggregate_attendance(events)


def test_calendar_counts_late_as_present():
    """In the calendar view a late day is a present day."""
    events = events_for('s1', ['late', 'absent', 'present'])
    days = calendar_day_status(events)
    assert days[dt.date(2024, 1, 1)] == 'present'
    assert days[dt.date(2024, 1, 2)] == 'absent'
    assert days[dt.date(2024, 1, 3)] == 'present'


def test_calendar_half_rule():
    """A day with several subject marks is present when at least half attended."""
    day = dt.date(2024, 3, 4)
    events = [
        AttendanceEvent(student_id='s1', date=day, status='late', subject_id='math'),
        AttendanceEvent(student_id='s1', date=day, status='absent', subject_id='sci'),
    ]
    assert calendar_day_status(events) == {day: 'present'}
    events.append(AttendanceEvent(student_id='s1', date=day, status='absent', subject_id='art'))
    assert calendar_day_status(events) == {day: 'absent'}


def test_calendar_summary_differs_from_summary_percentage():
    """The two percentages deliberately disagree about late marks."""
    events = events_for('s1', ['late', 'late', 'present', 'absent'], start=dt.date(2024, 2, 1))
    cal = calendar_summary(events, 2024, 2)
    assert cal.present_days == 3
    assert cal.absent_days == 1
    assert cal.total_days == 4
    assert cal.no_class_days == 29 - 4
    assert cal.percentage == 75.0
    assert aggregate_attendance(events).percentage == 25.0


def test_calendar_summary_empty_month():
    cal = calendar_summary(events_for('s1', ['present']), 2024, 5)
    assert cal.total_days == 0
    assert cal.no_class_days == 31
    assert cal.percentage is None


def test_calendar_summary_rejects_bad_month():
    with pytest.raises(InvalidInput):
        calendar_summary([], 2024, 13)


def test_calendar_rejects_several_students():
    """The calendar view is per student, like the summary."""
    day = dt.date(2024, 2, 5)
    events = [
        AttendanceEvent(student_id='a', date=day, status='present'),
        AttendanceEvent(student_id='b', date=day, status='absent'),
    ]
    with pytest.raises(InvalidInput) as exc:
        calendar_day_status(events)
    assert exc.value.field == 'student_id'
    with pytest.raises(InvalidInput):
        calendar_summary(events, 2024, 2)
