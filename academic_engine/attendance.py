"""Attendance aggregation: per-student summaries and the calendar day view."""

import calendar
import datetime as dt
import logging
from collections import Counter, OrderedDict
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from academic_engine.errors import InvalidInput
from academic_engine.models import (
    AttendanceEvent,
    AttendanceStatus,
    AttendanceSummary,
    CalendarSummary,
)
from academic_engine.utils import percentage_of

logger = logging.getLogger(__name__)


def coerce_status(value) -> AttendanceStatus:
    """Map a status value to AttendanceStatus, raising InvalidInput if unknown."""
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(str(value).strip().lower())
    except ValueError:
        raise InvalidInput(f"Unknown attendance status: {value!r}", 'status', value)


def as_event(raw: Union[AttendanceEvent, dict]) -> AttendanceEvent:
    if isinstance(raw, AttendanceEvent):
        return raw
    data = dict(raw)
    if 'status' in data:
        data['status'] = coerce_status(data['status'])
    try:
        return AttendanceEvent(**data)
    except ValidationError as e:
        error = e.errors()[0]
        field = '.'.join(str(p) for p in error['loc'])
        raise InvalidInput(f"Invalid attendance event: {field}: {error['msg']}", field, raw)


def _prepare(events: Iterable[Union[AttendanceEvent, dict]]) -> List[AttendanceEvent]:
    """Convert events and reject duplicate (student, date, subject) marks."""
    prepared: List[AttendanceEvent] = []
    seen = set()
    for raw in events:
        event = as_event(raw)
        key = (event.student_id, event.date, event.subject_id)
        if key in seen:
            raise InvalidInput(
                f"Duplicate attendance for {event.student_id} on {event.date.isoformat()}"
                + (f" ({event.subject_id})" if event.subject_id else ""),
                'date', event.date.isoformat()
            )
        seen.add(key)
        prepared.append(event)
    return prepared


def _single_student(
    prepared: List[AttendanceEvent],
    student_id: Optional[str] = None
) -> Optional[str]:
    """Return the one student the events belong to, or raise InvalidInput."""
    students = {e.student_id for e in prepared}
    if student_id is not None:
        students.add(student_id)
    if len(students) > 1:
        raise InvalidInput(
            f"Attendance events span several students: {', '.join(sorted(students))}",
            'student_id', sorted(students)
        )
    if student_id is None and students:
        student_id = students.pop()
    return student_id


def _summarize(
    events: List[AttendanceEvent],
    student_id: Optional[str],
    subject_id: Optional[str] = None
) -> AttendanceSummary:
    counts = Counter(e.status for e in events)
    present = counts[AttendanceStatus.PRESENT]
    absent = counts[AttendanceStatus.ABSENT]
    late = counts[AttendanceStatus.LATE]
    excused = counts[AttendanceStatus.EXCUSED]
    total = present + absent + late + excused
    return AttendanceSummary(
        student_id=student_id,
        subject_id=subject_id,
        total=total,
        present=present,
        absent=absent,
        late=late,
        excused=excused,
        # late is tracked but only `present` counts as attended here
        percentage=percentage_of(present, total) if total > 0 else None,
    )


def filter_events(
    events: Iterable[AttendanceEvent],
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
    subject_id: Optional[str] = None
) -> List[AttendanceEvent]:
    """Keep events within [start, end] and, if given, for one subject."""
    return [
        e for e in events
        if (start is None or e.date >= start)
        and (end is None or e.date <= end)
        and (subject_id is None or e.subject_id == subject_id)
    ]


def aggregate_attendance(
    events: Iterable[Union[AttendanceEvent, dict]],
    student_id: Optional[str] = None,
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
    subject_id: Optional[str] = None
) -> AttendanceSummary:
    """
    Summarize one student's attendance.

    The percentage is ``present / total * 100`` rounded to one decimal. Late
    marks have their own count but are not attended for this figure. With no
    events the percentage is None.

    Args:
        events: The student's attendance events
        student_id: Expected student; inferred from events when omitted
        start: Optional first date (inclusive)
        end: Optional last date (inclusive)
        subject_id: Optional subject to restrict to

    Returns:
        AttendanceSummary

    Raises:
        InvalidInput: On unknown statuses, duplicate marks, or events for
            more than one student
    """
    prepared = _prepare(events)
    student_id = _single_student(prepared, student_id)
    scoped = filter_events(prepared, start, end, subject_id)
    return _summarize(scoped, student_id, subject_id)


def aggregate_by_student(
    events: Iterable[Union[AttendanceEvent, dict]]
) -> "OrderedDict[str, AttendanceSummary]":
    """One summary per student, in first-seen order."""
    grouped: "OrderedDict[str, List[AttendanceEvent]]" = OrderedDict()
    for event in _prepare(events):
        grouped.setdefault(event.student_id, []).append(event)
    logger.debug("Aggregating attendance for %d students", len(grouped))
    return OrderedDict(
        (student_id, _summarize(student_events, student_id))
        for student_id, student_events in grouped.items()
    )


def aggregate_by_subject(
    events: Iterable[Union[AttendanceEvent, dict]],
    student_id: Optional[str] = None
) -> "OrderedDict[Optional[str], AttendanceSummary]":
    """
    Subject-wise summaries for one student.

    Events without a subject are grouped under the ``None`` key.
    """
    prepared = _prepare(events)
    overall = aggregate_attendance(prepared, student_id)
    grouped: "OrderedDict[Optional[str], List[AttendanceEvent]]" = OrderedDict()
    for event in prepared:
        grouped.setdefault(event.subject_id, []).append(event)
    return OrderedDict(
        (subject, _summarize(subject_events, overall.student_id, subject))
        for subject, subject_events in grouped.items()
    )


def calendar_day_status(events: Iterable[Union[AttendanceEvent, dict]]) -> Dict[dt.date, str]:
    """
    Classify each day with records as "present" or "absent" for one student.

    This is the calendar view: a late mark counts as present, and a day is
    present when at least half of that day's marks are present or late.
    Excused marks count toward the day's total only. Events for more than
    one student raise InvalidInput.
    """
    prepared = _prepare(events)
    _single_student(prepared)
    per_day: Dict[dt.date, List[int]] = {}
    for event in prepared:
        attended, total = per_day.get(event.date, [0, 0])
        if event.status in (AttendanceStatus.PRESENT, AttendanceStatus.LATE):
            attended += 1
        per_day[event.date] = [attended, total + 1]
    return {
        day: 'present' if attended >= total / 2 else 'absent'
        for day, (attended, total) in sorted(per_day.items())
    }


def calendar_summary(
    events: Iterable[Union[AttendanceEvent, dict]],
    year: int,
    month: int
) -> CalendarSummary:
    """Month figures for one student's calendar view; see calendar_day_status."""
    if not 1 <= month <= 12:
        raise InvalidInput(f"Month must be between 1 and 12, got {month}", 'month', month)
    prepared = _prepare(events)
    _single_student(prepared)
    in_month = [e for e in prepared if e.date.year == year and e.date.month == month]
    days = calendar_day_status(in_month)
    present_days = sum(1 for status in days.values() if status == 'present')
    absent_days = len(days) - present_days
    total_days = present_days + absent_days
    days_in_month = calendar.monthrange(year, month)[1]
    return CalendarSummary(
        year=year,
        month=month,
        present_days=present_days,
        absent_days=absent_days,
        total_days=total_days,
        no_class_days=days_in_month - total_days,
        percentage=percentage_of(present_days, total_days) if total_days > 0 else None,
        days=days,
    )
